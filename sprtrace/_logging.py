"""
_logging.py
===========
Logging functions for the replay driver.

All functions in this module have NO side effects except logging. They take
computed data as parameters and format/emit log messages, so the replay loop
stays free of presentation code and tests can silence or capture output by
logger name alone.
"""

import logging
from typing import Sequence

logger = logging.getLogger(__name__)


# ============================================================================ #
# Tree generation                                                              #
# ============================================================================ #


def log_tree_loaded(
    tree_number: int, n_tips: int, n_edges: int, n_reclaimed: int, n_live: int
) -> None:
    """
    Log a newly indexed tree generation.

    Parameters
    ----------
    tree_number : int
        1-based position of the tree record in the trace.
    n_tips, n_edges : int
        Size of the new tree and of its split index.
    n_reclaimed : int
        Nodes of the previous generation returned to the pool.
    n_live : int
        Live nodes in the pool after reclamation.
    """
    logger.info("tree %d: %d tips, %d edges indexed", tree_number, n_tips, n_edges)
    if n_reclaimed:
        logger.debug(
            "  reclaimed %d node(s) from the previous tree; %d live",
            n_reclaimed,
            n_live,
        )


# ============================================================================ #
# Per-step records                                                             #
# ============================================================================ #


def log_subtree(
    tree_number: int, subtree_number: int, names: Sequence[str], n_tips: int
) -> None:
    logger.debug(
        "subtree %d.%d: %d of %d tips (%s)",
        tree_number,
        subtree_number,
        len(names),
        n_tips,
        " ".join(names),
    )


def log_insertion(
    tree_number: int,
    subtree_number: int,
    insertion_number: int,
    names: Sequence[str],
    score: float,
) -> None:
    logger.debug(
        "insertion %d.%d.%d: score %g, split (%s)",
        tree_number,
        subtree_number,
        insertion_number,
        score,
        " ".join(names),
    )


def log_unparented_insertion(
    tree_number: int, line_number: int, names: Sequence[str], score: float
) -> None:
    """
    Log an insertion record that arrived before any subtree record of its
    tree.  Its split is verified against the full tree but nothing is written.
    """
    logger.warning(
        "tree %d, trace line %d: insertion (%s) with score %g outside any "
        "subtree; split checked, no topology written",
        tree_number,
        line_number,
        " ".join(names),
        score,
    )


# ============================================================================ #
# Summary and failure                                                          #
# ============================================================================ #


def log_replay_summary(
    n_trees: int, n_subtrees: int, n_insertions: int, n_files: int, output_dir: str
) -> None:
    logger.info(
        "Replay finished: %d tree(s), %d subtree(s), %d insertion(s)",
        n_trees,
        n_subtrees,
        n_insertions,
    )
    logger.info("  %d file(s) written to %s", n_files, output_dir)


def log_error_tree(path: str) -> None:
    logger.error("Split lookup failed; current tree written to %s", path)
