"""
_replay.py
==========
Replays an SPR search trace: rebuilds every topology the trace claims the
search visited and writes each one to its own NEWICK file.

Public API
----------
  ReplayDriver(reader, output_dir='replay', pool=None)
  .run() -> ReplayStats

  replay_file(path, output_dir='replay') -> ReplayStats

Nesting
-------
The trace is processed at three levels::

  @tree        new generation: parse, reclaim the old nodes, index splits
    @subtree     prune the named clade             -> x.<t>.<s>, y.<t>.<s>
      @insertion   splice it onto the named edge   -> <t>.<s>.<i>
                   (reverted before the next record)
    (prune reverted when the insertions of a subtree end)

A level ends when a record of the same or an outer level, or the end of the
trace, is read.  Counters are 1-based: <t> counts tree records, <s> subtree
records within the tree and <i> insertion records within the subtree.

Insertion splits are looked up in the split index of the full tree and then
mapped onto the pruned remainder: the edge that was pruned, and the two
edges that were merged into the bridge, all denote the bridge (the subtree's
original position).  A split that only exists inside the pruned subtree is a
lookup failure.

A remainder edge may be named from either of its sides.  Named from the side
away from the prune point, its split is already a full-tree split; named
from the side next to it, the pruned tips have to be added to the names to
get the full-tree split of the same edge.  Both forms therefore resolve to
the same remainder edge, and the splice is written identically.

Failure
-------
Every error is fatal.  On a split lookup failure, for a subtree or an
insertion record, the full current tree is written to ``error_tree`` first.
Files written before the failure are left in place.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sprtrace._editor import PruneTransaction, TopologyEditor
from sprtrace._errors import EndOfStreamError, ReplayError, SplitNotFoundError
from sprtrace._logging import (
    log_error_tree,
    log_insertion,
    log_replay_summary,
    log_subtree,
    log_tree_loaded,
    log_unparented_insertion,
)
from sprtrace._pool import NodePool
from sprtrace._splits import Edge, SplitIndex, compute_splits
from sprtrace._trace import RecordKind, TraceReader
from sprtrace._tree import Tree, write_newick

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = "replay"
ERROR_TREE_NAME = "error_tree"


@dataclass
class ReplayStats:
    """Running totals of a replay, plus every path written."""

    trees: int = 0
    subtrees: int = 0
    insertions: int = 0
    files: List[str] = field(default_factory=list)


class ReplayDriver:
    """
    Drive a ``TraceReader`` through the tree / subtree / insertion levels.

    Parameters
    ----------
    reader : TraceReader
        Positioned before the first record.
    output_dir : str, default 'replay'
        Directory for the per-step files; created if missing.
    pool : NodePool, optional
        Arena for the tree nodes.  A new pool is used when omitted.
    """

    def __init__(
        self,
        reader: TraceReader,
        output_dir: str = DEFAULT_OUTPUT_DIR,
        pool: Optional[NodePool] = None,
    ) -> None:
        self.reader = reader
        self.output_dir = output_dir
        self.pool = pool if pool is not None else NodePool()
        self.editor = TopologyEditor(self.pool)
        self.stats = ReplayStats()

        self.tree: Optional[Tree] = None
        self.index: Optional[SplitIndex] = None
        self.sorted_names: List[str] = []
        self._full_newick = ""

    # ================================================================== #
    # Public methods                                                       #
    # ================================================================== #

    def run(self) -> ReplayStats:
        """
        Replay the whole trace.

        Raises
        ------
        EndOfStreamError   if the trace holds no tree record.
        ReplayError        (any subclass) on the first inconsistency; the
                           error carries the trace line it occurred on.
        """
        os.makedirs(self.output_dir, exist_ok=True)
        try:
            kind = self._seek_first_tree()
            while kind is RecordKind.TREE:
                kind = self._replay_tree()
        except ReplayError as error:
            if error.line_number is None:
                error.line_number = self.reader.line_number
                error.line = self.reader.line
            self.reader.dump_position()
            raise

        log_replay_summary(
            self.stats.trees,
            self.stats.subtrees,
            self.stats.insertions,
            len(self.stats.files),
            self.output_dir,
        )
        return self.stats

    # ================================================================== #
    # Levels                                                               #
    # ================================================================== #

    def _seek_first_tree(self) -> RecordKind:
        while True:
            kind = self.reader.next()
            if kind is RecordKind.TREE:
                return kind
            if kind is RecordKind.END:
                raise EndOfStreamError("End of trace while looking for first tree.")

    def _replay_tree(self) -> RecordKind:
        """Process one tree record and everything nested in it."""
        self._load_tree(self.reader.get_tree().newick)
        tree_number = self.stats.trees
        subtree_number = 0

        kind = self.reader.next()
        while True:
            if kind is RecordKind.SUBTREE:
                subtree_number += 1
                kind = self._replay_subtree(tree_number, subtree_number)
            elif kind is RecordKind.INSERTION:
                self._check_unparented_insertion(tree_number)
                kind = self.reader.next()
            else:
                return kind

    def _load_tree(self, newick: str) -> None:
        tree = Tree(newick, self.pool)
        n_reclaimed = self.pool.reclaim(tree.root)
        index, sorted_names = compute_splits(tree)

        self.tree = tree
        self.index = index
        self.sorted_names = sorted_names
        self._full_newick = tree.to_newick()
        self.stats.trees += 1
        log_tree_loaded(
            self.stats.trees, len(sorted_names), len(index), n_reclaimed, self.pool.n_live
        )

    def _replay_subtree(self, tree_number: int, subtree_number: int) -> RecordKind:
        """
        Prune the record's clade, write remainder and subtree, replay the
        insertions under it, and return the kind of the record that ended
        the level.  The prune is reverted on every exit path.
        """
        record = self.reader.get_subtree()
        try:
            edge = self.index.resolve(record.names)
        except SplitNotFoundError:
            self._write_error_tree()
            raise
        log_subtree(tree_number, subtree_number, record.names, len(self.sorted_names))

        with self.editor.prune(edge) as prune:
            tag = f"{tree_number}.{subtree_number}"
            self._write(f"x.{tag}", write_newick(self.pool, prune.bridge.node))
            self._write(f"y.{tag}", write_newick(self.pool, prune.subtree, prune.root))
            self.stats.subtrees += 1

            insertion_number = 0
            kind = self.reader.next()
            while kind is RecordKind.INSERTION:
                insertion_number += 1
                self._replay_insertion(
                    prune, tree_number, subtree_number, insertion_number
                )
                kind = self.reader.next()
        return kind

    def _replay_insertion(
        self,
        prune: PruneTransaction,
        tree_number: int,
        subtree_number: int,
        insertion_number: int,
    ) -> None:
        record = self.reader.get_insertion()
        score = record.score

        try:
            edge = self._resolve_in_remainder(prune, record.names)
        except SplitNotFoundError:
            self._write_error_tree()
            raise

        log_insertion(tree_number, subtree_number, insertion_number, record.names, score)

        with self.editor.splice(Edge(*edge.key()), prune.root) as splice:
            self._write(
                f"{tree_number}.{subtree_number}.{insertion_number}",
                write_newick(self.pool, splice.junction),
            )
        self.stats.insertions += 1

    def _resolve_in_remainder(
        self, prune: PruneTransaction, names: Tuple[str, ...]
    ) -> Edge:
        """
        Remainder edge that *names* (tips of the remainder) separate from the
        other remainder tips.

        The index holds full-tree splits.  A remainder edge induces the same
        split in the full tree as long as the pruned tips are counted on the
        side away from *names*; when they belong on the side of *names*, the
        full-tree split is ``names | subtree_tips`` instead.
        """
        try:
            edge = self.index.resolve(names)
        except SplitNotFoundError as error:
            if not names or prune.subtree_tips.intersection(names):
                raise
            try:
                edge = self.index.resolve(prune.subtree_tips.union(names))
            except SplitNotFoundError:
                raise error from None

        remainder = prune.remainder_edge(edge)
        if remainder is None:
            raise SplitNotFoundError(
                f"Split ({' '.join(names)}) lies inside the pruned subtree."
            )
        return remainder

    def _check_unparented_insertion(self, tree_number: int) -> None:
        record = self.reader.get_insertion()
        score = record.score
        try:
            self.index.resolve(record.names)
        except SplitNotFoundError:
            self._write_error_tree()
            raise
        log_unparented_insertion(
            tree_number, self.reader.line_number, record.names, score
        )

    # ================================================================== #
    # Output                                                               #
    # ================================================================== #

    def _write(self, name: str, newick: str) -> str:
        path = os.path.join(self.output_dir, name)
        with open(path, "w") as fh:
            fh.write(newick + "\n")
        self.stats.files.append(path)
        logger.debug("wrote %s", path)
        return path

    def _write_error_tree(self) -> None:
        path = os.path.join(self.output_dir, ERROR_TREE_NAME)
        with open(path, "w") as fh:
            fh.write(self._full_newick + "\n")
        log_error_tree(path)


def replay_file(path: str, output_dir: str = DEFAULT_OUTPUT_DIR) -> ReplayStats:
    """
    Replay the trace file at *path*, writing topologies under *output_dir*.
    """
    with open(path, encoding="utf-8") as fh:
        return ReplayDriver(TraceReader(fh), output_dir).run()
