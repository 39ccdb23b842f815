"""
_splits.py
==========
Bipartition ("split") identity for every edge of a tree, and an index from
split to edge.

Public API
----------
  compute_splits(tree) -> (SplitIndex, sorted_names)
  resolve(index, sorted_names, names) -> Edge

Canonical orientation
---------------------
Removing an edge divides the tips into two sides; only one of them is stored.
Tips are numbered by their position in the sorted list of tip names, and the
stored side is always the one that does NOT contain tip 0 (the *reference
tip*, the lexicographically smallest name).  The same rule is applied when a
query vector is built from a list of names: a query that contains the
reference tip is complemented before lookup.  That is the only complement
ever taken; a failed lookup is reported, not retried with the other side.

Computing the stored side needs no complementing at all: rooting the DFS at
the reference tip makes every child clade exclude it.

Split vectors are numpy ``bool`` arrays of length n_tips; the lookup table is
keyed by their ``np.packbits`` bytes.
"""

import logging
from typing import Dict, Iterable, List, NamedTuple, Tuple

import numpy as np

from sprtrace._errors import (
    EmptyTreeError,
    MalformedTreeError,
    SplitNotFoundError,
    UnknownTipError,
)
from sprtrace._pool import OPEN

logger = logging.getLogger(__name__)


class Edge(NamedTuple):
    """
    A directed view of an edge: *node* is the endpoint on the side the edge
    is looked at from, *back* the endpoint across it.
    """

    node: int
    back: int

    def reversed(self) -> "Edge":
        return Edge(self.back, self.node)

    def key(self) -> Tuple[int, int]:
        """Orientation-free identity of the edge."""
        return (self.node, self.back) if self.node < self.back else (self.back, self.node)


def _split_key(split: np.ndarray) -> bytes:
    return np.packbits(split).tobytes()


class SplitIndex:
    """
    Lookup table from canonical split to edge for one tree generation.

    Attributes
    ----------
    sorted_names : list[str]            Tip names; position = bit index.
    splits       : bool [n_edges, n_tips]   Canonical split of each edge.
    edges        : list[Edge]           ``edges[i]`` induces ``splits[i]``;
                                        ``edges[i].node`` is on the stored side.
    """

    def __init__(
        self, sorted_names: List[str], splits: np.ndarray, edges: List[Edge]
    ) -> None:
        self.sorted_names = sorted_names
        self.splits = splits
        self.edges = edges
        self._names_array = np.array(sorted_names, dtype=str)
        self._table: Dict[bytes, int] = {}
        self._row_of_edge: Dict[Tuple[int, int], int] = {}
        for row, edge in enumerate(edges):
            self._table[_split_key(splits[row])] = row
            self._row_of_edge[edge.key()] = row

    @property
    def n_tips(self) -> int:
        return len(self.sorted_names)

    def __len__(self) -> int:
        return len(self.edges)

    def __contains__(self, split: np.ndarray) -> bool:
        return _split_key(np.asarray(split, dtype=bool)) in self._table

    def edge_for(self, split: np.ndarray) -> Edge:
        """
        Edge whose canonical split is exactly *split*.

        Raises
        ------
        SplitNotFoundError   if no edge has that split.
        """
        row = self._table.get(_split_key(np.asarray(split, dtype=bool)))
        if row is None:
            raise SplitNotFoundError("No edge induces the requested split.")
        return self.edges[row]

    def split_of(self, edge: Edge) -> np.ndarray:
        """Canonical split of *edge* (either orientation)."""
        row = self._row_of_edge.get(edge.key())
        if row is None:
            raise SplitNotFoundError(f"Edge {edge.key()} is not in this index.")
        return self.splits[row]

    def tip_names(self, split: np.ndarray) -> List[str]:
        return [self.sorted_names[i] for i in np.flatnonzero(split)]

    def resolve(self, names: Iterable[str]) -> Edge:
        return resolve(self, self.sorted_names, names)


def compute_splits(tree) -> Tuple[SplitIndex, List[str]]:
    """
    Compute the canonical split of every edge of *tree* and index them.

    Parameters
    ----------
    tree : Tree
        Tree whose tips have pairwise distinct, non-empty names.

    Returns
    -------
    (SplitIndex, list[str])
        The index and the sorted tip names (bit order of every split).

    Raises
    ------
    EmptyTreeError       if the tree has fewer than two tips.
    MalformedTreeError   if two tips share a name.

    Complexity
    ----------
    One visit per node and edge; O(n_tips) work per edge to OR the bit
    vectors, so O(n²) overall.
    """
    pool = tree.pool
    tips = tree.tips()
    if len(tips) < 2:
        raise EmptyTreeError(f"Tree has {len(tips)} tip(s); at least 2 are needed.")

    by_name: Dict[str, int] = {}
    for tip in tips:
        name = pool.names[tip]
        if name in by_name:
            raise MalformedTreeError(
                f"Duplicate tip name '{name}' at node IDs {by_name[name]} and {tip}."
            )
        by_name[name] = tip

    sorted_names = sorted(by_name)
    bit_of = {name: i for i, name in enumerate(sorted_names)}
    n_tips = len(sorted_names)
    reference = by_name[sorted_names[0]]

    # Pre-order from the reference tip; reversed, it is a valid post-order.
    order: List[Tuple[int, int]] = []
    stack = [(reference, OPEN)]
    while stack:
        node, parent = stack.pop()
        order.append((node, parent))
        for v in pool.neighbors(node):
            if v != parent:
                stack.append((v, node))

    clade: Dict[int, np.ndarray] = {}
    splits: List[np.ndarray] = []
    edges: List[Edge] = []
    for node, parent in reversed(order):
        if parent == OPEN:
            break
        vec = np.zeros(n_tips, dtype=bool)
        if pool.is_tip(node):
            vec[bit_of[pool.names[node]]] = True
        for v in pool.neighbors(node):
            if v != parent:
                vec |= clade.pop(v)
        clade[node] = vec
        splits.append(vec)
        edges.append(Edge(node, parent))

    matrix = np.array(splits, dtype=bool).reshape(len(splits), n_tips)
    index = SplitIndex(sorted_names, matrix, edges)
    logger.debug("Indexed %d edges over %d tips", len(index), n_tips)
    return index, sorted_names


def resolve(index: SplitIndex, sorted_names: List[str], names: Iterable[str]) -> Edge:
    """
    Find the edge that separates *names* from the other tips.

    Parameters
    ----------
    index        : SplitIndex   Index of the current tree.
    sorted_names : list[str]    Sorted tip names the index was built over.
    names        : iterable of str
        Tip names on one side of the wanted edge; order and repeats ignored.

    Returns
    -------
    Edge   Oriented so that ``edge.node`` lies on the side holding *names*.

    Raises
    ------
    UnknownTipError      if a name is not a tip of the tree.
    SplitNotFoundError   if no edge induces exactly this split.
    """
    if sorted_names is index.sorted_names:
        names_array = index._names_array
    else:
        names_array = np.array(sorted_names, dtype=str)

    query = list(names)
    vec = np.zeros(len(sorted_names), dtype=bool)
    if query:
        positions = np.searchsorted(names_array, np.array(query, dtype=str))
        for name, pos in zip(query, positions):
            if pos >= len(sorted_names) or sorted_names[pos] != name:
                raise UnknownTipError(f"No tip named '{name}' in the current tree.")
            vec[pos] = True

    flipped = bool(vec[0])
    if flipped:
        vec = ~vec

    try:
        edge = index.edge_for(vec)
    except SplitNotFoundError:
        raise SplitNotFoundError(
            f"No edge separates ({' '.join(sorted(set(query)))}) from the "
            f"remaining {len(sorted_names) - len(set(query))} tip(s)."
        ) from None
    return edge.reversed() if flipped else edge
