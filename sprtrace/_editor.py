"""
_editor.py
==========
Scoped, always-reverting SPR edits on a tree stored in a ``NodePool``.

Public API
----------
  TopologyEditor(pool)
  .prune(edge)                   -> PruneTransaction
  .splice(target, subtree_root)  -> SpliceTransaction

Both transactions are context managers.  Leaving the ``with`` block rolls the
edit back unless ``commit()`` was called, on every exit path:

>>> with editor.prune(edge) as prune:
...     with editor.splice(target, prune.root) as splice:
...         write(splice.junction)
...     # splice reverted here
... # prune reverted here

Prune
-----
``edge.node`` is the root of the subtree to detach and ``edge.back`` its
*attachment node* in the rest of the tree.  The attachment node must have two
other neighbours u and v.  After the prune:

    u ── X ── v        becomes       u ──────── v      X ── subtree
         │                                         (two open slots on X)
      subtree

u and v are joined in the slots that used to hold X, with the two lengths
summed.  X stays attached to the subtree; it is the subtree's open branch.

Splice
------
Grafts the open branch of the innermost pruned subtree onto a remainder edge
(a, b): ``a ── X ── b``, each half receiving half of the original length.

Ordering
--------
The editor keeps a stack of open transactions.  Only the innermost one may be
committed or rolled back, so a splice is always undone before the prune that
governs it.  Rollback writes back the saved adjacency and length rows, so the
pool is byte-identical to its state before the edit.
"""

import logging
import math
from typing import Dict, FrozenSet, List, Optional, Tuple

import numpy as np

from sprtrace._errors import ConsistencyError
from sprtrace._pool import NodePool, OPEN
from sprtrace._splits import Edge

logger = logging.getLogger(__name__)


class _Transaction:
    """Saved pool rows plus the open/closed bookkeeping shared by both edits."""

    def __init__(self, editor: "TopologyEditor") -> None:
        self._editor = editor
        self._pool = editor.pool
        self._saved: Dict[int, Tuple[np.ndarray, np.ndarray]] = {}
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def _save(self, *nodes: int) -> None:
        for node in nodes:
            self._saved[node] = (
                self._pool.adjacency[node].copy(),
                self._pool.length[node].copy(),
            )

    def _restore(self) -> None:
        for node, (adjacency, length) in self._saved.items():
            self._pool.adjacency[node] = adjacency
            self._pool.length[node] = length

    def commit(self) -> None:
        """Keep the edit and close the transaction."""
        self._editor._close(self)
        self._open = False

    def rollback(self) -> None:
        """Undo the edit and close the transaction."""
        self._editor._close(self)
        self._restore()
        self._open = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self._open:
            self.rollback()
        return False


class PruneTransaction(_Transaction):
    """
    An open prune.

    Attributes
    ----------
    root          : int     Attachment node; the pruned subtree's open branch.
    subtree       : int     Subtree node adjacent to ``root``.
    bridge        : Edge    Remainder edge that replaced u ── root ── v.
    subtree_nodes : frozenset[int]   Nodes cut off, ``root`` included.
    subtree_tips  : frozenset[str]   Tip names of the pruned subtree.
    """

    def __init__(self, editor: "TopologyEditor", edge: Edge) -> None:
        super().__init__(editor)
        pool = self._pool
        subtree, root = int(edge.node), int(edge.back)

        if not pool.connected(subtree, root):
            raise ConsistencyError(f"Cannot prune: {subtree} and {root} are not adjacent.")
        others = [v for v in pool.neighbors(root) if v != subtree]
        if len(others) != 2:
            raise ConsistencyError(
                f"Cannot prune at node {root}: it has {len(others)} neighbour(s) "
                "besides the subtree, need exactly 2."
            )
        u, v = others
        self._save(root, u, v)

        length = pool.edge_length(root, u)
        length_v = pool.edge_length(root, v)
        if not math.isnan(length_v):
            length = length_v if math.isnan(length) else length + length_v

        su = pool.slot_of(u, root)
        sv = pool.slot_of(v, root)
        for w in (u, v):
            s = pool.slot_of(root, w)
            pool.adjacency[root, s] = OPEN
            pool.length[root, s] = np.nan
        pool.adjacency[u, su] = v
        pool.adjacency[v, sv] = u
        pool.length[u, su] = length
        pool.length[v, sv] = length

        self.root = root
        self.subtree = subtree
        self.bridge = Edge(u, v)
        self.subtree_nodes: FrozenSet[int] = frozenset(
            int(n) for n in np.flatnonzero(pool.reachable(root))
        )
        self.subtree_tips: FrozenSet[str] = frozenset(
            pool.names[n] for n in self.subtree_nodes if pool.is_tip(n)
        )
        self._open = True
        logger.debug(
            "prune: detached node %d (subtree %d), bridged %d-%d", root, subtree, u, v
        )

    def remainder_edge(self, edge: Edge) -> Optional[Edge]:
        """
        The remainder edge that a pre-prune edge of the full tree became.

        Edges that touched the attachment node (the pruned edge itself and
        the two edges merged into the bridge) map to the bridge.  Edges inside
        the pruned subtree map to None.  All others are unchanged.
        """
        if self.root in edge:
            return self.bridge
        if edge.node in self.subtree_nodes or edge.back in self.subtree_nodes:
            return None
        return edge


class SpliceTransaction(_Transaction):
    """
    An open splice.

    Attributes
    ----------
    junction : int    The grafted attachment node, now of degree three.
    target   : Edge   The remainder edge that was split.
    """

    def __init__(
        self, editor: "TopologyEditor", target: Edge, subtree_root: int
    ) -> None:
        super().__init__(editor)
        pool = self._pool
        x = int(subtree_root)
        a, b = int(target.node), int(target.back)

        prune = editor.innermost
        if not isinstance(prune, PruneTransaction) or prune.root != x:
            raise ConsistencyError(
                f"Splice of node {x} is not nested directly in the prune that opened it."
            )
        if pool.degree(x) != 1:
            raise ConsistencyError(f"Node {x} is not an open subtree root.")
        if not pool.connected(a, b):
            raise ConsistencyError(f"Cannot splice: {a} and {b} are not adjacent.")
        if a in prune.subtree_nodes or b in prune.subtree_nodes:
            raise ConsistencyError(
                f"Cannot splice into edge {a}-{b}: it lies in the pruned subtree."
            )
        self._save(a, b, x)

        half = pool.edge_length(a, b) / 2.0
        sa = pool.slot_of(a, b)
        sb = pool.slot_of(b, a)
        pool.adjacency[a, sa] = x
        pool.adjacency[b, sb] = x
        pool.length[a, sa] = half
        pool.length[b, sb] = half
        for w in (a, b):
            s = pool.open_slot(x)
            pool.adjacency[x, s] = w
            pool.length[x, s] = half

        self.junction = x
        self.target = Edge(a, b)
        self._open = True
        logger.debug("splice: grafted node %d into %d-%d", x, a, b)


class TopologyEditor:
    """
    Factory and ordering guard for prune/splice transactions on *pool*.
    """

    def __init__(self, pool: NodePool) -> None:
        self.pool = pool
        self._stack: List[_Transaction] = []

    @property
    def depth(self) -> int:
        """Number of open transactions."""
        return len(self._stack)

    @property
    def innermost(self) -> Optional[_Transaction]:
        return self._stack[-1] if self._stack else None

    def prune(self, edge: Edge) -> PruneTransaction:
        """
        Detach the subtree on ``edge.node``'s side of *edge*.

        Raises
        ------
        ConsistencyError   if ``edge.back`` does not have exactly two other
                           neighbours.
        """
        transaction = PruneTransaction(self, edge)
        self._stack.append(transaction)
        return transaction

    def splice(self, target: Edge, subtree_root: int) -> SpliceTransaction:
        """
        Graft the open subtree at *subtree_root* onto remainder edge *target*.

        Raises
        ------
        ConsistencyError   if *subtree_root* is not the open branch of the
                           innermost prune, or *target* is not a remainder edge.
        """
        transaction = SpliceTransaction(self, target, subtree_root)
        self._stack.append(transaction)
        return transaction

    def _close(self, transaction: _Transaction) -> None:
        if not transaction.is_open:
            raise ConsistencyError("Transaction is already closed.")
        if self.innermost is not transaction:
            raise ConsistencyError(
                "Transactions must be closed innermost first; "
                f"{len(self._stack)} open, this one is not on top."
            )
        self._stack.pop()
