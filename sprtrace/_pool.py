"""
_pool.py
========
A growable arena of tree nodes stored as parallel numpy arrays.

Every node is addressed by a stable integer ID for as long as it is live.
Adjacency is kept in a fixed-width table of three neighbour slots per node,
which is enough for an unrooted tree in which no node has degree above three.

Arrays
------
  adjacency : int32  [capacity, 3]   Neighbour IDs; -1 marks an open slot.
  length    : float64[capacity, 3]   Length of the edge in the same slot;
                                     NaN when the input gave none.
  live      : bool   [capacity]      True for allocated nodes.
  names     : list[str]              Tip name; '' for internal nodes.

Invariants
----------
* Adjacency is mutual: if ``b`` is in a slot of ``a`` then ``a`` is in a slot
  of ``b``, and both slots hold the same length.
* Freed nodes have every slot open and an empty name.

Generations
-----------
The pool never frees nodes on its own.  When a new tree has been built in it,
``reclaim(root)`` marks everything reachable from the new root and sweeps all
other live nodes onto the free list, which ``allocate`` reuses first.
"""

import logging
from typing import List

import numpy as np

from sprtrace._errors import ConsistencyError

logger = logging.getLogger(__name__)

MAX_DEGREE = 3
OPEN = -1


class NodePool:
    """
    Arena of nodes with symmetric three-slot adjacency.

    Parameters
    ----------
    capacity : int, default 64
        Initial number of node rows.  The arrays double when exhausted.
    """

    def __init__(self, capacity: int = 64) -> None:
        capacity = max(int(capacity), 1)
        self.adjacency = np.full((capacity, MAX_DEGREE), OPEN, dtype=np.int32)
        self.length = np.full((capacity, MAX_DEGREE), np.nan, dtype=np.float64)
        self.live = np.zeros(capacity, dtype=bool)
        self.names: List[str] = [""] * capacity
        self._free: List[int] = list(range(capacity - 1, -1, -1))

    # ================================================================== #
    # Allocation                                                           #
    # ================================================================== #

    @property
    def capacity(self) -> int:
        return int(self.live.shape[0])

    @property
    def n_live(self) -> int:
        return int(np.count_nonzero(self.live))

    def allocate(self, name: str = "") -> int:
        """Return the ID of a fresh node with all slots open."""
        if not self._free:
            self._grow()
        node = self._free.pop()
        self.live[node] = True
        self.names[node] = name
        return node

    def _grow(self) -> None:
        old = self.capacity
        new = 2 * old
        adjacency = np.full((new, MAX_DEGREE), OPEN, dtype=np.int32)
        length = np.full((new, MAX_DEGREE), np.nan, dtype=np.float64)
        live = np.zeros(new, dtype=bool)
        adjacency[:old] = self.adjacency
        length[:old] = self.length
        live[:old] = self.live
        self.adjacency = adjacency
        self.length = length
        self.live = live
        self.names.extend([""] * old)
        self._free.extend(range(new - 1, old - 1, -1))
        logger.debug("Node pool grown from %d to %d rows", old, new)

    def release(self, node: int) -> None:
        """Return *node* to the free list; the caller must have detached it."""
        self.adjacency[node] = OPEN
        self.length[node] = np.nan
        self.live[node] = False
        self.names[node] = ""
        self._free.append(node)

    # ================================================================== #
    # Adjacency                                                            #
    # ================================================================== #

    def neighbors(self, node: int) -> List[int]:
        """Neighbour IDs of *node* in slot order, open slots skipped."""
        return [int(v) for v in self.adjacency[node] if v != OPEN]

    def degree(self, node: int) -> int:
        return int(np.count_nonzero(self.adjacency[node] != OPEN))

    def is_tip(self, node: int) -> bool:
        return self.names[node] != ""

    def slot_of(self, node: int, neighbor: int) -> int:
        """
        Return the slot of *node* that holds *neighbor*.

        Raises
        ------
        ConsistencyError   if the two nodes are not adjacent.
        """
        hits = np.flatnonzero(self.adjacency[node] == neighbor)
        if hits.shape[0] == 0:
            raise ConsistencyError(f"Nodes {node} and {neighbor} are not adjacent.")
        return int(hits[0])

    def open_slot(self, node: int) -> int:
        hits = np.flatnonzero(self.adjacency[node] == OPEN)
        if hits.shape[0] == 0:
            raise ConsistencyError(
                f"Node {node} already has {MAX_DEGREE} neighbours; cannot attach."
            )
        return int(hits[0])

    def connected(self, a: int, b: int) -> bool:
        return bool(np.any(self.adjacency[a] == b)) and bool(
            np.any(self.adjacency[b] == a)
        )

    def connect(self, a: int, b: int, length: float = np.nan) -> None:
        """Join *a* and *b* in the first open slot of each."""
        sa = self.open_slot(a)
        sb = self.open_slot(b)
        self.adjacency[a, sa] = b
        self.adjacency[b, sb] = a
        self.length[a, sa] = length
        self.length[b, sb] = length

    def edge_length(self, a: int, b: int) -> float:
        return float(self.length[a, self.slot_of(a, b)])

    # ================================================================== #
    # Mark and sweep                                                       #
    # ================================================================== #

    def reachable(self, root: int) -> np.ndarray:
        """
        Boolean mask of the nodes reachable from *root* through adjacency.

        Iterative DFS over an explicit stack; no recursion.
        """
        mark = np.zeros(self.capacity, dtype=bool)
        mark[root] = True
        stack = [root]
        while stack:
            node = stack.pop()
            for v in self.adjacency[node]:
                if v != OPEN and not mark[v]:
                    mark[v] = True
                    stack.append(int(v))
        return mark

    def reclaim(self, root: int) -> int:
        """
        Free every live node not reachable from *root*.

        Returns
        -------
        int   Number of nodes returned to the free list.
        """
        mark = self.reachable(root)
        garbage = np.flatnonzero(self.live & ~mark)
        for node in garbage:
            self.release(int(node))
        if garbage.shape[0]:
            logger.debug(
                "Reclaimed %d node(s); %d live, capacity %d",
                garbage.shape[0],
                self.n_live,
                self.capacity,
            )
        return int(garbage.shape[0])
