"""
_tree.py
========
An unrooted phylogenetic tree stored in a ``NodePool``, with a minimal
NEWICK reader and writer.

Public API
----------
  Tree(newick_string, pool=None)
      Constructor.  Parses the NEWICK string into *pool* (a fresh pool when
      omitted).  Nodes of earlier trees in the same pool are left alone; call
      ``pool.reclaim(tree.root)`` to sweep them.

  .nodes()           IDs reachable from the root
  .tips()            tip IDs reachable from the root
  .names             tip names reachable from the root
  .edges()           (a, b) pairs, a < b, one per edge
  .to_newick()       NEWICK string of the tree as currently connected

  write_newick(pool, node, parent=-1)
      NEWICK string for the component containing *node*, or, when *parent*
      is given, for the clade hanging off *node* away from *parent*.

Topology conventions
--------------------
The NEWICK root is not kept as a node of its own unless it has three
children.  A bifurcating root is suppressed: its two children are joined by
one edge whose length is the sum of both lengths.  A root with a single child
is dropped and the child becomes the root.  Any other node must have exactly
two children, so that no node ends up with degree above three.

Branch lengths are kept per edge.  Internal node labels (support values) are
read and discarded.  Quoted labels and comments are not supported.
"""

import math
from typing import List, Optional, Tuple

import numpy as np

from sprtrace._errors import MalformedTreeError
from sprtrace._pool import NodePool, OPEN
from sprtrace._utils import format_newick

_DELIMITERS = ":,);\t\n\r "


def _join_lengths(a: float, b: float) -> float:
    """Sum two branch lengths, treating NaN (no length given) as absent."""
    if math.isnan(a):
        return b
    if math.isnan(b):
        return a
    return a + b


def _format_length(length: float) -> str:
    if math.isnan(length):
        return ""
    return ":" + format(length, ".10g")


class Tree:
    """
    An unrooted, at most trifurcating tree addressed by pool node IDs.

    Attributes
    ----------
    pool   : NodePool   Arena holding the nodes.
    root   : int        Node ID used as the traversal start.
    newick : str        The text the tree was parsed from.
    """

    def __init__(self, newick_string: str, pool: Optional[NodePool] = None) -> None:
        self.pool = pool if pool is not None else NodePool()
        self.newick = newick_string
        self.root: int = self._parse_newick(newick_string)

    # ================================================================== #
    # Public methods                                                       #
    # ================================================================== #

    def nodes(self) -> np.ndarray:
        return np.flatnonzero(self.pool.reachable(self.root))

    def tips(self) -> List[int]:
        return [int(n) for n in self.nodes() if self.pool.is_tip(int(n))]

    @property
    def names(self) -> List[str]:
        return [self.pool.names[n] for n in self.tips()]

    @property
    def n_tips(self) -> int:
        return len(self.tips())

    def edges(self) -> List[Tuple[int, int]]:
        out = []
        for a in self.nodes():
            a = int(a)
            for b in self.pool.neighbors(a):
                if a < b:
                    out.append((a, b))
        return out

    def to_newick(self) -> str:
        return write_newick(self.pool, self.root)

    def __repr__(self) -> str:
        return f"Tree({self.to_newick()!r})"

    # ================================================================== #
    # Private instance methods                                             #
    # ================================================================== #

    def _parse_newick(self, newick_string: str) -> int:
        """
        **Private.**  Parse *newick_string* into ``self.pool`` and return the
        root node ID.

        Iterative, stack-based character scan; no recursion.  Each stack
        level collects the (node, length) pairs of one parenthesised group.

        Raises
        ------
        MalformedTreeError   on unbalanced parentheses, unnamed tips,
                             unparsable lengths or a node of degree > 3.
        """
        pool = self.pool
        s = newick_string.strip()
        n_chars = len(s)

        stack: List[List[Tuple[int, float]]] = [[]]
        root: Optional[int] = None

        i = 0
        while i < n_chars:
            c = s[i]

            if c in " \t\r\n" or c == ",":
                i += 1
                continue

            if c == ";":
                break

            if c == "(":
                stack.append([])
                i += 1
                continue

            if c == ")":
                if len(stack) < 2:
                    raise MalformedTreeError(f"Unbalanced ')' at offset {i}.")
                children = stack.pop()
                i += 1

                # Internal label (support value): read and discard.
                while i < n_chars and s[i] in " \t":
                    i += 1
                while i < n_chars and s[i] not in _DELIMITERS:
                    i += 1
                i, length = self._read_length(s, i, n_chars)

                if len(stack) == 1:
                    root = self._close_root(children)
                    continue

                if len(children) != 2:
                    raise MalformedTreeError(
                        f"Inner node with {len(children)} children at offset {i}; "
                        "only the root may have other than two."
                    )
                node = pool.allocate()
                for child, child_length in children:
                    pool.connect(node, child, child_length)
                stack[-1].append((node, length))
                continue

            # Tip
            j = i
            while j < n_chars and s[j] not in _DELIMITERS and s[j] not in "(":
                j += 1
            if j == i:
                raise MalformedTreeError(f"Unnamed tip at offset {i}.")
            node = pool.allocate(s[i:j])
            i, length = self._read_length(s, j, n_chars)
            stack[-1].append((node, length))

        if len(stack) != 1:
            raise MalformedTreeError("Unbalanced '(' in NEWICK string.")

        if root is None:
            # No enclosing parentheses: a bare tip such as "A;".
            if len(stack[0]) != 1:
                raise MalformedTreeError("NEWICK string does not describe one tree.")
            root = stack[0][0][0]
        elif stack[0]:
            raise MalformedTreeError("Text after the closing ')' of the root.")

        return root

    def _close_root(self, children: List[Tuple[int, float]]) -> int:
        """
        **Private.**  Build the root from its children and return its ID,
        suppressing degree-one and degree-two roots.
        """
        pool = self.pool
        k = len(children)

        if k == 3:
            node = pool.allocate()
            for child, child_length in children:
                pool.connect(node, child, child_length)
            return node

        if k == 2:
            (a, la), (b, lb) = children
            pool.connect(a, b, _join_lengths(la, lb))
            return b if pool.is_tip(a) else a

        if k == 1:
            node = children[0][0]
            if not pool.is_tip(node) and pool.degree(node) == 2:
                a, b = pool.neighbors(node)
                la = pool.edge_length(node, a)
                lb = pool.edge_length(node, b)
                pool.adjacency[a, pool.slot_of(a, node)] = OPEN
                pool.adjacency[b, pool.slot_of(b, node)] = OPEN
                pool.release(node)
                pool.connect(a, b, _join_lengths(la, lb))
                return b if pool.is_tip(a) else a
            return node

        raise MalformedTreeError(
            f"Root with {k} children; an unrooted tree allows at most three."
        )

    @staticmethod
    def _read_length(s: str, i: int, n_chars: int) -> Tuple[int, float]:
        """
        **Private static.**  Read an optional ``:length`` starting at *i*.

        Returns the new scan position and the length (NaN when absent).
        """
        while i < n_chars and s[i] in " \t":
            i += 1
        if i >= n_chars or s[i] != ":":
            return i, math.nan
        i += 1
        while i < n_chars and s[i] in " \t":
            i += 1
        j = i
        while j < n_chars and s[j] not in ",);\t\n\r ":
            j += 1
        try:
            length = float(s[i:j])
        except ValueError:
            raise MalformedTreeError(
                f"Unparsable branch length {s[i:j]!r} at offset {i}."
            ) from None
        return j, length


# ====================================================================== #
# NEWICK writer                                                            #
# ====================================================================== #


def _write_clade(pool: NodePool, node: int, parent: int) -> str:
    """
    NEWICK text for the clade at *node* seen from *parent*, without the
    length of the (node, parent) edge itself.

    Iterative post-order with a phase flag per stack entry.
    """
    out: List[str] = []
    stack: List[Tuple[int, int, bool]] = [(node, parent, False)]
    while stack:
        n, p, done = stack.pop()
        children = [v for v in pool.neighbors(n) if v != p]
        if not done:
            stack.append((n, p, True))
            for v in reversed(children):
                stack.append((v, n, False))
            continue
        if not children:
            text = pool.names[n]
        else:
            parts = out[len(out) - len(children):]
            del out[len(out) - len(children):]
            text = "(" + ",".join(parts) + ")"
        if n != node:
            text += _format_length(pool.edge_length(n, p))
        out.append(text)
    return out[0]


def write_newick(pool: NodePool, node: int, parent: int = OPEN) -> str:
    """
    Return a NEWICK string.

    With *parent* given, the result is the rooted clade on *node*'s side of
    the (node, parent) edge.  Otherwise the whole component containing
    *node* is written unrooted, starting from an internal node when one
    exists so that a trifurcation is written as ``(a,b,c);``.
    """
    if parent != OPEN:
        return format_newick(_write_clade(pool, node, parent))

    if pool.is_tip(node):
        neighbors = pool.neighbors(node)
        if not neighbors:
            return format_newick(pool.names[node])
        other = neighbors[0]
        if pool.is_tip(other):
            length = _format_length(pool.edge_length(node, other))
            return format_newick(f"({pool.names[node]},{pool.names[other]}{length})")
        node = other

    return format_newick(_write_clade(pool, node, OPEN))
