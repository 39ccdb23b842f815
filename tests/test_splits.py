"""
tests/test_splits.py
====================
Pytest test suite for split computation and lookup.

Fixture trees (see tests/test_tree.py for node IDs)
---------------------------------------------------
  star_4tip.tree        (A:1,B:2,(C:3,D:4):5);
                        A=0 B=1 C=2 D=3 CD=4 root=5
  caterpillar_6tip.tree (A,B,(C,(D,(E,F))));
  two_tip.tree          (Alpha:1.0,Beta:2.0);

Orientation
-----------
Tip A (the smallest name) is the reference tip, so every stored split is
the side of its edge that does NOT contain A.  For the star tree:

  edge       stored split
  A-root     {B,C,D}
  B-root     {B}
  C-CD       {C}
  D-CD       {D}
  CD-root    {C,D}
"""

import os
import sys

import numpy as np
import pytest

_TREES_DIR = os.path.join(os.path.dirname(__file__), "trees")

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from sprtrace._errors import (
    EmptyTreeError,
    MalformedTreeError,
    SplitNotFoundError,
    UnknownTipError,
)
from sprtrace._splits import Edge, compute_splits, resolve
from sprtrace._tree import Tree


# ======================================================================== #
# Helpers                                                                   #
# ======================================================================== #


def load_tree(filename: str) -> Tree:
    with open(os.path.join(_TREES_DIR, filename)) as fh:
        return Tree(fh.read().strip())


def side_names(tree: Tree, edge: Edge) -> set:
    """Tip names reachable from edge.node without crossing to edge.back."""
    pool = tree.pool
    seen = {edge.node, edge.back}
    stack = [edge.node]
    names = set()
    while stack:
        node = stack.pop()
        if pool.is_tip(node):
            names.add(pool.names[node])
        for v in pool.neighbors(node):
            if v not in seen:
                seen.add(v)
                stack.append(v)
    return names


# ======================================================================== #
# Fixtures                                                                  #
# ======================================================================== #


@pytest.fixture(scope="module")
def star():
    tree = load_tree("star_4tip.tree")
    index, names = compute_splits(tree)
    return tree, index, names


@pytest.fixture(scope="module")
def caterpillar():
    tree = load_tree("caterpillar_6tip.tree")
    index, names = compute_splits(tree)
    return tree, index, names


# ======================================================================== #
# Index construction                                                        #
# ======================================================================== #


class TestComputeSplits:
    def test_sorted_names(self, star):
        _, index, names = star
        assert names == ["A", "B", "C", "D"]
        assert index.sorted_names is names
        assert index.n_tips == 4

    @pytest.mark.parametrize(
        "filename, n_edges",
        [
            ("star_4tip.tree", 5),
            ("balanced_4tip.tree", 5),
            ("caterpillar_6tip.tree", 9),
            ("two_tip.tree", 1),
        ],
    )
    def test_one_entry_per_edge(self, filename, n_edges):
        tree = load_tree(filename)
        index, _ = compute_splits(tree)
        assert len(index) == n_edges == len(tree.edges())
        assert index.splits.shape == (n_edges, tree.n_tips)
        assert sorted(e.key() for e in index.edges) == sorted(tree.edges())

    @pytest.mark.parametrize(
        "filename",
        ["star_4tip.tree", "balanced_4tip.tree", "caterpillar_6tip.tree"],
    )
    def test_split_sizes_strictly_inside(self, filename):
        tree = load_tree(filename)
        index, names = compute_splits(tree)
        counts = index.splits.sum(axis=1)
        assert np.all(counts >= 1)
        assert np.all(counts <= len(names) - 1)

    def test_reference_tip_never_stored(self, caterpillar):
        _, index, _ = caterpillar
        assert not np.any(index.splits[:, 0])

    def test_splits_are_distinct(self, caterpillar):
        _, index, _ = caterpillar
        assert len({row.tobytes() for row in index.splits}) == len(index)

    def test_stored_side_matches_tree(self, caterpillar):
        tree, index, _ = caterpillar
        for row, edge in enumerate(index.edges):
            assert set(index.tip_names(index.splits[row])) == side_names(tree, edge)

    def test_star_splits(self, star):
        _, index, _ = star
        stored = sorted(tuple(index.tip_names(row)) for row in index.splits)
        assert stored == [("B",), ("B", "C", "D"), ("C",), ("C", "D"), ("D",)]

    def test_two_tip_split(self):
        tree = load_tree("two_tip.tree")
        index, names = compute_splits(tree)
        assert names == ["Alpha", "Beta"]
        np.testing.assert_array_equal(index.splits, [[False, True]])

    def test_split_of_either_orientation(self, star):
        _, index, _ = star
        np.testing.assert_array_equal(
            index.split_of(Edge(4, 5)), index.split_of(Edge(5, 4))
        )
        assert index.tip_names(index.split_of(Edge(5, 4))) == ["C", "D"]

    def test_split_of_unknown_edge(self, star):
        _, index, _ = star
        with pytest.raises(SplitNotFoundError):
            index.split_of(Edge(0, 1))

    def test_contains(self, star):
        _, index, _ = star
        assert np.array([False, False, True, True]) in index
        assert np.array([False, True, True, False]) not in index


class TestComputeSplitsErrors:
    @pytest.mark.parametrize("newick", ["A;", "(A);"])
    def test_fewer_than_two_tips(self, newick):
        with pytest.raises(EmptyTreeError):
            compute_splits(Tree(newick))

    def test_duplicate_names(self):
        with pytest.raises(MalformedTreeError, match="Duplicate tip name 'A'"):
            compute_splits(Tree("(A,B,(A,D));"))


# ======================================================================== #
# Lookup                                                                    #
# ======================================================================== #


class TestResolve:
    def test_canonical_side(self, star):
        _, index, names = star
        assert resolve(index, names, ["C", "D"]) == Edge(4, 5)

    def test_complement_side_is_reoriented(self, star):
        _, index, names = star
        edge = resolve(index, names, ["A", "B"])
        assert edge == Edge(5, 4)
        assert edge.key() == Edge(4, 5).key()

    def test_single_reference_tip(self, star):
        _, index, names = star
        assert resolve(index, names, ["A"]) == Edge(0, 5)

    def test_order_and_repeats_ignored(self, star):
        _, index, names = star
        assert resolve(index, names, ["D", "C", "D"]) == Edge(4, 5)

    def test_method_form(self, star):
        _, index, names = star
        assert index.resolve(["B"]) == resolve(index, names, ["B"])

    def test_round_trip_every_edge(self, caterpillar):
        tree, index, names = caterpillar
        for row, edge in enumerate(index.edges):
            inside = index.tip_names(index.splits[row])
            outside = sorted(set(names) - set(inside))
            assert resolve(index, names, inside) == edge
            assert resolve(index, names, outside) == edge.reversed()

    def test_returned_node_is_on_queried_side(self, caterpillar):
        tree, index, names = caterpillar
        for query in (["A", "B"], ["E", "F"], ["A", "B", "C"], ["C", "D", "E", "F"]):
            edge = resolve(index, names, query)
            assert side_names(tree, edge) == set(query)

    @pytest.mark.parametrize(
        "query",
        [["B", "C"], ["A", "C"], [], ["A", "B", "C", "D"]],
    )
    def test_not_found(self, star, query):
        _, index, names = star
        with pytest.raises(SplitNotFoundError):
            resolve(index, names, query)

    def test_no_complement_fallback(self, caterpillar):
        _, index, names = caterpillar
        # {B,C} is not a split; neither is its complement {A,D,E,F}.
        with pytest.raises(SplitNotFoundError):
            resolve(index, names, ["B", "C"])
        with pytest.raises(SplitNotFoundError):
            resolve(index, names, ["A", "D", "E", "F"])

    @pytest.mark.parametrize("query", [["Zzz"], ["A", "Zzz"], ["0"], ["AA"]])
    def test_unknown_tip(self, star, query):
        _, index, names = star
        with pytest.raises(UnknownTipError, match="No tip named"):
            resolve(index, names, query)

    def test_unknown_tip_is_key_error(self, star):
        _, index, names = star
        with pytest.raises(KeyError):
            resolve(index, names, ["Zzz"])

    def test_edge_for_exact_vector(self, star):
        _, index, _ = star
        assert index.edge_for(np.array([False, True, False, False])) == Edge(1, 5)
