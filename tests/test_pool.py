"""
tests/test_pool.py
==================
Pytest test suite for NodePool: allocation, growth, symmetric adjacency and
mark-and-sweep reclamation between tree generations.
"""

import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from sprtrace._errors import ConsistencyError
from sprtrace._pool import MAX_DEGREE, OPEN, NodePool
from sprtrace._tree import Tree


# ======================================================================== #
# Allocation                                                                #
# ======================================================================== #


class TestAllocation:
    def test_ids_start_at_zero(self):
        pool = NodePool()
        assert [pool.allocate() for _ in range(3)] == [0, 1, 2]
        assert pool.n_live == 3

    def test_fresh_node_is_open(self):
        pool = NodePool()
        node = pool.allocate("A")
        assert pool.names[node] == "A"
        assert pool.degree(node) == 0
        assert np.all(pool.adjacency[node] == OPEN)

    def test_growth_doubles_capacity(self):
        pool = NodePool(capacity=2)
        ids = [pool.allocate() for _ in range(3)]
        assert ids == [0, 1, 2]
        assert pool.capacity == 4
        assert pool.adjacency.shape == (4, MAX_DEGREE)
        assert len(pool.names) == 4

    def test_growth_keeps_existing_rows(self):
        pool = NodePool(capacity=2)
        a = pool.allocate("A")
        b = pool.allocate("B")
        pool.connect(a, b, 1.5)
        pool.allocate()
        assert pool.connected(a, b)
        assert pool.edge_length(a, b) == 1.5

    def test_release_reuses_id(self):
        pool = NodePool()
        pool.allocate()
        node = pool.allocate("B")
        pool.release(node)
        assert not pool.live[node]
        assert pool.names[node] == ""
        assert pool.allocate() == node


# ======================================================================== #
# Adjacency                                                                 #
# ======================================================================== #


class TestAdjacency:
    @pytest.fixture
    def claw(self):
        pool = NodePool()
        hub = pool.allocate()
        leaves = [pool.allocate(name) for name in "ABC"]
        for i, leaf in enumerate(leaves):
            pool.connect(hub, leaf, float(i + 1))
        return pool, hub, leaves

    def test_connect_is_symmetric(self, claw):
        pool, hub, leaves = claw
        for leaf in leaves:
            assert pool.neighbors(leaf) == [hub]
            assert pool.connected(hub, leaf)
        assert pool.neighbors(hub) == leaves

    def test_lengths_stored_on_both_ends(self, claw):
        pool, hub, leaves = claw
        for i, leaf in enumerate(leaves):
            assert pool.edge_length(hub, leaf) == pool.edge_length(leaf, hub) == i + 1

    def test_full_node_rejects_fourth_neighbour(self, claw):
        pool, hub, _ = claw
        extra = pool.allocate("D")
        with pytest.raises(ConsistencyError):
            pool.connect(hub, extra)

    def test_slot_of_non_neighbour(self, claw):
        pool, _, leaves = claw
        with pytest.raises(ConsistencyError):
            pool.slot_of(leaves[0], leaves[1])

    def test_is_tip(self, claw):
        pool, hub, leaves = claw
        assert not pool.is_tip(hub)
        assert all(pool.is_tip(leaf) for leaf in leaves)


# ======================================================================== #
# Reclamation                                                               #
# ======================================================================== #


class TestReclaim:
    def test_reachable_mask(self):
        tree = Tree("(A,B,(C,D));")
        mask = tree.pool.reachable(tree.root)
        assert np.count_nonzero(mask) == 6

    def test_frees_previous_generation_only(self):
        pool = NodePool()
        first = Tree("(A,B,(C,(D,E)));", pool)
        second = Tree("(A,B,(C,D));", pool)
        old = set(int(n) for n in first.nodes())
        new = set(int(n) for n in second.nodes())

        n_freed = pool.reclaim(second.root)

        assert n_freed == len(old)
        assert pool.n_live == len(new)
        assert not np.any(pool.live[sorted(old)])
        assert np.all(pool.live[sorted(new)])
        assert second.to_newick() == "(A,B,(C,D));"

    def test_freed_rows_are_cleared(self):
        pool = NodePool()
        first = Tree("(A,B,(C,D));", pool)
        second = Tree("(X,Y,Z);", pool)
        pool.reclaim(second.root)
        for node in first.nodes():
            assert np.all(pool.adjacency[node] == OPEN)
            assert pool.names[node] == ""

    def test_reclaimed_ids_are_reused(self):
        pool = NodePool()
        first = Tree("(A,B,(C,D));", pool)
        old = set(int(n) for n in first.nodes())
        second = Tree("(X,Y,Z);", pool)
        pool.reclaim(second.root)
        third = Tree("(P,Q,R);", pool)
        assert set(int(n) for n in third.nodes()) <= old

    def test_nothing_to_reclaim(self):
        tree = Tree("(A,B,(C,D));")
        assert tree.pool.reclaim(tree.root) == 0
        assert tree.pool.n_live == 6
