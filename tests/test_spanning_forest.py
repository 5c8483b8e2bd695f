"""Tests for spanning forest construction and pruning."""

import numpy as np
from scipy.ndimage import gaussian_filter
from py_terrain.core.feature_candidates import select_candidates
from py_terrain.core.spanning_forest import (
    CandidateEdge, DisjointSet, build_candidate_edges, build_spanning_forest,
    minimum_spanning_forest, prune_leaf_edges
)


def edge(weight, a, b):
    return CandidateEdge(weight, a, b, (0, a), (0, b))


def chain(n):
    return [edge(0.0, i, i + 1) for i in range(n - 1)]


def smooth_noise(size=80, seed=7, sigma=3.0):
    rng = np.random.default_rng(seed)
    return gaussian_filter(rng.random((size, size)), sigma).astype(np.float32)


class TestDisjointSet:
    """Test union-find."""

    def test_union_and_find(self):
        """Test merging components."""
        ds = DisjointSet()
        assert ds.union(1, 2)
        assert ds.union(3, 4)
        assert ds.find(1) == ds.find(2)
        assert ds.find(1) != ds.find(3)
        assert ds.union(2, 4)
        assert ds.find(1) == ds.find(3)

    def test_union_of_connected_items(self):
        """Test that a cycle-closing union is refused."""
        ds = DisjointSet()
        ds.union(1, 2)
        ds.union(2, 3)
        assert not ds.union(1, 3)

    def test_long_chain_compresses(self):
        """Test that deep chains resolve to a single root."""
        ds = DisjointSet()
        for i in range(1000):
            ds.union(i, i + 1)
        roots = {ds.find(i) for i in range(1001)}
        assert len(roots) == 1


class TestMinimumSpanningForest:
    """Test cycle breaking."""

    def test_square_drops_heaviest_edge(self):
        """Test that the heaviest edge of a cycle is discarded."""
        edges = [edge(1.0, 0, 1), edge(2.0, 1, 2), edge(3.0, 2, 3), edge(9.0, 3, 0)]
        forest = minimum_spanning_forest(edges)

        assert len(forest) == 3
        assert all(e.weight != 9.0 for e in forest)

    def test_disconnected_components(self):
        """Test that every component keeps a spanning tree."""
        edges = [edge(1.0, 0, 1), edge(1.0, 1, 2), edge(1.0, 2, 0), edge(1.0, 5, 6)]
        forest = minimum_spanning_forest(edges)
        assert len(forest) == 3

    def test_ties_keep_input_order(self):
        """Test that equal weights are taken in input order."""
        edges = [edge(1.0, 0, 1), edge(1.0, 1, 2), edge(1.0, 2, 0)]
        forest = minimum_spanning_forest(edges)
        assert [(e.id1, e.id2) for e in forest] == [(0, 1), (1, 2)]


class TestPruneLeafEdges:
    """Test spur erosion."""

    def test_chain_loses_end_edges_each_round(self):
        """Test that each round removes the two end edges of a chain."""
        edges = chain(8)
        assert len(prune_leaf_edges(edges, 1)) == 5
        assert len(prune_leaf_edges(edges, 2)) == 3

    def test_short_spur_removed(self):
        """Test that a one-edge spur off a long chain disappears."""
        edges = chain(9) + [edge(0.0, 4, 20)]
        pruned = prune_leaf_edges(edges, 1)

        ids = {n for e in pruned for n in (e.id1, e.id2)}
        assert 20 not in ids
        assert 4 in ids

    def test_zero_rounds(self):
        """Test that no rounds keeps every edge."""
        edges = chain(4)
        assert prune_leaf_edges(edges, 0) == edges

    def test_single_edge_vanishes(self):
        """Test that an isolated edge is pruned."""
        assert prune_leaf_edges([edge(0.0, 0, 1)], 3) == []


class TestCandidateGraph:
    """Test edges between grid candidates."""

    def test_edges_join_lattice_neighbours(self):
        """Test edge endpoints and weights."""
        field = np.zeros((9, 9), dtype=np.float32)
        field[4, 2:7] = 10.0
        candidates = select_candidates(field, 1, 3)
        edges = build_candidate_edges(candidates)

        assert len(candidates) == 5
        assert len(edges) == 4
        for e in edges:
            assert abs(e.p1[0] - e.p2[0]) <= 1 and abs(e.p1[1] - e.p2[1]) <= 1
            assert e.weight == -20.0
            assert e.other(e.id1) == e.id2
            assert e.point(e.id2) == e.p2

    def test_forest_is_acyclic(self):
        """Test that at most one path joins any two nodes."""
        candidates = select_candidates(smooth_noise(), 1, 5)
        edges = build_candidate_edges(candidates)
        forest = minimum_spanning_forest(edges)

        assert len(edges) > len(forest) > 0
        ds = DisjointSet()
        for e in forest:
            assert ds.union(e.id1, e.id2)

    def test_build_spanning_forest_prunes(self):
        """Test the combined build keeps only nodes of degree > 1 in the last round."""
        candidates = select_candidates(smooth_noise(), 1, 5)
        full = minimum_spanning_forest(build_candidate_edges(candidates))
        pruned = build_spanning_forest(candidates, 5)

        assert len(pruned) < len(full)
        assert set(pruned) <= set(full)
