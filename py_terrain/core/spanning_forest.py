"""
Candidate graph construction, cycle breaking and spur pruning.

Edges join candidate cells that are lattice neighbours. Cycles are removed with
Kruskal's algorithm over a union-find, keeping the edges with the highest
combined elevation (after polarity is applied), so retained edges follow the
strongest crest. Short dangling spurs are then eroded.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Tuple

import structlog

from .feature_candidates import FORWARD_NEIGHBOURS, CandidateSet

logger = structlog.get_logger()


@dataclass(frozen=True)
class CandidateEdge:
    """Edge between two candidate cells."""

    weight: float
    id1: int
    id2: int
    p1: Tuple[int, int]
    p2: Tuple[int, int]

    def other(self, node_id: int) -> int:
        return self.id2 if node_id == self.id1 else self.id1

    def point(self, node_id: int) -> Tuple[int, int]:
        return self.p1 if node_id == self.id1 else self.p2


class DisjointSet:
    """Union-find with path compression and union by rank."""

    def __init__(self):
        self._parent: Dict[int, int] = {}
        self._rank: Dict[int, int] = {}

    def find(self, item: int) -> int:
        parent = self._parent.setdefault(item, item)
        if parent == item:
            self._rank.setdefault(item, 0)
            return item

        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        # Compress
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: int, b: int) -> bool:
        """Merge the sets of ``a`` and ``b``; False if already connected."""
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return False

        rank_a, rank_b = self._rank[root_a], self._rank[root_b]
        if rank_a < rank_b:
            root_a, root_b = root_b, root_a
        self._parent[root_b] = root_a
        if rank_a == rank_b:
            self._rank[root_a] += 1
        return True


def build_candidate_edges(candidates: CandidateSet) -> List[CandidateEdge]:
    """
    Join every pair of lattice-adjacent candidates.

    Each pair is visited once through the forward directions. The weight is the
    negated sum of both cells' grid values, so an ascending sort puts the
    strongest crest connections first.
    """
    grid = candidates.grid
    node_ids = candidates.node_ids
    rows, cols = grid.shape

    edges = []
    for r, c in candidates.coordinates:
        p = (int(r), int(c))
        pid = int(node_ids[p])
        for dr, dc in FORWARD_NEIGHBOURS:
            q = (p[0] + dr, p[1] + dc)
            if not (0 <= q[0] < rows and 0 <= q[1] < cols):
                continue
            qid = int(node_ids[q])
            if qid < 0:
                continue
            weight = -(float(grid[p]) + float(grid[q]))
            edges.append(CandidateEdge(weight, pid, qid, p, q))
    return edges


def minimum_spanning_forest(edges: List[CandidateEdge]) -> List[CandidateEdge]:
    """
    Kruskal's minimum spanning forest.

    Edges are taken in ascending weight (stable for ties) and kept only when
    they join two different components.
    """
    components = DisjointSet()
    forest = []
    for edge in sorted(edges, key=lambda e: e.weight):
        if components.union(edge.id1, edge.id2):
            forest.append(edge)
    return forest


def prune_leaf_edges(edges: List[CandidateEdge], rounds: int) -> List[CandidateEdge]:
    """
    Erode dangling spurs.

    Each round recomputes node degrees and keeps an edge only if both of its
    endpoints have degree greater than one.
    """
    for _ in range(rounds):
        degree = Counter()
        for edge in edges:
            degree[edge.id1] += 1
            degree[edge.id2] += 1
        edges = [e for e in edges if degree[e.id1] > 1 and degree[e.id2] > 1]
        if not edges:
            break
    return edges


def build_spanning_forest(candidates: CandidateSet, profile_length: int) -> List[CandidateEdge]:
    """Candidate edges, cycle-free and pruned for ``profile_length // 2`` rounds."""
    edges = build_candidate_edges(candidates)
    forest = minimum_spanning_forest(edges)
    pruned = prune_leaf_edges(forest, profile_length // 2)
    logger.debug(
        "Built spanning forest",
        candidate_edges=len(edges),
        forest_edges=len(forest),
        pruned_edges=len(pruned),
    )
    return pruned
