"""
Ridge/valley feature graphs.

``FeatureGraph`` runs the whole extraction: candidate selection on a
downsampled grid, a spanning forest over adjacent candidates, spur pruning and
finally skeleton tracing, where branch and leaf cells become nodes and chains
of degree-2 cells collapse into polyline edges.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

import numpy as np
import structlog

from ..config import settings
from .feature_candidates import CandidateSet, FeaturePolarity, select_candidates
from .spanning_forest import CandidateEdge, build_spanning_forest

logger = structlog.get_logger()


@dataclass(eq=False)
class FeatureNode:
    """Branch point or end point of the skeleton."""

    id: int
    position: np.ndarray  # (x, y) in source pixel units
    edges: List[int] = field(default_factory=list)

    @property
    def degree(self) -> int:
        return len(self.edges)


@dataclass(eq=False)
class FeatureEdge:
    """Polyline between two feature nodes, endpoints included."""

    id: int
    node_start: int
    node_end: int
    path: np.ndarray  # (k, 2) array of (x, y)

    def other(self, node_id: int) -> int:
        return self.node_end if node_id == self.node_start else self.node_start


def smooth_positions(
    candidates: CandidateSet,
    adjacency: Dict[int, List[int]],
    self_weight: float,
) -> Dict[int, np.ndarray]:
    """
    One-hop weighted average of node positions.

    Each node's position is averaged with its direct neighbours, weighted by
    elevation magnitude. The node's own weight is scaled by ``self_weight`` so
    that neighbouring leaves do not collapse onto the same point.
    """
    grid = candidates.grid
    spacing = candidates.grid_spacing
    coords = candidates.coordinates

    def raw(node_id):
        r, c = coords[node_id]
        return np.array([c, r], dtype=np.float64) * spacing, abs(float(grid[r, c]))

    smoothed = {}
    for node_id, neighbours in adjacency.items():
        own_position, own_weight = raw(node_id)
        weight = self_weight * own_weight
        position = weight * own_position
        for other in neighbours:
            other_position, other_weight = raw(other)
            weight += other_weight
            position = position + other_weight * other_position

        if weight > 0:
            smoothed[node_id] = position / weight
        else:
            smoothed[node_id] = own_position
    return smoothed


class FeatureGraph:
    """
    Ridge or valley skeleton of an elevation field.

    Nodes are keyed by their candidate id, edges by a counter local to this
    graph. The graph is a forest by construction. Both tables are exposed as
    read-only mappings.
    """

    def __init__(
        self,
        heightmap: np.ndarray,
        grid_spacing: Optional[int] = None,
        profile_length: Optional[int] = None,
        polarity: FeaturePolarity = FeaturePolarity.RIDGE,
        self_weight: Optional[float] = None,
    ):
        """
        Extract the feature graph.

        Args:
            heightmap: 2D float elevation field, NaN marks missing data
            grid_spacing: Downsample factor, defaults to settings
            profile_length: Odd crest profile length >= 3, defaults to settings
            polarity: RIDGE or VALLEY
            self_weight: Own-weight multiplier for position smoothing (> 1)
        """
        grid_spacing = settings.default_grid_spacing if grid_spacing is None else grid_spacing
        profile_length = (
            settings.default_profile_length if profile_length is None else profile_length
        )
        self_weight = settings.smoothing_self_weight if self_weight is None else self_weight

        heightmap = np.asarray(heightmap)
        if heightmap.ndim != 2 or heightmap.size == 0:
            raise ValueError(f"heightmap must be a non-empty 2D array, got shape {heightmap.shape}")
        if not np.issubdtype(heightmap.dtype, np.number):
            raise ValueError(f"heightmap must be numeric, got {heightmap.dtype}")
        if int(grid_spacing) != grid_spacing or grid_spacing < 1:
            raise ValueError(f"grid_spacing must be an integer >= 1, got {grid_spacing}")
        if int(profile_length) != profile_length or profile_length < 3 or profile_length % 2 == 0:
            raise ValueError(f"profile_length must be an odd integer >= 3, got {profile_length}")
        if self_weight <= 1.0:
            raise ValueError(f"self_weight must be greater than 1, got {self_weight}")
        try:
            polarity = FeaturePolarity(polarity)
        except ValueError:
            raise ValueError(f"polarity must be RIDGE (1) or VALLEY (-1), got {polarity}") from None

        self.grid_spacing = int(grid_spacing)
        self.profile_length = int(profile_length)
        self.polarity = polarity

        self._nodes: Dict[int, FeatureNode] = {}
        self._edges: Dict[int, FeatureEdge] = {}

        self.candidates = select_candidates(
            heightmap.astype(np.float32), self.grid_spacing, self.profile_length, polarity
        )
        forest = build_spanning_forest(self.candidates, self.profile_length)
        self._trace(forest, self_weight)

        logger.info(
            "Feature graph extracted",
            polarity=polarity.name,
            candidates=len(self.candidates),
            nodes=len(self._nodes),
            edges=len(self._edges),
        )

    def _trace(self, forest: List[CandidateEdge], self_weight: float) -> None:
        """Collapse degree-2 chains of ``forest`` into polyline edges."""
        adjacency: Dict[int, List[int]] = {}
        for e in forest:
            adjacency.setdefault(e.id1, []).append(e.id2)
            adjacency.setdefault(e.id2, []).append(e.id1)

        positions = smooth_positions(self.candidates, adjacency, self_weight)

        visited = set()
        edge_counter = 0

        # Every tree of the forest has at least two leaves, so starting from
        # leaves reaches every node with an edge
        for start in sorted(adjacency):
            if len(adjacency[start]) != 1 or start in visited:
                continue

            visited.add(start)
            self._nodes[start] = FeatureNode(start, positions[start])
            to_process = [start]

            while to_process:
                current = to_process.pop()
                for nxt in adjacency[current]:
                    if nxt in visited:
                        continue
                    visited.add(nxt)

                    path = [positions[current]]
                    previous = current
                    while len(adjacency[nxt]) == 2:
                        path.append(positions[nxt])
                        a, b = adjacency[nxt]
                        previous, nxt = nxt, (b if a == previous else a)
                        visited.add(nxt)

                    node = FeatureNode(nxt, positions[nxt])
                    self._nodes[nxt] = node
                    path.append(node.position)

                    edge = FeatureEdge(edge_counter, current, nxt, np.array(path))
                    edge_counter += 1
                    self._nodes[current].edges.append(edge.id)
                    node.edges.append(edge.id)
                    self._edges[edge.id] = edge

                    to_process.append(nxt)

    def nodes(self) -> Mapping[int, FeatureNode]:
        """Read-only view of nodes keyed by id."""
        return MappingProxyType(self._nodes)

    def edges(self) -> Mapping[int, FeatureEdge]:
        """Read-only view of edges keyed by id."""
        return MappingProxyType(self._edges)

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def polylines(self) -> List[np.ndarray]:
        """Edge paths ordered by edge id."""
        return [self._edges[i].path for i in sorted(self._edges)]
