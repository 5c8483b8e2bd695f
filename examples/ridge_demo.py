#!/usr/bin/env python3
"""
Simple demo script showing ridge and valley extraction.
"""

import numpy as np
from scipy.ndimage import gaussian_filter
from py_terrain.core import FeatureGraph, RIDGE, VALLEY
from py_terrain.utils.logging import configure_logging


def main():
    """Demonstrate feature graph extraction."""
    configure_logging(fmt="console")

    print("Py-Terrain Feature Graph Demo")
    print("=" * 40)

    rng = np.random.default_rng(2024)
    heightmap = (gaussian_filter(rng.random((400, 400)), 12.0) * 4000).astype(np.float32)
    print(f"\nHeightmap {heightmap.shape}, range {heightmap.min():.1f}-{heightmap.max():.1f}")

    for polarity in (RIDGE, VALLEY):
        graph = FeatureGraph(heightmap, grid_spacing=5, profile_length=7, polarity=polarity)

        print(f"\n{polarity.name}:")
        print("-" * 30)
        print(f"  Candidates: {len(graph.candidates)}")
        print(f"  Nodes: {graph.node_count}")
        print(f"  Edges: {graph.edge_count}")

        lengths = [
            float(np.sum(np.linalg.norm(np.diff(path, axis=0), axis=1)))
            for path in graph.polylines()
        ]
        if lengths:
            print(f"  Longest edge: {max(lengths):.1f} px")
            print(f"  Mean edge: {np.mean(lengths):.1f} px")

        branches = sum(1 for n in graph.nodes().values() if n.degree > 2)
        print(f"  Branch points: {branches}")


if __name__ == "__main__":
    main()
