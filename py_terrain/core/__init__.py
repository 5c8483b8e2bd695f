"""
Core heightmap synthesis and feature extraction.
"""

from .grid_indexer import VariableIndex
from .sparse_solver import SolverOptions, LeastSquaresResult, SolverConvergenceError, solve_least_squares
from .poisson_seam import SeamSolveResult, poisson_seam_removal
from .patch_compositor import place_patch, place_mask, seam_ring
from .feature_candidates import FeaturePolarity, CandidateSet, select_candidates
from .spanning_forest import CandidateEdge, DisjointSet, build_spanning_forest
from .feature_graph import FeatureGraph, FeatureNode, FeatureEdge
from .terrain_io import (
    Terrain, UnsupportedRasterFormat, read_image, read_geotiff,
    heightmap_to_image, write_ascii_grid, read_ascii_grid,
)

RIDGE = FeaturePolarity.RIDGE
VALLEY = FeaturePolarity.VALLEY

__all__ = ['VariableIndex', 'SolverOptions', 'LeastSquaresResult', 'SolverConvergenceError',
           'solve_least_squares', 'SeamSolveResult', 'poisson_seam_removal',
           'place_patch', 'place_mask', 'seam_ring',
           'FeaturePolarity', 'CandidateSet', 'select_candidates', 'RIDGE', 'VALLEY',
           'CandidateEdge', 'DisjointSet', 'build_spanning_forest',
           'FeatureGraph', 'FeatureNode', 'FeatureEdge',
           'Terrain', 'UnsupportedRasterFormat', 'read_image', 'read_geotiff',
           'heightmap_to_image', 'write_ascii_grid', 'read_ascii_grid']
