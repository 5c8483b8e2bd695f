"""
Ridge and valley candidate selection.

The elevation field is reduced to an operational grid and each grid cell is
tested for being a crest along one of four lattice directions.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple

import numpy as np
import structlog

logger = structlog.get_logger()

# Forward lattice directions as (row, col) offsets: east, south, south-east, south-west
FORWARD_NEIGHBOURS = ((0, 1), (1, 0), (1, 1), (1, -1))

# Fraction of the source value range an elevation drop must exceed
THRESHOLD_FRACTION = 0.01


class FeaturePolarity(IntEnum):
    """Which crests to extract."""

    RIDGE = 1
    VALLEY = -1


@dataclass
class CandidateSet:
    """Candidate crest cells on the operational grid."""

    grid: np.ndarray  # downsampled field, negated for valleys
    node_ids: np.ndarray  # candidate id per grid cell, -1 elsewhere
    coordinates: np.ndarray  # (n, 2) (row, col) per candidate id
    threshold: float
    grid_spacing: int

    def __len__(self) -> int:
        return len(self.coordinates)

    def is_candidate(self, row: int, col: int) -> bool:
        return self.node_ids[row, col] >= 0


def downsample_nearest(field: np.ndarray, grid_spacing: int) -> np.ndarray:
    """
    Nearest-neighbour downsample of ``field`` by an integer factor.

    The output extent is ``field.shape // grid_spacing``; output cell ``i``
    samples source index ``floor(i * n / m)`` along each axis.
    """
    rows, cols = field.shape
    out_rows, out_cols = rows // grid_spacing, cols // grid_spacing
    if out_rows == 0 or out_cols == 0:
        raise ValueError(
            f"grid_spacing {grid_spacing} is larger than the field extent {field.shape}"
        )
    row_idx = (np.arange(out_rows) * rows) // out_rows
    col_idx = (np.arange(out_cols) * cols) // out_cols
    return field[np.ix_(row_idx, col_idx)]


def _shift_slices(shift: int, length: int) -> Tuple[slice, slice]:
    """Slices selecting cells p and p + shift that are both in bounds."""
    return slice(max(0, -shift), length - max(0, shift)), slice(max(0, shift), length + min(0, shift))


def _profile_drop(
    grid: np.ndarray, direction: Tuple[int, int], steps: int, threshold: float
) -> np.ndarray:
    """
    True where some cell within ``steps`` along ``direction`` lies more than
    ``threshold`` below.
    """
    rows, cols = grid.shape
    hit = np.zeros(grid.shape, dtype=bool)
    for step in range(1, steps + 1):
        dr, dc = direction[0] * step, direction[1] * step
        if abs(dr) >= rows or abs(dc) >= cols:
            break
        p_rows, q_rows = _shift_slices(dr, rows)
        p_cols, q_cols = _shift_slices(dc, cols)
        with np.errstate(invalid="ignore"):
            hit[p_rows, p_cols] |= (grid[p_rows, p_cols] - grid[q_rows, q_cols]) > threshold
    return hit


def select_candidates(
    field: np.ndarray,
    grid_spacing: int,
    profile_length: int,
    polarity: FeaturePolarity = FeaturePolarity.RIDGE,
) -> CandidateSet:
    """
    Mark crest cells of ``field`` on a grid downsampled by ``grid_spacing``.

    A cell is a candidate if, along at least one of the four lattice
    directions, both the forward and the backward walk of up to
    ``profile_length // 2`` steps reach a cell lower by more than 1% of the
    field's value range. Valleys are found as ridges of the negated field.

    Args:
        field: 2D elevation field, NaN cells are never candidates
        grid_spacing: Downsample factor (>= 1)
        profile_length: Odd profile length (>= 3)
        polarity: RIDGE or VALLEY

    Returns:
        CandidateSet with ids assigned in row-major discovery order
    """
    polarity = FeaturePolarity(polarity)
    grid = downsample_nearest(field, grid_spacing).astype(np.float32) * int(polarity)

    finite = field[np.isfinite(field)]
    if finite.size == 0:
        threshold = 0.0
    else:
        threshold = THRESHOLD_FRACTION * float(finite.max() - finite.min())

    steps = profile_length // 2
    marked = np.zeros(grid.shape, dtype=bool)
    for dr, dc in FORWARD_NEIGHBOURS:
        forward = _profile_drop(grid, (dr, dc), steps, threshold)
        backward = _profile_drop(grid, (-dr, -dc), steps, threshold)
        marked |= forward & backward

    coordinates = np.argwhere(marked)
    node_ids = np.full(grid.shape, -1, dtype=np.int64)
    node_ids[coordinates[:, 0], coordinates[:, 1]] = np.arange(len(coordinates))

    logger.debug(
        "Selected feature candidates",
        polarity=polarity.name,
        grid_shape=grid.shape,
        threshold=threshold,
        candidates=len(coordinates),
    )
    return CandidateSet(
        grid=grid,
        node_ids=node_ids,
        coordinates=coordinates,
        threshold=threshold,
        grid_spacing=grid_spacing,
    )
