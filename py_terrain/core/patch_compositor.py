"""
Patch placement with seam removal.

A patch is pasted into a larger heightmap at an integer offset, then the
Poisson seam solver relaxes the pasted region against the surrounding terrain.
"""

from typing import Optional, Tuple

import numpy as np
import structlog
from scipy.ndimage import binary_dilation

from .poisson_seam import CROSS, SeamSolveResult, as_mask, poisson_seam_removal, validate_field
from .sparse_solver import SolverOptions

logger = structlog.get_logger()


def _overlap(offset: int, patch_len: int, target_len: int) -> Tuple[slice, slice]:
    """Target and patch slices of the in-bounds overlap along one axis."""
    start = max(offset, 0)
    stop = min(offset + patch_len, target_len)
    if stop <= start:
        return slice(0, 0), slice(0, 0)
    return slice(start, stop), slice(start - offset, stop - offset)


def _windows(
    target_shape: Tuple[int, int], patch_shape: Tuple[int, int], offset: Tuple[int, int]
):
    dx, dy = int(offset[0]), int(offset[1])
    rows_t, rows_p = _overlap(dy, patch_shape[0], target_shape[0])
    cols_t, cols_p = _overlap(dx, patch_shape[1], target_shape[1])
    return (rows_t, cols_t), (rows_p, cols_p)


def place_mask(shape: Tuple[int, int], mask, offset: Tuple[int, int]) -> np.ndarray:
    """
    Translate a patch mask into a full-extent boolean mask.

    Args:
        shape: Target extent ``(rows, cols)``
        mask: Patch mask, non-zero = belongs to patch
        offset: ``(dx, dy)`` placement of the patch's top-left cell

    Returns:
        Boolean mask of ``shape``; cells falling outside the target are dropped
    """
    mask = np.asarray(mask) != 0
    placed = np.zeros(shape, dtype=bool)
    target, source = _windows(shape, mask.shape, offset)
    placed[target] = mask[source]
    return placed


def seam_ring(field: np.ndarray, placed_mask: np.ndarray) -> np.ndarray:
    """
    One-ring of defined cells just outside ``placed_mask``.

    These are the cells of existing terrain whose gradient must be kept.
    """
    ring = binary_dilation(placed_mask, structure=CROSS) & ~placed_mask
    return ring & ~np.isnan(field)


def place_patch(
    field: np.ndarray,
    patch: np.ndarray,
    mask,
    offset: Tuple[int, int],
    options: Optional[SolverOptions] = None,
    couple_boundary: bool = True,
    strict: bool = False,
) -> Optional[SeamSolveResult]:
    """
    Paste ``patch`` into ``field`` at ``offset`` and remove the seam.

    Args:
        field: Target heightmap, modified in place
        patch: Patch heightmap, same extent as ``mask``
        mask: Patch mask (non-zero cells are placed)
        offset: ``(dx, dy)`` integer placement, may be negative
        options: Solver tolerances and iteration cap
        couple_boundary: Forwarded to the seam solver. On by default so the
            patch blends into the surrounding field; pass False to keep the
            patch's own offset
        strict: Forwarded to the seam solver

    Returns:
        The seam solve result, or None if no patch cell lands inside ``field``
    """
    validate_field(field)
    validate_field(patch, "patch")
    patch_mask = as_mask(mask, patch.shape, "mask")

    placed = place_mask(field.shape, patch_mask, offset)
    if not placed.any():
        logger.info("Patch lies outside the target, nothing placed", offset=tuple(offset))
        return None

    seam = seam_ring(field, placed)

    # Direct copy before relaxing
    target, source = _windows(field.shape, patch.shape, offset)
    window = field[target]
    window_mask = patch_mask[source]
    window[window_mask] = patch[source][window_mask]

    logger.info(
        "Placing patch",
        offset=tuple(offset),
        cells=int(placed.sum()),
        seam_cells=int(seam.sum()),
    )
    return poisson_seam_removal(
        field,
        placed,
        seam,
        options=options,
        couple_boundary=couple_boundary,
        strict=strict,
    )
