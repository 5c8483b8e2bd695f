"""
Poisson seam removal over scalar heightmaps.

For every masked cell the solver keeps the discrete gradient of the current
field along each axis; every unmasked cell touching the mask is pinned to its
observed value. The resulting system is rectangular and is solved in the
least-squares sense, then the solved values are written back in place.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
import structlog
from scipy.ndimage import binary_dilation

from .grid_indexer import VariableIndex
from .sparse_solver import (
    LeastSquaresResult,
    SolverConvergenceError,
    SolverOptions,
    solve_least_squares,
)

logger = structlog.get_logger()

# (row, col) offsets
HORIZONTAL = ((0, 1), (0, -1))
VERTICAL = ((1, 0), (-1, 0))
LATTICE = ((0, 1), (1, 0), (0, -1), (-1, 0))

CROSS = np.array([[0, 1, 0], [1, 1, 1], [0, 1, 0]], dtype=bool)


@dataclass
class SeamSolveResult:
    """Summary of one seam removal."""

    unknowns: int
    rows: int
    solve: LeastSquaresResult

    @property
    def converged(self) -> bool:
        return self.solve.converged


def validate_field(field: np.ndarray, name: str = "field") -> None:
    """Check that ``field`` is a 2D floating-point array."""
    if not isinstance(field, np.ndarray):
        raise ValueError(f"{name} must be a numpy array, got {type(field).__name__}")
    if field.ndim != 2:
        raise ValueError(f"{name} must be single-channel 2D, got shape {field.shape}")
    if not np.issubdtype(field.dtype, np.floating):
        raise ValueError(f"{name} must be floating point, got {field.dtype}")


def as_mask(mask, shape: Tuple[int, int], name: str) -> np.ndarray:
    """Interpret a boolean or 8-bit mask as booleans, checking its extent."""
    mask = np.asarray(mask)
    if mask.shape != shape:
        raise ValueError(f"{name} has shape {mask.shape}, expected {shape}")
    return mask != 0


def poisson_seam_removal(
    field: np.ndarray,
    mask,
    seam_mask,
    options: Optional[SolverOptions] = None,
    couple_boundary: bool = False,
    strict: bool = False,
) -> SeamSolveResult:
    """
    Relax ``field`` inside ``mask`` by a least-squares Poisson solve.

    Args:
        field: 2D float heightmap, modified in place. NaN cells are left alone.
        mask: Cells to solve for (non-zero = masked)
        seam_mask: Masked cells whose target derivative is forced to zero.
            With ``couple_boundary`` it also marks boundary neighbours across
            which the blend should be flat.
        options: Solver tolerances and iteration cap
        couple_boundary: Treat defined unmasked neighbours as known values in
            the gradient rows of masked cells, tying the patch to its
            surroundings
        strict: Raise SolverConvergenceError instead of writing back a
            non-converged solution

    Returns:
        SeamSolveResult describing the assembled system and the solve
    """
    validate_field(field)
    mask = as_mask(mask, field.shape, "mask")
    seam_mask = as_mask(seam_mask, field.shape, "seam_mask")

    height, width = field.shape
    defined = ~np.isnan(field)

    index = VariableIndex()
    triplet_rows: List[int] = []
    triplet_cols: List[int] = []
    triplet_vals: List[float] = []
    rhs: List[float] = []

    # Only masked cells and their lattice neighbours can produce rows
    active = binary_dilation(mask, structure=CROSS) & defined

    row = 0
    for r, c in np.argwhere(active):
        p = (int(r), int(c))
        p_value = float(field[r, c])

        if mask[r, c]:
            for axis in (HORIZONTAL, VERTICAL):
                target = 0.0
                known = 0.0
                count = 0
                for dr, dc in axis:
                    qr, qc = r + dr, c + dc
                    if not (0 <= qr < height and 0 <= qc < width):
                        continue
                    if not defined[qr, qc]:
                        continue
                    if mask[qr, qc]:
                        target += float(field[qr, qc]) - p_value
                        triplet_rows.append(row)
                        triplet_cols.append(index.id((qr, qc)))
                        triplet_vals.append(1.0)
                    elif couple_boundary:
                        # Unmasked neighbour is a known value, moved to the rhs
                        if not seam_mask[qr, qc]:
                            target += float(field[qr, qc]) - p_value
                        known += float(field[qr, qc])
                    else:
                        continue
                    count += 1

                # Isolated along this axis: no gradient row
                if count > 0:
                    triplet_rows.append(row)
                    triplet_cols.append(index.id(p))
                    triplet_vals.append(-float(count))
                    rhs.append((0.0 if seam_mask[r, c] else target) - known)
                    row += 1
        else:
            # Boundary of the masked region: Dirichlet row, at most one per cell
            for dr, dc in LATTICE:
                qr, qc = r + dr, c + dc
                if 0 <= qr < height and 0 <= qc < width and mask[qr, qc]:
                    triplet_rows.append(row)
                    triplet_cols.append(index.id(p))
                    triplet_vals.append(1.0)
                    rhs.append(p_value)
                    row += 1
                    break

    n_unknowns = len(index)
    coords = index.coordinates()

    if n_unknowns == 0:
        logger.debug("Seam removal skipped, nothing to solve")
        empty = LeastSquaresResult(
            x=np.empty(0), converged=True, stop_reason=0, iterations=0, residual_norm=0.0
        )
        return SeamSolveResult(unknowns=0, rows=0, solve=empty)

    logger.info("Solving seam system", rows=row, unknowns=n_unknowns)

    # Start from the current values so an already consistent system is a no-op
    x0 = field[coords[:, 0], coords[:, 1]].astype(np.float64)
    solution = solve_least_squares(
        triplet_rows,
        triplet_cols,
        triplet_vals,
        rhs,
        n_unknowns,
        x0=x0,
        options=options,
    )

    if not solution.converged:
        logger.warning(
            "Seam solve did not converge",
            stop_reason=solution.stop_reason,
            iterations=solution.iterations,
            residual_norm=solution.residual_norm,
        )
        if strict:
            raise SolverConvergenceError(
                f"LSQR stopped with reason {solution.stop_reason} after "
                f"{solution.iterations} iterations"
            )

    field[coords[:, 0], coords[:, 1]] = solution.x.astype(field.dtype)

    logger.info(
        "Seam system solved",
        iterations=solution.iterations,
        residual_norm=solution.residual_norm,
        converged=solution.converged,
    )
    return SeamSolveResult(unknowns=n_unknowns, rows=row, solve=solution)
