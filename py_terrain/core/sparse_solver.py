"""
Sparse least-squares solving.

The grid code builds its systems as ``(row, col, value)`` triplets and hands
them here; nothing outside this module knows which solver is used.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import structlog
from scipy.sparse import coo_matrix
from scipy.sparse.linalg import lsqr

from ..config import settings

logger = structlog.get_logger()

# lsqr istop codes
# 0: x = x0 already solves the system
# 1, 4: Ax - b is small enough (consistent system)
# 2, 5: least-squares solution found (inconsistent system)
# 3, 6: condition number too large
# 7: iteration limit reached
CONVERGED_STOP_REASONS = frozenset({0, 1, 2, 4, 5})
ITERATION_LIMIT = 7


class SolverConvergenceError(RuntimeError):
    """Raised in strict mode when the iterative solve does not converge."""


@dataclass
class SolverOptions:
    """Tolerances and iteration cap for the LSQR solve."""

    atol: float = 1e-8
    btol: float = 1e-8
    max_iterations: int = 10000

    @classmethod
    def from_settings(cls) -> "SolverOptions":
        return cls(
            atol=settings.solver_atol,
            btol=settings.solver_btol,
            max_iterations=settings.solver_max_iterations,
        )


@dataclass
class LeastSquaresResult:
    """Outcome of a least-squares solve."""

    x: np.ndarray
    converged: bool
    stop_reason: int
    iterations: int
    residual_norm: float


def solve_least_squares(
    rows: Sequence[int],
    cols: Sequence[int],
    values: Sequence[float],
    rhs: Sequence[float],
    n_unknowns: int,
    x0: Optional[np.ndarray] = None,
    options: Optional[SolverOptions] = None,
) -> LeastSquaresResult:
    """
    Solve ``min ||Ax - b||`` for a matrix given as triplets.

    Duplicate ``(row, col)`` entries are summed. The system may be rectangular
    in either direction.

    Args:
        rows: Row index of each non-zero
        cols: Column (unknown) index of each non-zero
        values: Coefficient of each non-zero
        rhs: Right-hand side, one entry per row
        n_unknowns: Number of columns of ``A``
        x0: Optional initial guess, defaults to zeros
        options: Tolerances and iteration cap, defaults to settings

    Returns:
        LeastSquaresResult with the solution and convergence information
    """
    options = options or SolverOptions.from_settings()
    if options.max_iterations < 1:
        raise ValueError("max_iterations must be at least 1")

    b = np.asarray(rhs, dtype=np.float64)
    n_rows = len(b)

    if x0 is None:
        x_init = np.zeros(n_unknowns, dtype=np.float64)
    else:
        x_init = np.array(x0, dtype=np.float64)
        if x_init.shape != (n_unknowns,):
            raise ValueError(
                f"x0 has shape {x_init.shape}, expected ({n_unknowns},)"
            )

    if n_unknowns == 0 or n_rows == 0:
        return LeastSquaresResult(
            x=x_init, converged=True, stop_reason=0, iterations=0, residual_norm=0.0
        )

    # Assembled and solved in float64; callers cast back to their field dtype
    A = coo_matrix(
        (
            np.asarray(values, dtype=np.float64),
            (np.asarray(rows, dtype=np.intp), np.asarray(cols, dtype=np.intp)),
        ),
        shape=(n_rows, n_unknowns),
    ).tocsr()

    # Solve for the correction from x0, so the stopping tests are relative to
    # the initial residual rather than to b, which may be all zeros
    r0 = b - A @ x_init
    if not np.any(r0):
        return LeastSquaresResult(
            x=x_init, converged=True, stop_reason=0, iterations=0, residual_norm=0.0
        )

    logger.debug(
        "Solving sparse least-squares system",
        rows=n_rows,
        unknowns=n_unknowns,
        nonzeros=A.nnz,
    )

    dx, istop, itn, r1norm = lsqr(
        A,
        r0,
        atol=options.atol,
        btol=options.btol,
        iter_lim=options.max_iterations,
    )[:4]

    return LeastSquaresResult(
        x=x_init + np.asarray(dx, dtype=np.float64),
        converged=istop in CONVERGED_STOP_REASONS,
        stop_reason=int(istop),
        iterations=int(itn),
        residual_norm=float(r1norm),
    )
