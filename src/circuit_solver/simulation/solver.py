# src/circuit_solver/simulation/solver.py
import logging
from dataclasses import dataclass

import numpy as np
import scipy.linalg

from ..constants import SINGULAR_TOLERANCE
from .exceptions import SingularMatrixError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class LinearSolution:
    """The inverse of the coefficient matrix and the solution vector it produced."""
    inverse: np.ndarray
    values: np.ndarray


def invert_matrix(matrix: np.ndarray, tolerance: float = SINGULAR_TOLERANCE) -> np.ndarray:
    """
    Inverts a square coefficient matrix in float64.

    The singularity test scales every row to unit length and then bounds the
    condition number of the result by `1 / tolerance`, so it depends neither on
    the magnitude of element values nor on the size of the circuit.

    Raises:
        SingularMatrixError: a row is all zeros, the row-normalised condition number
            exceeds `1 / tolerance`, or the inverse holds non-finite entries.
        ValueError: the input is not a square 2-D matrix.
    """
    matrix = np.asarray(matrix, dtype=float)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ValueError(f"Coefficient matrix must be square, got shape {matrix.shape}.")
    if matrix.shape[0] == 0:
        return np.zeros((0, 0), dtype=float)

    row_norms = np.linalg.norm(matrix, axis=1)
    zero_rows = np.flatnonzero(row_norms == 0)
    if zero_rows.size:
        raise SingularMatrixError(details=f"Row(s) {zero_rows.tolist()} of the coefficient matrix are all zero.",
                                  condition_number=float("inf"))

    condition_number = float(np.linalg.cond(matrix / row_norms[:, np.newaxis]))
    logger.debug(f"Row-normalised condition number of {matrix.shape} matrix: {condition_number:.3e}")
    if not np.isfinite(condition_number) or condition_number * tolerance > 1.0:
        raise SingularMatrixError(
            details=(f"The row-normalised condition number {condition_number:.3e} exceeds "
                     f"1 / tolerance = {1.0 / tolerance:.1e}."),
            condition_number=condition_number
        )

    try:
        inverse = scipy.linalg.inv(matrix)
    except (scipy.linalg.LinAlgError, ValueError) as e:
        logger.error(f"Matrix inversion failed: {e}")
        raise SingularMatrixError(details=str(e), condition_number=condition_number) from e

    if not np.all(np.isfinite(inverse)):
        raise SingularMatrixError(details="The inverse contains NaN or Inf entries.", condition_number=condition_number)
    return inverse


def solve_linear_system(coefficients: np.ndarray, sources: np.ndarray,
                        tolerance: float = SINGULAR_TOLERANCE) -> LinearSolution:
    """Solves `coefficients @ x = sources` through the explicit inverse."""
    sources = np.asarray(sources, dtype=float)
    inverse = invert_matrix(coefficients, tolerance)
    if sources.shape != (inverse.shape[0],):
        raise ValueError(f"Source vector of shape {sources.shape} does not match a {inverse.shape} matrix.")
    values = inverse @ sources
    if not np.all(np.isfinite(values)):
        raise SingularMatrixError(details="The solution vector contains NaN or Inf entries.")
    logger.debug(f"Solved {inverse.shape[0]}x{inverse.shape[0]} system.")
    return LinearSolution(inverse=inverse, values=values)
