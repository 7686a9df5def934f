# src/circuit_solver/steps/formatting.py
"""
Rendering of numbers, matrices and small expressions into the strings stored in
the step trace.

These strings are consumed verbatim by existing renderers and fixtures, so the
grammar is fixed:

* numbers are rounded to three decimals; integral values drop the decimal point
  and negative zero prints as ``0``;
* matrices are ``\\begin{bmatrix}a & b\\\\c & d\\\\\\end{bmatrix}``: entries
  joined by `` & `` and every row, the last included, closed by ``\\\\``;
* column vectors are matrices with one entry per row;
* serialized operations and results are wrapped as ``$...$`` with any ``$$``
  split into ``$ $``.
"""
import logging
import math
from typing import Any, Iterable, Sequence, Union

import numpy as np

from ..constants import DISPLAY_DECIMALS

logger = logging.getLogger(__name__)

MatrixEntry = Union[str, int, float, np.floating, np.integer]


def format_number(value: Union[int, float, np.floating, np.integer], decimals: int = DISPLAY_DECIMALS) -> str:
    """Renders a float with at most `decimals` decimals, e.g. -16.666… -> '-16.667', 32.0 -> '32'."""
    number = float(value)
    if math.isnan(number) or math.isinf(number):
        return repr(number)
    rounded = round(number, decimals)
    if rounded == 0:
        return "0"
    if rounded.is_integer():
        return str(int(rounded))
    return repr(rounded)


def _format_entry(entry: Any) -> str:
    if isinstance(entry, str):
        return entry
    return format_number(entry)


def format_matrix(matrix: Union[np.ndarray, Sequence[Sequence[MatrixEntry]]]) -> str:
    rows = matrix.tolist() if isinstance(matrix, np.ndarray) else [list(row) for row in matrix]
    parts = ["\\begin{bmatrix}"]
    for row in rows:
        parts.append(" & ".join(_format_entry(entry) for entry in row))
        parts.append("\\\\")
    parts.append("\\end{bmatrix}")
    return "".join(parts)


def format_vector(values: Union[np.ndarray, Iterable[MatrixEntry]]) -> str:
    entries = values.tolist() if isinstance(values, np.ndarray) else list(values)
    return format_matrix([[entry] for entry in entries])


def latex_wrap(expression: str) -> str:
    return f"${expression.replace('$$', '$ $')}$"


def fraction(numerator: str, denominator: str) -> str:
    return f"\\frac{{{numerator}}}{{{denominator}}}"


def product(left: str, right: str) -> str:
    return f"{left} \\cdot {right}"


def equation(left: str, right: str) -> str:
    return f"{left} = {right}"


def inverse(expression: str) -> str:
    return f"{expression}^{{-1}}"


def difference(left: str, right: str) -> str:
    """`left - right`, written so that subtracting a negative literal stays readable."""
    if right.startswith("-"):
        return f"{left} + {right[1:]}"
    return f"{left} - {right}"


def linear_combination(coefficients: Sequence[float], names: Sequence[str]) -> str:
    """
    Renders sum(c_i * name_i) as e.g. ``0.75 \\cdot N_{1} - 0.25 \\cdot N_{2}``.
    Terms whose coefficient is exactly zero are skipped; an empty sum renders as ``0``.
    """
    terms = []
    for coefficient, name in zip(coefficients, names):
        if coefficient == 0:
            continue
        magnitude = product(format_number(abs(coefficient)), name)
        if not terms:
            terms.append(magnitude if coefficient > 0 else f"-{magnitude}")
        else:
            terms.append(f"{'+' if coefficient > 0 else '-'} {magnitude}")
    if not terms:
        return "0"
    return " ".join(terms)
