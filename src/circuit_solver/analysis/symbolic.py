# src/circuit_solver/analysis/symbolic.py
"""
Sympy helpers for the narrated equations in the step trace.

Only the trace uses these expressions. Every number the solver works with is
a float taken from the coefficient matrix, never from sympy.
"""
import logging
from typing import Dict, Iterable, Sequence

import sympy

from ..topology import Element, Tool

logger = logging.getLogger(__name__)


def tool_symbol(tool: Tool) -> sympy.Symbol:
    """`N_{1}`, `M_{3}` ... in LaTeX."""
    return sympy.Symbol(f"{tool.kind.latex_prefix}_{tool.index}", real=True)


def element_symbol(element: Element) -> sympy.Symbol:
    """The element's own value, e.g. `R_{1}` for a resistor named R1."""
    return sympy.Symbol(element.name, real=True)


def current_symbol(element: Element) -> sympy.Symbol:
    """The branch current through the element, rendered like `I_{R1}`."""
    return sympy.Symbol(f"I_{element.name}", real=True)


def equation_latex(lhs: sympy.Expr, rhs: sympy.Expr) -> str:
    return sympy.latex(sympy.Eq(lhs, rhs, evaluate=False))


def signed_sum(terms: Iterable[sympy.Expr]) -> sympy.Expr:
    terms = list(terms)
    if not terms:
        return sympy.Integer(0)
    return sympy.Add(*terms, evaluate=False)


def substitute_values(expression: sympy.Expr, values: Dict[sympy.Symbol, float]) -> sympy.Expr:
    """Replaces symbols by their values as exact rationals, so 0.25 stays 1/4."""
    substitutions = {symbol: sympy.nsimplify(value, rational=True) for symbol, value in values.items()}
    return expression.subs(substitutions)


def collect_terms(expression: sympy.Expr, unknowns: Sequence[sympy.Symbol]) -> sympy.Expr:
    """Expands a substituted expression and groups it by unknown."""
    return sympy.collect(sympy.expand(expression), list(unknowns))
