# src/circuit_solver/analysis/exceptions.py
"""
Defines custom, diagnosable exceptions for the equation builders.
"""
from dataclasses import dataclass
from typing import Tuple

from ..errors import DiagnosableError, format_diagnostic_report


@dataclass()
class BuildError(DiagnosableError):
    """
    Raised when a validated topology still cannot be turned into a square linear
    system: a voltage source shorted by wires, a loop of voltage sources, a
    malformed mesh, or an equation count that does not match the unknowns.
    """
    details: str
    element_names: Tuple[str, ...] = ()
    analysis: str = "nodal"

    def __str__(self):
        return f"Equation build error ({self.analysis} analysis): {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Equation Build Error",
            details=self.details,
            suggestion="Check for voltage sources bridged by wires or by other voltage sources, and, when meshes are given explicitly, that each one is a simple loop and that together they cover every independent loop once.",
            context={
                'phase': f"{self.analysis} equation assembly",
                'element': ", ".join(self.element_names) if self.element_names else None,
            }
        )
