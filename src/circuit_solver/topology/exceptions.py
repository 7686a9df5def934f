# src/circuit_solver/topology/exceptions.py
"""
Diagnosable exceptions raised by the topology model when the Container is used
in a way that would break its structural invariants.
"""
from dataclasses import dataclass
from typing import Optional

from ..errors import DiagnosableError, format_diagnostic_report


@dataclass()
class TopologyError(DiagnosableError):
    """
    Raised when an Element or Tool cannot be added to a Container, for example
    because an endpoint references a tool that does not exist.
    """
    details: str
    element_name: Optional[str] = None
    tool_index: Optional[int] = None

    def __str__(self):
        return f"Topology error: {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Topology Construction Error",
            details=self.details,
            suggestion="Add all nodes before the elements that connect them, and reference only existing node indices.",
            context={
                'element': self.element_name,
                'tool': str(self.tool_index) if self.tool_index is not None else None,
            }
        )
