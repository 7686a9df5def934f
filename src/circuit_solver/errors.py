# src/circuit_solver/errors.py
import logging
from abc import abstractmethod
from typing import Any, Dict, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# --- Errors raised to callers ---

class CircuitSolverError(Exception):
    """Root of the errors `load_topology` and `solve` let escape."""
    pass

class TopologyBuildError(CircuitSolverError):
    """Raised by `load_topology`; its message is the report of the parsing failure."""
    pass

class CircuitSolveError(CircuitSolverError):
    """Raised by `solve`; its message is the report of the validation, build or linear-solve failure."""
    pass


# --- Reports ---

@runtime_checkable
class Diagnosable(Protocol):
    """Anything that can describe a failed phase as a report string."""
    def get_diagnostic_report(self) -> str:
        ...

class DiagnosableError(Exception, Diagnosable):
    """
    Base of the per-package exceptions (TopologyError, ParsingError, BuildError,
    SingularMatrixError ...). The facades catch these by protocol and re-raise
    the report as a CircuitSolverError.
    """
    @abstractmethod
    def get_diagnostic_report(self) -> str:
        raise NotImplementedError


# --- Report layout ---

def format_diagnostic_report(
    error_type: str,
    details: str,
    suggestion: str,
    context: Dict[str, Any]
) -> str:
    """
    Lays out a report: a banner, the phase and whichever of element, tool,
    source and user input the context names, then the details and a fix hint.
    Context keys with empty values are left out.
    """
    lines = [
        "\n",
        "================ Circuit Solver: Diagnostic Report ================",
        f"Error Type:     {error_type}",
    ]
    if phase := context.get('phase'):
        lines.append(f"Phase:          {phase}")
    if element := context.get('element'):
        lines.append(f"Element:        {element}")
    if tool := context.get('tool'):
        lines.append(f"Tool:           {tool}")
    if source := context.get('source'):
        lines.append(f"Source:         {source}")
    if user_input := context.get('user_input'):
        lines.append(f"User Input:     '{user_input}'")

    lines.append("\nDetails:")
    for line in details.splitlines():
        lines.append(f"  {line}")

    if suggestion:
        lines.append("\nSuggestion:")
        for line in suggestion.splitlines():
            lines.append(f"  {line}")

    lines.append("===================================================================")
    return "\n".join(lines)
