# src/circuit_solver/steps/exceptions.py
from dataclasses import dataclass

from ..errors import DiagnosableError, format_diagnostic_report


@dataclass()
class StepRecorderError(DiagnosableError):
    """Raised when the append-only contract of a StepRecorder would be broken."""
    details: str

    def __str__(self):
        return f"Step recorder misuse: {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Step Recorder Error",
            details=self.details,
            suggestion="Steps can only be extended while they are the most recent step, and a recorder can only be consumed once.",
            context={'phase': 'trace recording'}
        )
