# src/circuit_solver/validation/exceptions.py
"""
The diagnosable exception raised when topology validation finds errors.
"""
from typing import List

from .issues import ValidationIssue, ValidationIssueLevel
from ..errors import DiagnosableError, format_diagnostic_report


class TopologyValidationError(DiagnosableError):
    """
    Carries every ERROR-level issue found in one validation pass, so the user
    sees the complete list at once rather than one problem per attempt.
    """
    def __init__(self, issues: List[ValidationIssue]):
        self.issues: List[ValidationIssue] = [
            issue for issue in issues if issue.level == ValidationIssueLevel.ERROR
        ]
        if not self.issues:
            summary_message = "TopologyValidationError was raised with no error-level issues."
        else:
            summary_message = (
                f"Topology validation failed with {len(self.issues)} error(s):\n"
                + "\n".join(f"  - {issue}" for issue in self.issues)
            )
        super().__init__(summary_message)

    @property
    def codes(self) -> List[str]:
        return [issue.code for issue in self.issues]

    def get_diagnostic_report(self) -> str:
        details = (
            f"The circuit topology breaks {len(self.issues)} rule(s). See details below:\n\n"
            + "\n".join(f"  - {issue}" for issue in self.issues)
        )
        first_issue = self.issues[0] if self.issues else None
        context = {'phase': 'validation'}
        if first_issue and first_issue.element_names:
            context['element'] = ", ".join(first_issue.element_names)

        return format_diagnostic_report(
            error_type="Circuit Topology Validation Error",
            details=details,
            suggestion="Correct every listed problem; solving only starts once the topology is valid.",
            context=context
        )
