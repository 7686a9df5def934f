# src/circuit_solver/validation/issues.py
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

logger = logging.getLogger(__name__)


class ValidationIssueLevel(Enum):
    """Severity level of a validation issue."""
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class ValidationIssue:
    """
    A single violated rule, naming every Element and Tool involved.
    """
    level: ValidationIssueLevel
    code: str
    message: str
    element_names: Tuple[str, ...] = ()
    tool_indices: Tuple[int, ...] = ()
    details: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_error(self) -> bool:
        return self.level == ValidationIssueLevel.ERROR

    def __str__(self) -> str:
        parts = [f"[{self.level.name} - {self.code}]"]
        if self.element_names:
            parts.append(f"Elements: {', '.join(self.element_names)}")
        if self.tool_indices:
            parts.append(f"Tools: {', '.join(str(i) for i in self.tool_indices)}")
        parts.append(f"Message: {self.message}")
        return " ".join(parts)
