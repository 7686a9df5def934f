# src/circuit_solver/validation/__init__.py
import logging
logger = logging.getLogger(__name__)

from .issues import ValidationIssue, ValidationIssueLevel
from .issue_codes import TopologyIssueCode
from .topology_validator import TopologyValidator, validate, ensure_valid
from .exceptions import TopologyValidationError

__all__ = [
    "ValidationIssue",
    "ValidationIssueLevel",
    "TopologyIssueCode",
    "TopologyValidator",
    "validate",
    "ensure_valid",
    "TopologyValidationError",
]
