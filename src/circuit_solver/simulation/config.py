# src/circuit_solver/simulation/config.py
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..constants import SINGULAR_TOLERANCE
from ..errors import DiagnosableError, format_diagnostic_report

logger = logging.getLogger(__name__)


@dataclass()
class ConfigParsingError(DiagnosableError, ValueError):
    """Custom exception for errors during solver configuration parsing."""
    details: str
    user_input: Optional[str] = None

    def __str__(self):
        return f"Invalid solver configuration: {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Solver Configuration Error",
            details=self.details,
            suggestion="Use 'method: node' or 'method: mesh' and a positive 'singular_tolerance'.",
            context={'phase': 'configuration', 'user_input': self.user_input}
        )


class SolverMethod(Enum):
    """Which family of equations is written for the circuit."""
    NODE = "node"
    MESH = "mesh"

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class SolveConfig:
    method: SolverMethod = SolverMethod.NODE
    singular_tolerance: float = SINGULAR_TOLERANCE


def parse_solve_config(raw_config: Optional[Dict[str, Any]]) -> SolveConfig:
    """
    Parses the optional `solver` block of a topology document.
    A missing or empty block yields the defaults (nodal analysis, 1e-12).
    """
    if not raw_config:
        return SolveConfig()
    if not isinstance(raw_config, dict):
        raise ConfigParsingError(details="The solver configuration must be a mapping.", user_input=repr(raw_config))

    unknown = sorted(set(raw_config) - {"method", "singular_tolerance"})
    if unknown:
        raise ConfigParsingError(details=f"Unknown solver option(s): {unknown}.", user_input=repr(raw_config))

    raw_method = raw_config.get("method", SolverMethod.NODE.value)
    try:
        method = raw_method if isinstance(raw_method, SolverMethod) else SolverMethod(str(raw_method).strip().lower())
    except ValueError as e:
        raise ConfigParsingError(
            details=f"Unknown solver method '{raw_method}'. Expected one of: {[m.value for m in SolverMethod]}.",
            user_input=str(raw_method)
        ) from e

    raw_tolerance = raw_config.get("singular_tolerance", SINGULAR_TOLERANCE)
    try:
        if isinstance(raw_tolerance, bool):
            raise ValueError("boolean given")
        tolerance = float(raw_tolerance)
    except (TypeError, ValueError) as e:
        raise ConfigParsingError(
            details=f"Singular tolerance '{raw_tolerance}' is not a number.", user_input=str(raw_tolerance)
        ) from e
    if not math.isfinite(tolerance) or tolerance <= 0:
        raise ConfigParsingError(
            details=f"Singular tolerance must be a positive finite number, got {tolerance}.",
            user_input=str(raw_tolerance)
        )

    config = SolveConfig(method=method, singular_tolerance=tolerance)
    logger.debug(f"Parsed solver configuration: {config}")
    return config
