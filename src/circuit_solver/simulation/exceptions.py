# src/circuit_solver/simulation/exceptions.py
"""
Diagnosable exceptions raised while the assembled linear system is solved.
"""
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..errors import DiagnosableError, format_diagnostic_report


@dataclass()
class SingularMatrixError(DiagnosableError, np.linalg.LinAlgError):
    """
    Raised when the coefficient matrix has no usable inverse.

    Catchable both as a `DiagnosableError` and as a standard `LinAlgError`.
    """
    details: str
    condition_number: Optional[float] = None

    def __str__(self):
        return f"Singular coefficient matrix: {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Singular Matrix Encountered",
            details=self.details,
            suggestion="This usually means part of the circuit is floating or over-constrained. Check for nodes held only by current sources and for meshes that are not independent.",
            context={
                'phase': 'linear solve',
                'user_input': f"cond = {self.condition_number:.3e}" if self.condition_number is not None else None,
            }
        )
