# --- src/circuit_solver/constants.py ---
import logging

logger = logging.getLogger(__name__)

# --- Display Constants ---

#: Number of decimal places kept when numbers are written into the step trace.
#: Internal computation always keeps full float64 precision.
DISPLAY_DECIMALS: int = 3

# --- Numerical Constants ---

#: A coefficient matrix is singular when the condition number of A, with every
#: row scaled to unit length, exceeds 1 / SINGULAR_TOLERANCE.
SINGULAR_TOLERANCE: float = 1.0e-12

#: Potential assigned to the reference node.
GROUND_POTENTIAL: float = 0.0

logger.debug("Defined core constants: DISPLAY_DECIMALS, SINGULAR_TOLERANCE")
