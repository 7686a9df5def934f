# --- src/circuit_solver/units.py ---
import logging
import math
from typing import Optional, Union

import pint

logger = logging.getLogger(__name__)
ureg = pint.UnitRegistry()
Quantity = ureg.Quantity
logger.debug("Pint Unit Registry initialized.")


def to_magnitude(raw: Union[int, float, str], unit: Optional[str]) -> float:
    """
    Converts a raw element value into a float in the given base unit.

    Numbers are taken as already expressed in `unit`. Strings are parsed by pint,
    so "4.7 kohm", "10 V" and "15 mA" are all accepted. A bare numeric string is
    treated like a number.

    Raises:
        pint.DimensionalityError: the quantity cannot be expressed in `unit`.
        pint.UndefinedUnitError: the string names an unknown unit.
        ValueError: the value is neither numeric nor a parsable quantity.
    """
    if isinstance(raw, bool):
        raise ValueError(f"Boolean '{raw}' is not a valid element value.")
    if isinstance(raw, (int, float)):
        return float(raw)
    if not isinstance(raw, str):
        raise ValueError(f"Unsupported value type '{type(raw).__name__}'.")

    qty = ureg.Quantity(raw.strip())
    if qty.dimensionless:
        return float(qty.to("dimensionless").magnitude)
    if unit is None:
        raise ValueError(f"Value '{raw}' carries units but this element kind takes no unit.")
    magnitude = float(qty.to(unit).magnitude)
    if math.isnan(magnitude):
        raise ValueError(f"Value '{raw}' is not a number.")
    return magnitude
