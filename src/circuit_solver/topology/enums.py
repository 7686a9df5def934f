# src/circuit_solver/topology/enums.py
import logging
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class ElementKind(Enum):
    """
    The closed set of physical element kinds.

    Each member's value is a tuple:
    (wire_name, display_label, unit_name, unit_symbol).
    """
    RESISTOR = ("resistor", "R", "ohm", "Ω")
    VOLTAGE_SOURCE = ("voltage_source", "SRC(V)", "volt", "V")
    CURRENT_SOURCE = ("current_source", "SRC(C)", "ampere", "A")
    GROUND = ("ground", "GND", None, None)
    WIRE = ("wire", "W", None, None)

    @property
    def wire_name(self) -> str:
        return self.value[0]

    @property
    def label(self) -> str:
        return self.value[1]

    @property
    def unit(self) -> Optional[str]:
        return self.value[2]

    @property
    def unit_symbol(self) -> Optional[str]:
        return self.value[3]

    @property
    def is_conducting(self) -> bool:
        """Elements through which a node can be held at a defined potential."""
        return self in (ElementKind.RESISTOR, ElementKind.WIRE, ElementKind.VOLTAGE_SOURCE)

    @property
    def is_zero_impedance(self) -> bool:
        return self in (ElementKind.WIRE, ElementKind.VOLTAGE_SOURCE)

    @property
    def is_source(self) -> bool:
        return self in (ElementKind.VOLTAGE_SOURCE, ElementKind.CURRENT_SOURCE)

    @property
    def has_polarity(self) -> bool:
        return self.is_source

    @classmethod
    def from_wire_name(cls, name: str) -> "ElementKind":
        for kind in cls:
            if kind.wire_name == name:
                return kind
        raise ValueError(f"Unknown element kind '{name}'. Expected one of: {[k.wire_name for k in cls]}.")

    def __str__(self):
        return self.wire_name


class ToolKind(Enum):
    """
    The closed set of analysis constructs.

    Each member's value is a tuple: (wire_name, latex_prefix, display_label).
    """
    NODE = ("node", "N", "Node")
    SUPERNODE = ("supernode", "SN", "Supernode")
    MESH = ("mesh", "M", "Mesh")
    SUPERMESH = ("supermesh", "SM", "Supermesh")

    @property
    def wire_name(self) -> str:
        return self.value[0]

    @property
    def latex_prefix(self) -> str:
        return self.value[1]

    @property
    def label(self) -> str:
        return self.value[2]

    @property
    def is_derived(self) -> bool:
        """Supernodes and supermeshes are only ever created by the equation builders."""
        return self in (ToolKind.SUPERNODE, ToolKind.SUPERMESH)

    @classmethod
    def from_wire_name(cls, name: str) -> "ToolKind":
        for kind in cls:
            if kind.wire_name == name:
                return kind
        raise ValueError(f"Unknown tool kind '{name}'. Expected one of: {[k.wire_name for k in cls]}.")

    def __str__(self):
        return self.wire_name


class GroundTarget(Enum):
    """Which arena a ground reference points into."""
    TOOL = "tool"
    ELEMENT = "element"
