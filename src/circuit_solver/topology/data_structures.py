# src/circuit_solver/topology/data_structures.py
"""
Immutable records for the two arenas owned by a Container.

Relationships between Elements and Tools are stored as integer indices into the
owning Container, never as object references, so the model has no reference
cycles and can be deep-copied cheaply.
"""
import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Tuple

from .enums import ElementKind, ToolKind, GroundTarget
from ..steps.formatting import format_number

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Element:
    """A physical two-terminal component."""
    index: int
    name: str
    kind: ElementKind
    value: float
    endpoints: Tuple[int, int]

    @property
    def is_self_loop(self) -> bool:
        return self.endpoints[0] == self.endpoints[1]

    @property
    def latex_name(self) -> str:
        """Label of the branch current through this element, e.g. ``I_{R1}``."""
        return f"I_{{{self.name}}}"

    def other_endpoint(self, tool_index: int) -> int:
        a, b = self.endpoints
        if tool_index == a:
            return b
        if tool_index == b:
            return a
        raise ValueError(f"Element '{self.name}' is not connected to tool {tool_index}.")

    def pretty_string(self) -> str:
        symbol = self.kind.unit_symbol
        if symbol is None:
            return self.name
        return f"{self.name}: {format_number(self.value)} {symbol}"


@dataclass(frozen=True)
class Tool:
    """
    A grouping construct used while solving (node, mesh or one of their merges).

    `element_members` holds element indices. For a node these are the incident
    elements, for a mesh the elements around the loop, and for a merge the
    sources that caused it. `tool_members` holds the merged tool indices.
    """
    index: int
    kind: ToolKind
    element_members: FrozenSet[int] = field(default_factory=frozenset)
    tool_members: FrozenSet[int] = field(default_factory=frozenset)

    @property
    def latex_name(self) -> str:
        return f"{self.kind.latex_prefix}_{{{self.index}}}"

    def pretty_string(self) -> str:
        return f"{self.kind.label}: {self.index}"


@dataclass(frozen=True)
class GroundReference:
    """Designates the reference point, either a node tool or a ground element."""
    target: GroundTarget
    index: int

    def __str__(self):
        return f"{self.target.value}[{self.index}]"
