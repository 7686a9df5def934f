# src/circuit_solver/analysis/results.py
"""
Immutable contracts produced by the equation builders and consumed by the
linear solver and the solved view.

The arrays inside these records are never written after construction. Records
holding numpy arrays use identity equality, since element-wise comparison has
no single truth value.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from ..topology import Tool


@dataclass(frozen=True)
class Connection:
    """How one element sits between two nodes, as used for current directions."""
    element_index: int
    origin: int
    destination: int
    sign: int  # +1 when origin is endpoints[0]


@dataclass(frozen=True, eq=False)
class ConnectionMatrix:
    """
    Element-by-node incidence: +1 at the origin column and -1 at the
    destination column of every non-ground element.
    """
    connections: Tuple[Connection, ...]
    element_indices: Tuple[int, ...]
    node_indices: Tuple[int, ...]
    matrix: np.ndarray

    def connection(self, element_index: int) -> Connection:
        for connection in self.connections:
            if connection.element_index == element_index:
                return connection
        raise KeyError(f"Element {element_index} has no connection record.")


@dataclass(frozen=True)
class Loop:
    """
    A closed traversal of elements. `directions` maps every element of the loop
    to +1 when the traversal runs from its endpoints[0] to endpoints[1], else -1.
    """
    tool: Tool
    elements: Tuple[int, ...]
    nodes: Tuple[int, ...]
    directions: Dict[int, int]
    derived: bool = False

    def direction(self, element_index: int) -> int:
        return self.directions.get(element_index, 0)


@dataclass(frozen=True, eq=False)
class NodalSystem:
    """
    `coefficients @ x = sources`, where x holds the potentials of the
    non-ground electrical nodes listed in `unknowns` (node tool indices).
    `representative` maps every node tool to the electrical node it was merged
    into by wires; the ground node maps to itself.
    """
    coefficients: np.ndarray
    sources: np.ndarray
    unknowns: Tuple[int, ...]
    representative: Dict[int, int]
    ground: int
    supernodes: Tuple[Tool, ...]
    row_labels: Tuple[str, ...]
    connections: ConnectionMatrix

    @property
    def size(self) -> int:
        return len(self.unknowns)

    @property
    def is_empty(self) -> bool:
        return self.size == 0

    def supernode_of(self, node_index: int) -> Optional[Tool]:
        for tool in self.supernodes:
            if node_index in tool.tool_members:
                return tool
        return None


@dataclass(frozen=True, eq=False)
class MeshSystem:
    """
    `coefficients @ x = sources`, where x holds one circulating current per
    loop in `loops`. Loops derived from a spanning tree carry tools that do not
    exist in the Container.
    """
    coefficients: np.ndarray
    sources: np.ndarray
    loops: Tuple[Loop, ...]
    supermeshes: Tuple[Tool, ...]
    row_labels: Tuple[str, ...]
    connections: ConnectionMatrix

    @property
    def size(self) -> int:
        return len(self.loops)

    @property
    def is_empty(self) -> bool:
        return self.size == 0

    @property
    def derived_tools(self) -> Tuple[Tool, ...]:
        return tuple(loop.tool for loop in self.loops if loop.derived) + self.supermeshes
