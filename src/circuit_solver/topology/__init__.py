# src/circuit_solver/topology/__init__.py
"""
The topology model: Elements, Tools and the Container that owns them by index.
"""
from .enums import ElementKind, ToolKind, GroundTarget
from .data_structures import Element, Tool, GroundReference
from .container import Container
from .exceptions import TopologyError

__all__ = [
    "ElementKind",
    "ToolKind",
    "GroundTarget",
    "Element",
    "Tool",
    "GroundReference",
    "Container",
    "TopologyError",
]
