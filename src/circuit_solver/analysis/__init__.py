# src/circuit_solver/analysis/__init__.py
from .results import Connection, ConnectionMatrix, Loop, NodalSystem, MeshSystem
from .connections import build_connection_matrix
from .nodal import NodalEquationBuilder, build_nodal_system
from .mesh import MeshEquationBuilder, build_mesh_system
from .exceptions import BuildError

__all__ = [
    # Result contracts
    "Connection",
    "ConnectionMatrix",
    "Loop",
    "NodalSystem",
    "MeshSystem",
    # Builders
    "build_connection_matrix",
    "NodalEquationBuilder",
    "build_nodal_system",
    "MeshEquationBuilder",
    "build_mesh_system",
    # Exceptions
    "BuildError",
]
