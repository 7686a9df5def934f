# src/circuit_solver/simulation/__init__.py
from .config import SolverMethod, SolveConfig, parse_solve_config, ConfigParsingError
from .solver import LinearSolution, invert_matrix, solve_linear_system
from .currents import (
    compute_branch_currents,
    node_potentials,
    nodal_branch_currents,
    mesh_branch_currents,
    potentials_from_currents,
)
from .results import ResultSlots, SolvedCircuit
from .execution import solve
from .exceptions import SingularMatrixError

__all__ = [
    # Configuration
    "SolverMethod",
    "SolveConfig",
    "parse_solve_config",
    "ConfigParsingError",
    # Linear solver
    "LinearSolution",
    "invert_matrix",
    "solve_linear_system",
    # Back-substitution
    "compute_branch_currents",
    "node_potentials",
    "nodal_branch_currents",
    "mesh_branch_currents",
    "potentials_from_currents",
    # Results and facade
    "ResultSlots",
    "SolvedCircuit",
    "solve",
    # Exceptions
    "SingularMatrixError",
]
