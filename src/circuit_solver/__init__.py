# src/circuit_solver/__init__.py
import logging
from .log_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)
logger.info("circuit_solver package initialized.")

from .units import ureg, Quantity, to_magnitude
from .topology import Container, Element, ElementKind, Tool, ToolKind, GroundReference, GroundTarget
from .parser import TopologyParser, ParsedTopology, parse_topology, load_topology
from .validation import validate, ensure_valid, ValidationIssue, ValidationIssueLevel
from .analysis import build_nodal_system, build_mesh_system, NodalSystem, MeshSystem
from .steps import Step, SubStep, StepRecorder, serialize_steps
from .simulation import solve, SolvedCircuit, SolveConfig, SolverMethod, invert_matrix, solve_linear_system
from .errors import CircuitSolverError, TopologyBuildError, CircuitSolveError

__all__ = [
    # Units
    "ureg", "Quantity", "to_magnitude",
    # Topology model
    "Container", "Element", "ElementKind", "Tool", "ToolKind", "GroundReference", "GroundTarget",
    # Parser
    "TopologyParser", "ParsedTopology", "parse_topology", "load_topology",
    # Validation
    "validate", "ensure_valid", "ValidationIssue", "ValidationIssueLevel",
    # Equation building
    "build_nodal_system", "build_mesh_system", "NodalSystem", "MeshSystem",
    # Step trace
    "Step", "SubStep", "StepRecorder", "serialize_steps",
    # Solving
    "solve", "SolvedCircuit", "SolveConfig", "SolverMethod", "invert_matrix", "solve_linear_system",
    # Top-Level Errors
    "CircuitSolverError", "TopologyBuildError", "CircuitSolveError",
]
