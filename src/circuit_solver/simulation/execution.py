# src/circuit_solver/simulation/execution.py
"""
The `solve` facade: validate, build, solve, back-substitute, and hand back a
SolvedCircuit with its trace.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from ..analysis import MeshSystem, NodalSystem, build_mesh_system, build_nodal_system
from ..errors import CircuitSolveError, Diagnosable, format_diagnostic_report
from ..steps import StepHandle, StepRecorder
from ..steps.formatting import (
    difference, equation, format_matrix, format_number, format_vector, fraction, inverse,
    linear_combination, product,
)
from ..topology import Container, ElementKind, Tool, ToolKind
from ..validation import ensure_valid
from .config import SolveConfig, SolverMethod, parse_solve_config
from .currents import compute_branch_currents
from .results import ResultSlots, SolvedCircuit
from .solver import LinearSolution, solve_linear_system

logger = logging.getLogger(__name__)


def solve(container: Container, config: Optional[Union[SolveConfig, Mapping[str, Any]]] = None) -> SolvedCircuit:
    """
    Solves a circuit and returns the solved view with its step trace.

    This is the user-facing entry point. Any known failure (validation,
    equation assembly, singular system) is converted into a
    `CircuitSolveError` whose message is the diagnostic report; the original
    exception stays available as `__cause__`.

    Args:
        container: The circuit to solve. It is read, never modified.
        config: A SolveConfig, the raw `solver` mapping of a document, or None
                for nodal analysis with the default singular tolerance.

    Returns:
        SolvedCircuit: potentials, branch currents, derived tools and steps.

    Raises:
        CircuitSolveError: If the circuit cannot be solved.
    """
    try:
        if not isinstance(config, SolveConfig):
            config = parse_solve_config(dict(config) if config is not None else None)
        return _run_solve(container, config)
    except Exception as e:
        if isinstance(e, Diagnosable):
            diagnostic_report = e.get_diagnostic_report()
            logger.error(f"Solve failed with a diagnosable error:{diagnostic_report}")
            raise CircuitSolveError(diagnostic_report) from e

        logger.critical("An unexpected internal error occurred during solve.", exc_info=True)
        diagnostic_report = format_diagnostic_report(
            error_type=f"Unexpected Internal Error: {type(e).__name__}",
            details=f"An unexpected error occurred: {str(e)}",
            suggestion="This may indicate a bug in circuit_solver. Please review the traceback in the logs.",
            context={'phase': 'solve'}
        )
        raise CircuitSolveError(diagnostic_report) from e


def _run_solve(container: Container, config: SolveConfig) -> SolvedCircuit:
    if not isinstance(container, Container):
        raise TypeError(f"solve() requires a Container, got {type(container).__name__}.")

    logger.info(f"--- Solving '{container.name}' with {config.method} analysis ---")
    issues = ensure_valid(container)
    for issue in issues:
        logger.warning(str(issue))

    recorder = StepRecorder()
    if config.method == SolverMethod.NODE:
        system = build_nodal_system(container, recorder)
        names = [container.tool(n).latex_name for n in system.unknowns]
        solution, handle = _solve_and_record(recorder, system.coefficients, system.sources, names,
                                             "Solve For Node Voltages", config.singular_tolerance)
        derived: Tuple[Tool, ...] = system.supernodes
    else:
        system = build_mesh_system(container, recorder)
        names = [loop.tool.latex_name for loop in system.loops]
        solution, handle = _solve_and_record(recorder, system.coefficients, system.sources, names,
                                             "Solve For Mesh Currents", config.singular_tolerance)
        derived = system.derived_tools

    potentials, currents = compute_branch_currents(container, system, solution.values)
    _record_potentials(recorder, handle, container, potentials)
    _record_currents(recorder, container, system, currents, potentials)
    steps = recorder.into_steps()

    tools = container.tools + derived
    slots = _fill_tool_results(tools, system, solution, potentials)
    logger.info(f"--- Solved '{container.name}': {len(steps)} steps recorded ---")
    return SolvedCircuit(
        container=container,
        method=config.method,
        system=system,
        solution=solution,
        node_voltages=potentials,
        element_currents=currents,
        tools=tools,
        tool_results=slots,
        steps=steps,
        issues=tuple(issues),
    )


def _solve_and_record(recorder: StepRecorder, coefficients: np.ndarray, sources: np.ndarray,
                      names: Sequence[str], title: str, tolerance: float) -> Tuple[LinearSolution, StepHandle]:
    handle = recorder.push_step(title, "Multiply the inverse of the coefficient matrix by the source vector.")
    solution = solve_linear_system(coefficients, sources, tolerance)
    if not names:
        recorder.push_substep(handle, "There are no unknowns to solve for.")
        return solution, handle

    recorder.push_substep(
        handle, "Invert the coefficient matrix",
        operations=[inverse(format_matrix(coefficients))],
        result=format_matrix(solution.inverse),
    )
    recorder.push_substep(
        handle, "Multiply by the source vector",
        operations=[product(format_matrix(solution.inverse), format_vector(sources))],
        result=format_vector(solution.values),
    )
    recorder.complete_step(handle, equation(format_vector(list(names)), format_vector(solution.values)))
    return solution, handle


def _record_potentials(recorder: StepRecorder, handle: StepHandle, container: Container,
                       potentials: Dict[int, float]):
    """Lists every node potential, ground and wire-merged nodes included, on the solve step."""
    recorder.push_substep(
        handle, "Node potentials",
        operations=[equation(container.tool(node).latex_name, format_number(value))
                    for node, value in sorted(potentials.items())],
    )


def _record_currents(recorder: StepRecorder, container: Container, system: Union[NodalSystem, MeshSystem],
                     currents: Dict[int, float], potentials: Dict[int, float]):
    handle = recorder.push_step("Current Results", "Branch currents follow from the solved unknowns.")
    names: List[str] = []
    values: List[float] = []
    for connection in system.connections.connections:
        element = container.element(connection.element_index)
        current = currents[element.index]
        signed = connection.sign * current
        origin, destination = connection.origin, connection.destination
        if signed < 0:
            origin, destination, signed = destination, origin, -signed
        description = (f"{element.pretty_string()}: {format_number(signed)} A flows from "
                       f"{container.tool(origin).pretty_string()} to {container.tool(destination).pretty_string()}")
        recorder.push_substep(
            handle, description,
            operations=_current_operations(container, system, element.index, potentials),
            result=equation(element.latex_name, format_number(current)),
        )
        names.append(element.latex_name)
        values.append(current)
    recorder.complete_step(handle, equation(format_vector(names), format_vector(values)))


def _current_operations(container: Container, system: Union[NodalSystem, MeshSystem], element_index: int,
                        potentials: Dict[int, float]) -> List[str]:
    element = container.element(element_index)
    if element.kind == ElementKind.CURRENT_SOURCE:
        return [equation(element.latex_name, format_number(element.value))]

    if isinstance(system, MeshSystem):
        directions = [loop.direction(element_index) for loop in system.loops]
        names = [loop.tool.latex_name for loop in system.loops]
        return [equation(element.latex_name, linear_combination(directions, names))]

    if element.kind == ElementKind.RESISTOR:
        a, b = element.endpoints
        symbolic_form = fraction(difference(container.tool(a).latex_name, container.tool(b).latex_name), element.name)
        numeric_form = fraction(difference(format_number(potentials[a]), format_number(potentials[b])),
                                format_number(element.value))
        return [equation(element.latex_name, symbolic_form), equation(element.latex_name, numeric_form)]

    # Wires and voltage sources: whatever KCL leaves over at their endpoints.
    return [f"{element.latex_name} \\text{{ from KCL}}"]


def _fill_tool_results(tools: Sequence[Tool], system: Union[NodalSystem, MeshSystem],
                       solution: LinearSolution, potentials: Dict[int, float]) -> ResultSlots:
    slots = ResultSlots(len(tools))
    loop_currents = {}
    if isinstance(system, MeshSystem):
        loop_currents = {loop.tool.index: float(v) for loop, v in zip(system.loops, solution.values)}

    for tool in tools:
        if tool.kind == ToolKind.NODE:
            slots.write(tool.index, potentials[tool.index])
        elif tool.kind == ToolKind.SUPERNODE:
            slots.write(tool.index, potentials[min(tool.tool_members)])
        elif tool.kind == ToolKind.MESH and tool.index in loop_currents:
            slots.write(tool.index, loop_currents[tool.index])
        elif tool.kind == ToolKind.SUPERMESH:
            slots.write(tool.index, loop_currents[min(tool.tool_members)])
    return slots
