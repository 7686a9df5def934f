# src/circuit_solver/analysis/connections.py
import logging
from typing import List, Sequence

import numpy as np

from ..steps import StepRecorder
from ..steps.formatting import equation, format_matrix, format_vector, product
from ..topology import Container
from .results import Connection, ConnectionMatrix

logger = logging.getLogger(__name__)


def build_connection_matrix(container: Container) -> ConnectionMatrix:
    """
    Records, for every non-ground element, which node a positive current leaves
    (origin) and which it enters (destination). Sources keep their polarity;
    other elements run from the lower to the higher node index.
    """
    node_indices = tuple(container.node_indices())
    column = {node: position for position, node in enumerate(node_indices)}
    elements = container.circuit_elements()

    connections: List[Connection] = []
    matrix = np.zeros((len(elements), len(node_indices)), dtype=float)
    for row, element in enumerate(elements):
        a, b = element.endpoints
        if element.kind.has_polarity:
            origin, destination = a, b
        else:
            origin, destination = min(a, b), max(a, b)
        connections.append(Connection(
            element_index=element.index, origin=origin, destination=destination,
            sign=1 if origin == a else -1
        ))
        matrix[row, column[origin]] += 1.0
        matrix[row, column[destination]] -= 1.0

    return ConnectionMatrix(
        connections=tuple(connections),
        element_indices=tuple(e.index for e in elements),
        node_indices=node_indices,
        matrix=matrix,
    )


def record_connection_step(
    recorder: StepRecorder,
    container: Container,
    connections: ConnectionMatrix,
    coefficients: np.ndarray,
    sources: np.ndarray,
    unknown_names: Sequence[str],
):
    """Writes the `Connection Matrix` step, whose result is the full matrix equation."""
    handle = recorder.push_step(
        "Connection Matrix",
        "Each element connects an origin node to a destination node; the collected equations form A x = z."
    )

    arrows = []
    for connection in connections.connections:
        element = container.element(connection.element_index)
        origin = container.tool(connection.origin).latex_name
        destination = container.tool(connection.destination).latex_name
        arrows.append(f"{element.latex_name}: {origin} \\rightarrow {destination}")
    recorder.push_substep(handle, "Element connections", operations=arrows)

    recorder.push_substep(
        handle, "Connection matrix (rows: elements, columns: nodes)",
        result=format_matrix(connections.matrix)
    )
    recorder.push_substep(handle, "Coefficient matrix", result=format_matrix(coefficients))
    recorder.push_substep(handle, "Source vector", result=format_vector(sources))

    matrix_equation = equation(product(format_matrix(coefficients), format_vector(list(unknown_names))),
                               format_vector(sources))
    recorder.complete_step(handle, matrix_equation)
    logger.debug(f"Recorded connection matrix for {len(connections.connections)} elements.")
