# src/circuit_solver/simulation/currents.py
"""
Back-substitution of branch currents (and, on the mesh path, node potentials)
once the linear system has been solved.

Currents are signed along each element's endpoints: positive means current
flows from endpoints[0] to endpoints[1] through the element.
"""
import logging
from collections import deque
from typing import Dict, Sequence, Tuple, Union

import networkx as nx
import numpy as np

from ..analysis import BuildError, MeshSystem, NodalSystem
from ..constants import GROUND_POTENTIAL
from ..topology import Container, Element, ElementKind

logger = logging.getLogger(__name__)


def node_potentials(system: NodalSystem, values: Sequence[float]) -> Dict[int, float]:
    """Expands the solved unknowns to a potential for every node tool."""
    solved = {node: float(v) for node, v in zip(system.unknowns, values)}
    solved[system.ground] = GROUND_POTENTIAL
    return {node: solved[rep] for node, rep in system.representative.items()}


def nodal_branch_currents(container: Container, system: NodalSystem,
                          potentials: Dict[int, float]) -> Dict[int, float]:
    """
    Ohm's law for resistors and the source value for current sources. Wires and
    voltage sources carry whatever KCL requires: the zero-impedance elements
    form a forest, which is peeled from its non-ground leaves inward.
    """
    currents: Dict[int, float] = {}
    imbalance = {node: 0.0 for node in container.node_indices()}

    def account(element: Element, current: float):
        a, b = element.endpoints
        imbalance[a] += current
        imbalance[b] -= current

    for element in container.elements:
        if element.kind == ElementKind.RESISTOR:
            a, b = element.endpoints
            currents[element.index] = (potentials[a] - potentials[b]) / element.value
        elif element.kind == ElementKind.CURRENT_SOURCE:
            currents[element.index] = element.value
        elif element.kind == ElementKind.GROUND:
            currents[element.index] = 0.0
        else:
            continue
        account(element, currents[element.index])

    forest = nx.MultiGraph()
    for element in container.elements_of_kind(ElementKind.WIRE, ElementKind.VOLTAGE_SOURCE):
        if element.is_self_loop:
            currents[element.index] = 0.0
        else:
            forest.add_edge(*element.endpoints, key=element.index)

    while forest.number_of_edges():
        leaf = next((n for n in sorted(forest.nodes) if n != system.ground and forest.degree(n) == 1), None)
        if leaf is None:
            raise BuildError(details="Zero-impedance elements form a loop; their currents are not determined.")
        _, other, key = next(iter(forest.edges(leaf, keys=True)))
        element = container.element(key)
        # KCL at the leaf: everything else leaving it must come back through this element.
        current = -imbalance[leaf] if element.endpoints[0] == leaf else imbalance[leaf]
        currents[key] = current
        account(element, current)
        forest.remove_edge(leaf, other, key=key)

    return dict(sorted(currents.items()))


def mesh_branch_currents(container: Container, system: MeshSystem, values: Sequence[float]) -> Dict[int, float]:
    """Every element carries the signed sum of the mesh currents running through it."""
    values = np.asarray(values, dtype=float)
    currents: Dict[int, float] = {}
    for element in container.elements:
        currents[element.index] = float(sum(
            loop.direction(element.index) * values[position] for position, loop in enumerate(system.loops)
        ))
    return currents


def potentials_from_currents(container: Container, currents: Dict[int, float]) -> Dict[int, float]:
    """
    Walks outward from ground across resistors, wires and voltage sources,
    turning known branch currents back into node potentials.
    """
    ground = container.ground_node()
    potentials: Dict[int, float] = {ground: GROUND_POTENTIAL}
    graph = nx.MultiGraph()
    graph.add_nodes_from(container.node_indices())
    for element in container.circuit_elements():
        if element.kind.is_conducting and not element.is_self_loop:
            graph.add_edge(*element.endpoints, key=element.index)

    queue = deque([ground])
    while queue:
        node = queue.popleft()
        for _, neighbour, key in graph.edges(node, keys=True):
            if neighbour in potentials:
                continue
            element = container.element(key)
            # Drop from endpoints[0] to endpoints[1].
            if element.kind == ElementKind.RESISTOR:
                drop = element.value * currents[key]
            elif element.kind == ElementKind.VOLTAGE_SOURCE:
                drop = element.value
            else:
                drop = 0.0
            potentials[neighbour] = potentials[node] - drop if element.endpoints[0] == node else potentials[node] + drop
            queue.append(neighbour)
    return dict(sorted(potentials.items()))


def compute_branch_currents(container: Container, system: Union[NodalSystem, MeshSystem],
                            values: Sequence[float]) -> Tuple[Dict[int, float], Dict[int, float]]:
    """Returns (node potentials, branch currents) for a solved nodal or mesh system."""
    if isinstance(system, MeshSystem):
        currents = mesh_branch_currents(container, system, values)
        return potentials_from_currents(container, currents), currents
    potentials = node_potentials(system, values)
    return potentials, nodal_branch_currents(container, system, potentials)
