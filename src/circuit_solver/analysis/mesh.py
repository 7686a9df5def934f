# src/circuit_solver/analysis/mesh.py
import logging
from typing import Dict, List, Sequence, Tuple

import networkx as nx
import numpy as np
import sympy

from ..steps import StepHandle, StepRecorder
from ..steps.formatting import equation, format_number, format_vector, linear_combination
from ..topology import Container, ElementKind, Tool, ToolKind
from .connections import build_connection_matrix, record_connection_step
from .exceptions import BuildError
from .results import Loop, MeshSystem
from . import symbolic

logger = logging.getLogger(__name__)


class MeshEquationBuilder:
    """
    Writes the mesh (loop current) equations of a validated Container.

    Each loop carries one circulating current. Loops are the Container's mesh
    tools when it has any, otherwise the fundamental loops of a spanning tree
    built from conducting elements, so that every current source is a loop link.
    Meshes sharing a current source form a supermesh: the current-source
    voltages are unknown, so the member KVL rows are added with signs that
    cancel them, and each current source fixes its loop currents instead.
    """

    def __init__(self, container: Container, recorder: StepRecorder):
        self.container = container
        self.recorder = recorder

    def build(self) -> MeshSystem:
        container = self.container
        graph = self._element_graph()
        independent_loops = (graph.number_of_edges() - graph.number_of_nodes()
                             + nx.number_connected_components(graph))

        mesh_tools = [container.tool(i) for i in container.mesh_indices()]
        if mesh_tools:
            loops = [self._loop_from_tool(tool) for tool in mesh_tools]
        else:
            loops = self._fundamental_loops(graph)
        if len(loops) != independent_loops:
            raise BuildError(
                details=f"The circuit has {independent_loops} independent loop(s) but {len(loops)} mesh(es) were given.",
                analysis="mesh"
            )

        source_loops = self._current_source_loops(loops)
        groups, supermeshes = self._group_meshes(loops, source_loops)
        names = [loop.tool.latex_name for loop in loops]
        logger.info(f"Building mesh system for '{container.name}': {len(loops)} mesh current(s), "
                    f"{len(supermeshes)} supermesh(es).")

        handle = self.recorder.push_step(
            "KVL Equations",
            "The voltage drops around every mesh (or supermesh) sum to zero."
        )
        self._record_enumeration(handle, loops, supermeshes)

        rows: List[np.ndarray] = []
        sources: List[float] = []
        labels: List[str] = []
        for members, label in groups:
            weights = self._kvl_weights(loops, members)
            row, value = self._kvl_row(loops, weights)
            self._record_kvl(handle, label, loops, weights, row, value)
            rows.append(row)
            sources.append(value)
            labels.append(f"KVL {label}")

        for element_index, positions in source_loops.items():
            element = container.element(element_index)
            row = np.zeros(len(loops), dtype=float)
            for position in positions:
                row[position] = loops[position].direction(element_index)
            self.recorder.push_substep(
                handle,
                f"Current source {element.pretty_string()}",
                operations=[equation(element.latex_name, format_number(element.value))],
                result=equation(linear_combination(row, names), format_number(element.value)),
            )
            rows.append(row)
            sources.append(element.value)
            labels.append(element.name)

        if len(rows) != len(loops):
            raise BuildError(
                details=f"Assembled {len(rows)} equation(s) for {len(loops)} mesh current(s).",
                analysis="mesh"
            )

        coefficients = np.vstack(rows) if rows else np.zeros((0, 0), dtype=float)
        source_vector = np.array(sources, dtype=float)
        connections = build_connection_matrix(container)
        record_connection_step(self.recorder, container, connections, coefficients, source_vector, names)

        return MeshSystem(
            coefficients=coefficients,
            sources=source_vector,
            loops=tuple(loops),
            supermeshes=supermeshes,
            row_labels=tuple(labels),
            connections=connections,
        )

    # --- Loops ---

    def _element_graph(self) -> nx.MultiGraph:
        graph = nx.MultiGraph()
        graph.add_nodes_from(self.container.node_indices())
        for element in self.container.circuit_elements():
            if not element.is_self_loop:
                graph.add_edge(*element.endpoints, key=element.index)
        return graph

    def _loop_from_tool(self, tool: Tool) -> Loop:
        container = self.container
        members = sorted(tool.element_members)
        loop_graph = nx.MultiGraph()
        for index in members:
            if index >= len(container.elements):
                raise BuildError(details=f"{tool.pretty_string()} lists element {index}, which does not exist.",
                                 analysis="mesh")
            element = container.element(index)
            if element.kind == ElementKind.GROUND or element.is_self_loop:
                raise BuildError(details=f"{tool.pretty_string()} contains '{element.name}', which cannot be part of a loop.",
                                 element_names=(element.name,), analysis="mesh")
            loop_graph.add_edge(*element.endpoints, key=index)

        if not nx.is_connected(loop_graph) or any(degree != 2 for _, degree in loop_graph.degree()):
            raise BuildError(
                details=f"{tool.pretty_string()} is not a simple closed loop.",
                element_names=tuple(container.element(i).name for i in members),
                analysis="mesh"
            )

        first = container.element(members[0])
        order, nodes = [first.index], [first.endpoints[0]]
        directions = {first.index: 1}
        current = first.endpoints[1]
        while len(order) < len(members):
            nodes.append(current)
            key = min(k for _, _, k in loop_graph.edges(current, keys=True) if k not in directions)
            element = container.element(key)
            directions[key] = 1 if element.endpoints[0] == current else -1
            order.append(key)
            current = element.other_endpoint(current)
        return Loop(tool=tool, elements=tuple(order), nodes=tuple(nodes), directions=directions)

    def _fundamental_loops(self, graph: nx.MultiGraph) -> List[Loop]:
        container = self.container
        weighted = nx.MultiGraph()
        weighted.add_nodes_from(graph.nodes)
        for u, v, key in graph.edges(keys=True):
            weight = 1 if container.element(key).kind == ElementKind.CURRENT_SOURCE else 0
            weighted.add_edge(u, v, key=key, weight=weight)

        tree = nx.Graph()
        tree.add_nodes_from(graph.nodes)
        for u, v, key in nx.minimum_spanning_edges(weighted, algorithm="kruskal", weight="weight",
                                                   keys=True, data=False):
            tree.add_edge(u, v, key=key)
        tree_keys = {data["key"] for _, _, data in tree.edges(data=True)}
        links = sorted(key for _, _, key in graph.edges(keys=True) if key not in tree_keys)

        loops = []
        next_index = len(container.tools)
        for position, link in enumerate(links):
            a, b = container.element(link).endpoints
            path = nx.shortest_path(tree, b, a)
            order, nodes, directions = [link], [a], {link: 1}
            for x, y in zip(path, path[1:]):
                key = tree[x][y]["key"]
                directions[key] = 1 if container.element(key).endpoints[0] == x else -1
                order.append(key)
                nodes.append(x)
            tool = Tool(index=next_index + position, kind=ToolKind.MESH, element_members=frozenset(order))
            loops.append(Loop(tool=tool, elements=tuple(order), nodes=tuple(nodes),
                              directions=directions, derived=True))
            logger.debug(f"Derived {tool.pretty_string()} from link '{container.element(link).name}'.")
        return loops

    # --- Supermeshes ---

    def _current_source_loops(self, loops: Sequence[Loop]) -> Dict[int, List[int]]:
        """Maps every current source to the positions of the loops running through it."""
        source_loops: Dict[int, List[int]] = {}
        for element in self.container.elements_of_kind(ElementKind.CURRENT_SOURCE):
            positions = [p for p, loop in enumerate(loops) if loop.direction(element.index)]
            if not positions or len(positions) > 2:
                raise BuildError(
                    details=f"Current source '{element.name}' must lie on one or two meshes, found {len(positions)}.",
                    element_names=(element.name,), analysis="mesh"
                )
            source_loops[element.index] = positions
        return source_loops

    def _group_meshes(self, loops: Sequence[Loop],
                      source_loops: Dict[int, List[int]]) -> Tuple[List[Tuple[Dict[int, int], str]], Tuple[Tool, ...]]:
        """
        Returns the KVL groups as (sign per member loop position, label) and the
        derived supermesh tools.
        """
        mesh_graph = nx.MultiGraph()
        mesh_graph.add_nodes_from(range(len(loops)))
        for element_index, positions in source_loops.items():
            if len(positions) == 2:
                mesh_graph.add_edge(positions[0], positions[1], key=element_index)

        next_index = max([len(self.container.tools)] + [loop.tool.index + 1 for loop in loops])
        groups: List[Tuple[Dict[int, int], str]] = []
        supermeshes: List[Tool] = []
        for component in sorted(nx.connected_components(mesh_graph), key=min):
            sources_inside = [i for i, positions in source_loops.items() if positions[0] in component]
            kvl_rows_needed = len(component) - len(sources_inside)
            if kvl_rows_needed not in (0, 1):
                names = tuple(self.container.element(i).name for i in sources_inside)
                raise BuildError(
                    details=f"Current sources {', '.join(names)} over-constrain meshes {sorted(component)}.",
                    element_names=names, analysis="mesh"
                )

            label = loops[min(component)].tool.pretty_string()
            if len(component) > 1:
                supermesh = Tool(
                    index=next_index + len(supermeshes), kind=ToolKind.SUPERMESH,
                    element_members=frozenset(k for _, _, k in mesh_graph.subgraph(component).edges(keys=True)),
                    tool_members=frozenset(loops[p].tool.index for p in component),
                )
                supermeshes.append(supermesh)
                label = supermesh.pretty_string()
                logger.debug(f"Derived {label} over meshes {sorted(supermesh.tool_members)}.")

            if kvl_rows_needed == 1:
                root = min(component)
                signs = {root: 1}
                for parent, child in nx.bfs_edges(mesh_graph, root):
                    key = next(iter(mesh_graph[parent][child]))
                    signs[child] = -signs[parent] * loops[parent].direction(key) * loops[child].direction(key)
                groups.append((signs, label))
        return groups, tuple(supermeshes)

    # --- Rows ---

    def _kvl_weights(self, loops: Sequence[Loop], signs: Dict[int, int]) -> Dict[int, int]:
        """Net traversal count of every element across the signed member loops."""
        weights: Dict[int, int] = {}
        for position, sign in signs.items():
            for element_index, direction in loops[position].directions.items():
                weights[element_index] = weights.get(element_index, 0) + sign * direction
        return {k: w for k, w in sorted(weights.items()) if w != 0}

    def _kvl_row(self, loops: Sequence[Loop], weights: Dict[int, int]) -> Tuple[np.ndarray, float]:
        row = np.zeros(len(loops), dtype=float)
        value = 0.0
        for element_index, weight in weights.items():
            element = self.container.element(element_index)
            if element.kind == ElementKind.RESISTOR:
                for position, loop in enumerate(loops):
                    row[position] += element.value * weight * loop.direction(element_index)
            elif element.kind == ElementKind.VOLTAGE_SOURCE:
                value -= weight * element.value
        return row, value

    # --- Trace ---

    def _record_enumeration(self, handle: StepHandle, loops: Sequence[Loop], supermeshes: Sequence[Tool]):
        container = self.container
        described = []
        for loop in loops:
            path = [container.tool(n).latex_name for n in loop.nodes + loop.nodes[:1]]
            described.append(f"{loop.tool.latex_name}: " + " \\rightarrow ".join(path))
        self.recorder.push_substep(handle, "Enumerate meshes", operations=described,
                                   result=format_vector([loop.tool.latex_name for loop in loops]))
        if supermeshes:
            by_index = {loop.tool.index: loop.tool for loop in loops}
            merged = []
            for supermesh in supermeshes:
                members = ", ".join(by_index[i].latex_name for i in sorted(supermesh.tool_members))
                merged.append(f"{supermesh.latex_name} = \\{{{members}\\}}")
            self.recorder.push_substep(handle, "Enumerate supermeshes", operations=merged)

    def _record_kvl(self, handle: StepHandle, label: str, loops: Sequence[Loop], weights: Dict[int, int],
                    row: np.ndarray, value: float):
        container = self.container
        mesh_symbols = [symbolic.tool_symbol(loop.tool) for loop in loops]
        drop_terms, expanded_terms, source_terms = [], [], []
        values: Dict[sympy.Symbol, float] = {}
        for element_index, weight in weights.items():
            element = container.element(element_index)
            value_symbol = symbolic.element_symbol(element)
            if element.kind == ElementKind.RESISTOR:
                through = sympy.Add(*[loop.direction(element_index) * symbol
                                      for loop, symbol in zip(loops, mesh_symbols) if loop.direction(element_index)])
                drop_terms.append(weight * value_symbol * symbolic.current_symbol(element))
                expanded_terms.append(weight * value_symbol * through)
                values[value_symbol] = element.value
            elif element.kind == ElementKind.VOLTAGE_SOURCE:
                drop_terms.append(weight * value_symbol)
                source_terms.append(-weight * value_symbol)
                values[value_symbol] = element.value

        expanded = symbolic.signed_sum(expanded_terms)
        sources = symbolic.signed_sum(source_terms)
        substituted = symbolic.collect_terms(symbolic.substitute_values(expanded, values), mesh_symbols)
        self.recorder.push_substep(
            handle,
            f"KVL around {label}",
            operations=[
                symbolic.equation_latex(symbolic.signed_sum(drop_terms), sympy.Integer(0)),
                symbolic.equation_latex(expanded, sources),
                symbolic.equation_latex(substituted, symbolic.substitute_values(sources, values)),
            ],
            result=equation(linear_combination(row, [loop.tool.latex_name for loop in loops]),
                            format_number(value)),
        )


def build_mesh_system(container: Container, recorder: StepRecorder) -> MeshSystem:
    """Builds the mesh system of a validated Container, recording the KVL and connection steps."""
    return MeshEquationBuilder(container, recorder).build()
