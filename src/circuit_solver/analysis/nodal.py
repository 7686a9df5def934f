# src/circuit_solver/analysis/nodal.py
import logging
from typing import Dict, FrozenSet, List, Sequence, Tuple

import networkx as nx
import numpy as np
import sympy

from ..steps import StepHandle, StepRecorder
from ..steps.formatting import equation, format_number, format_vector, linear_combination
from ..topology import Container, Element, ElementKind, Tool, ToolKind
from .connections import build_connection_matrix, record_connection_step
from .exceptions import BuildError
from .results import NodalSystem
from . import symbolic

logger = logging.getLogger(__name__)


class NodalEquationBuilder:
    """
    Writes the modified nodal equations of a validated Container.

    Nodes joined by wires are merged into one electrical node first. The
    potentials of the remaining non-ground electrical nodes are the unknowns.
    Voltage sources between two non-ground electrical nodes merge them into a
    supernode, whose single KCL row balances the current crossing its boundary;
    every voltage source then adds its own constraint row.
    """

    def __init__(self, container: Container, recorder: StepRecorder):
        self.container = container
        self.recorder = recorder
        ground = container.ground_node()
        if ground is None:
            raise BuildError(details="The circuit has no single ground node to measure potentials against.")
        self.ground = ground

    def build(self) -> NodalSystem:
        container = self.container
        representative = self._merge_wired_nodes()
        unknowns = tuple(n for n in container.node_indices() if representative[n] == n and n != self.ground)
        column = {node: position for position, node in enumerate(unknowns)}
        unknown_names = [container.tool(n).latex_name for n in unknowns]

        source_graph = self._voltage_source_graph(representative)
        supernodes = self._derive_supernodes(representative)
        logger.info(f"Building nodal system for '{container.name}': {len(unknowns)} unknown potential(s), "
                    f"{len(supernodes)} supernode(s).")

        handle = self.recorder.push_step(
            "KCL Equations",
            "The currents leaving every node (or supernode) sum to the current injected into it."
        )
        self._record_enumeration(handle, unknowns, representative, supernodes)

        rows: List[np.ndarray] = []
        sources: List[float] = []
        labels: List[str] = []

        for node in unknowns:
            component = nx.node_connected_component(source_graph, node)
            if self.ground in component or node != min(component):
                continue
            members = frozenset(component)
            label = self._region_label(members, supernodes)
            row, value = self._kcl_row(members, column, representative)
            self._record_kcl(handle, label, members, row, value, representative, unknowns)
            rows.append(row)
            sources.append(value)
            labels.append(f"KCL {label}")

        for element in container.elements_of_kind(ElementKind.VOLTAGE_SOURCE):
            row = self._constraint_row(element, column, representative)
            positive = container.tool(representative[element.endpoints[0]]).latex_name
            negative = container.tool(representative[element.endpoints[1]]).latex_name
            self.recorder.push_substep(
                handle,
                f"Voltage source {element.pretty_string()}",
                operations=[equation(f"{positive} - {negative}", format_number(element.value))],
                result=equation(linear_combination(row, unknown_names), format_number(element.value)),
            )
            rows.append(row)
            sources.append(element.value)
            labels.append(element.name)

        if len(rows) != len(unknowns):
            raise BuildError(
                details=f"Assembled {len(rows)} equation(s) for {len(unknowns)} unknown potential(s)."
            )

        coefficients = np.vstack(rows) if rows else np.zeros((0, 0), dtype=float)
        source_vector = np.array(sources, dtype=float)
        connections = build_connection_matrix(container)
        record_connection_step(self.recorder, container, connections, coefficients, source_vector, unknown_names)

        return NodalSystem(
            coefficients=coefficients,
            sources=source_vector,
            unknowns=unknowns,
            representative=representative,
            ground=self.ground,
            supernodes=supernodes,
            row_labels=tuple(labels),
            connections=connections,
        )

    # --- Topology reduction ---

    def _merge_wired_nodes(self) -> Dict[int, int]:
        """Maps every node tool to the representative of its wire-connected group."""
        graph = nx.Graph()
        graph.add_nodes_from(self.container.node_indices())
        for element in self.container.elements_of_kind(ElementKind.WIRE):
            if not element.is_self_loop:
                graph.add_edge(*element.endpoints)

        representative: Dict[int, int] = {}
        for group in nx.connected_components(graph):
            chosen = self.ground if self.ground in group else min(group)
            for node in group:
                representative[node] = chosen
            if len(group) > 1:
                logger.debug(f"Wires merge nodes {sorted(group)} into node {chosen}.")
        return representative

    def _voltage_source_graph(self, representative: Dict[int, int]) -> nx.MultiGraph:
        graph = nx.MultiGraph()
        graph.add_nodes_from(set(representative.values()))
        for element in self.container.elements_of_kind(ElementKind.VOLTAGE_SOURCE):
            a, b = representative[element.endpoints[0]], representative[element.endpoints[1]]
            if a == b:
                raise BuildError(
                    details=f"Voltage source '{element.name}' is shorted: both terminals end up on the same node.",
                    element_names=(element.name,)
                )
            graph.add_edge(a, b, key=element.index)

        for component in nx.connected_components(graph):
            subgraph = graph.subgraph(component)
            if subgraph.number_of_edges() != len(component) - 1:
                names = tuple(sorted(self.container.element(k).name for _, _, k in subgraph.edges(keys=True)))
                raise BuildError(
                    details=f"Voltage sources {', '.join(names)} form a loop.",
                    element_names=names
                )
        return graph

    def _derive_supernodes(self, representative: Dict[int, int]) -> Tuple[Tool, ...]:
        floating = nx.Graph()
        floating_sources: Dict[Tuple[int, int], List[int]] = {}
        for element in self.container.elements_of_kind(ElementKind.VOLTAGE_SOURCE):
            a, b = representative[element.endpoints[0]], representative[element.endpoints[1]]
            if self.ground in (a, b):
                continue
            floating.add_edge(a, b)
            floating_sources.setdefault((a, b), []).append(element.index)

        supernodes = []
        next_index = len(self.container.tools)
        for position, component in enumerate(sorted(nx.connected_components(floating), key=min)):
            node_members = frozenset(n for n, rep in representative.items() if rep in component)
            element_members = frozenset(
                index for (a, _), indices in floating_sources.items() if a in component for index in indices
            )
            supernode = Tool(index=next_index + position, kind=ToolKind.SUPERNODE,
                             element_members=element_members, tool_members=node_members)
            supernodes.append(supernode)
            logger.debug(f"Derived {supernode.pretty_string()} over nodes {sorted(node_members)}.")
        return tuple(supernodes)

    def _region_label(self, members: FrozenSet[int], supernodes: Sequence[Tool]) -> str:
        if len(members) == 1:
            return self.container.tool(next(iter(members))).pretty_string()
        for supernode in supernodes:
            if members <= supernode.tool_members:
                return supernode.pretty_string()
        raise BuildError(details=f"Nodes {sorted(members)} are tied by voltage sources but have no supernode.")

    # --- Rows ---

    def _kcl_row(self, members: FrozenSet[int], column: Dict[int, int],
                 representative: Dict[int, int]) -> Tuple[np.ndarray, float]:
        row = np.zeros(len(column), dtype=float)
        injected = 0.0
        for element in self.container.elements_of_kind(ElementKind.RESISTOR):
            a, b = representative[element.endpoints[0]], representative[element.endpoints[1]]
            if (a in members) == (b in members):
                continue
            conductance = 1.0 / element.value
            near, far = (a, b) if a in members else (b, a)
            row[column[near]] += conductance
            if far != self.ground:
                row[column[far]] -= conductance

        for element in self.container.elements_of_kind(ElementKind.CURRENT_SOURCE):
            a, b = representative[element.endpoints[0]], representative[element.endpoints[1]]
            if b in members and a not in members:
                injected += element.value
            elif a in members and b not in members:
                injected -= element.value
        return row, injected

    def _constraint_row(self, element: Element, column: Dict[int, int],
                        representative: Dict[int, int]) -> np.ndarray:
        row = np.zeros(len(column), dtype=float)
        positive, negative = representative[element.endpoints[0]], representative[element.endpoints[1]]
        if positive != self.ground:
            row[column[positive]] += 1.0
        if negative != self.ground:
            row[column[negative]] -= 1.0
        return row

    # --- Trace ---

    def _record_enumeration(self, handle: StepHandle, unknowns: Sequence[int],
                            representative: Dict[int, int], supernodes: Sequence[Tool]):
        container = self.container
        operations = []
        for node in container.node_indices():
            name = container.tool(node).latex_name
            if node == self.ground:
                operations.append(f"{name} = 0")
            elif representative[node] != node:
                operations.append(f"{name} = {container.tool(representative[node]).latex_name}")
        unknown_names = [container.tool(n).latex_name for n in unknowns]
        self.recorder.push_substep(handle, "Enumerate nodes", operations=operations,
                                   result=format_vector(unknown_names))

        if supernodes:
            described = []
            for supernode in supernodes:
                members = ", ".join(container.tool(n).latex_name for n in sorted(supernode.tool_members))
                described.append(f"{supernode.latex_name} = \\{{{members}\\}}")
            self.recorder.push_substep(handle, "Enumerate supernodes", operations=described)

    def _record_kcl(self, handle: StepHandle, label: str, members: FrozenSet[int], row: np.ndarray,
                    value: float, representative: Dict[int, int], unknowns: Sequence[int]):
        container = self.container
        node_symbols = {n: symbolic.tool_symbol(container.tool(n)) for n in set(representative.values())}

        balance_terms, ohm_terms, injected_terms = [], [], []
        values: Dict[sympy.Symbol, float] = {node_symbols[self.ground]: 0.0}
        for element in container.elements_of_kind(ElementKind.RESISTOR):
            a, b = representative[element.endpoints[0]], representative[element.endpoints[1]]
            if (a in members) == (b in members):
                continue
            sign = 1 if a in members else -1
            resistance = symbolic.element_symbol(element)
            balance_terms.append(sign * symbolic.current_symbol(element))
            ohm_terms.append(sign * (node_symbols[a] - node_symbols[b]) / resistance)
            values[resistance] = element.value

        for element in container.elements_of_kind(ElementKind.CURRENT_SOURCE):
            a, b = representative[element.endpoints[0]], representative[element.endpoints[1]]
            if (a in members) == (b in members):
                continue
            source = symbolic.element_symbol(element)
            injected_terms.append(source if b in members else -source)
            values[source] = element.value

        injected = symbolic.signed_sum(injected_terms)
        ohm = symbolic.signed_sum(ohm_terms)
        unknown_symbols = [node_symbols[n] for n in unknowns]
        substituted = symbolic.collect_terms(symbolic.substitute_values(ohm, values), unknown_symbols)

        self.recorder.push_substep(
            handle,
            f"KCL at {label}",
            operations=[
                symbolic.equation_latex(symbolic.signed_sum(balance_terms), injected),
                symbolic.equation_latex(ohm, injected),
                symbolic.equation_latex(substituted, symbolic.substitute_values(injected, values)),
            ],
            result=equation(linear_combination(row, [container.tool(n).latex_name for n in unknowns]),
                            format_number(value)),
        )


def build_nodal_system(container: Container, recorder: StepRecorder) -> NodalSystem:
    """Builds the nodal system of a validated Container, recording the KCL and connection steps."""
    return NodalEquationBuilder(container, recorder).build()
