# src/circuit_solver/validation/topology_validator.py
import logging
import math
from collections import Counter
from typing import Iterable, List, Optional, Sequence

import networkx as nx

from ..topology import Container, Element, ElementKind
from .issues import ValidationIssue, ValidationIssueLevel
from .issue_codes import TopologyIssueCode
from .exceptions import TopologyValidationError

logger = logging.getLogger(__name__)


class TopologyValidator:
    """
    Checks a Container against the structural and electrical rules that must hold
    before any equation is written.

    Every rule runs on every call, and each failing rule contributes exactly one
    issue naming all the offending Elements or Tools. The Container is only read.
    """

    def __init__(self, container: Container):
        if not isinstance(container, Container):
            raise TypeError("TopologyValidator requires a Container.")
        self.container = container
        self.issues: List[ValidationIssue] = []

    def validate(self) -> List[ValidationIssue]:
        """
        Runs all rules and returns every issue found (errors, warnings and info).
        Callers decide whether ERROR-level issues stop the run; `ensure_valid` does.
        """
        self.issues = []
        logger.info(f"Validating topology of '{self.container.name}' "
                    f"({len(self.container.elements)} elements, {len(self.container.tools)} tools)...")

        self._check_not_empty()
        self._check_unique_names()
        ground = self._check_single_ground()
        self._check_connectivity(ground)
        self._check_open_circuits(ground)
        self._check_short_circuits()
        self._check_self_loops()
        self._check_values()
        self._check_sources()

        if self.issues:
            errors = sum(1 for i in self.issues if i.level == ValidationIssueLevel.ERROR)
            warnings = sum(1 for i in self.issues if i.level == ValidationIssueLevel.WARNING)
            infos = sum(1 for i in self.issues if i.level == ValidationIssueLevel.INFO)
            logger.info(f"Validation complete. Found: {errors} errors, {warnings} warnings, {infos} info messages.")
        else:
            logger.info("Validation complete with no issues found.")
        return list(self.issues)

    def _add_issue(
        self,
        level: ValidationIssueLevel,
        code_enum: TopologyIssueCode,
        elements: Iterable[Element] = (),
        tools: Iterable[int] = (),
        **kwargs,
    ):
        element_names = tuple(e.name for e in sorted(elements, key=lambda e: e.index))
        tool_indices = tuple(sorted(set(tools)))
        message = code_enum.format_message(**kwargs)
        self.issues.append(ValidationIssue(
            level=level, code=code_enum.code, message=message,
            element_names=element_names, tool_indices=tool_indices, details=kwargs
        ))

    # --- Helpers ---

    def _node_label(self, tool_index: int) -> str:
        return self.container.tool(tool_index).pretty_string()

    def _branch_elements(self) -> List[Element]:
        """Non-ground elements that join two different nodes."""
        return [e for e in self.container.circuit_elements() if not e.is_self_loop]

    def _node_graph(self, elements: Sequence[Element]) -> nx.MultiGraph:
        graph = nx.MultiGraph()
        graph.add_nodes_from(self.container.node_indices())
        for element in elements:
            graph.add_edge(element.endpoints[0], element.endpoints[1], key=element.index)
        return graph

    # --- Rules ---

    def _check_not_empty(self):
        if not self.container.circuit_elements():
            self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.EMPTY_CIRCUIT)

    def _check_unique_names(self):
        counts = Counter(e.name for e in self.container.elements)
        duplicated = {name for name, count in counts.items() if count > 1}
        if duplicated:
            offenders = [e for e in self.container.elements if e.name in duplicated]
            ordered_names = list(dict.fromkeys(e.name for e in offenders))
            self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.DUPLICATE_NAME,
                            elements=offenders, names=", ".join(ordered_names))

    def _check_single_ground(self) -> Optional[int]:
        container = self.container
        candidates = sorted(container.ground_candidates())
        ground_elements = container.elements_of_kind(ElementKind.GROUND)

        if not container.ground_reference_is_valid():
            reason = (f"the designated reference {container.ground} does not point at a node tool "
                      f"or a ground element")
            self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.MISSING_OR_MULTIPLE_GROUND,
                            elements=ground_elements, tools=candidates, reason=reason)
            return None
        if not candidates:
            self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.MISSING_OR_MULTIPLE_GROUND,
                            reason="no ground element or ground reference was given")
            return None
        if len(candidates) > 1:
            labels = ", ".join(self._node_label(i) for i in candidates)
            self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.MISSING_OR_MULTIPLE_GROUND,
                            elements=ground_elements, tools=candidates,
                            reason=f"{len(candidates)} different nodes are marked as ground ({labels})")
            return None
        return candidates[0]

    def _check_connectivity(self, ground: Optional[int]):
        graph = self._node_graph(self._branch_elements())
        if graph.number_of_nodes() == 0:
            return
        components = sorted((sorted(c) for c in nx.connected_components(graph)), key=lambda c: c[0])
        if len(components) <= 1:
            return

        main = next((c for c in components if ground in c), components[0])
        stray_tools = [i for c in components if c is not main for i in c]
        stray_elements = [e for e in self._branch_elements() if e.endpoints[0] in stray_tools]
        groups = "; ".join("(" + ", ".join(self._node_label(i) for i in c) + ")" for c in components)
        self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.DISCONNECTED,
                        elements=stray_elements, tools=stray_tools,
                        count=len(components), groups=groups)

    def _check_open_circuits(self, ground: Optional[int]):
        if ground is None:
            logger.debug("Skipping open-circuit check: no unique ground node.")
            return
        conducting = [e for e in self._branch_elements() if e.kind.is_conducting]
        graph = self._node_graph(conducting)
        reachable = nx.node_connected_component(graph, ground)
        floating = [i for i in self.container.node_indices() if i not in reachable]
        if floating:
            touching = [e for e in self.container.circuit_elements()
                        if e.endpoints[0] in floating or e.endpoints[1] in floating]
            self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.OPEN_CIRCUIT,
                            elements=touching, tools=floating,
                            nodes=", ".join(self._node_label(i) for i in floating))

    def _check_short_circuits(self):
        zero_impedance = [e for e in self._branch_elements() if e.kind.is_zero_impedance]
        graph = self._node_graph(zero_impedance)
        in_loop = []
        for element in zero_impedance:
            a, b = element.endpoints
            graph.remove_edge(a, b, key=element.index)
            if nx.has_path(graph, a, b):
                in_loop.append(element)
            graph.add_edge(a, b, key=element.index)
        if in_loop:
            self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.SHORT_CIRCUIT,
                            elements=in_loop, names=", ".join(e.name for e in in_loop))

    def _check_self_loops(self):
        looped = [e for e in self.container.circuit_elements() if e.is_self_loop]
        if looped:
            self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.SELF_LOOP,
                            elements=looped, tools=[e.endpoints[0] for e in looped],
                            names=", ".join(e.name for e in looped))

    def _check_values(self):
        problems = []
        offenders = []
        for element in self.container.elements:
            problem = None
            if not math.isfinite(element.value):
                problem = f"value {element.value} is not finite"
            elif element.kind == ElementKind.RESISTOR and element.value <= 0:
                problem = "Value cannot be zero or negative"
            elif element.kind == ElementKind.GROUND and element.value != 0:
                problem = "Ground element cannot have a value"
            if problem:
                offenders.append(element)
                problems.append(f"{element.name} ({problem})")
        if problems:
            self._add_issue(ValidationIssueLevel.ERROR, TopologyIssueCode.INVALID_VALUE,
                            elements=offenders, problems="; ".join(problems))

    def _check_sources(self):
        if self.container.circuit_elements() and not any(e.kind.is_source for e in self.container.elements):
            self._add_issue(ValidationIssueLevel.WARNING, TopologyIssueCode.NO_SOURCES)


def validate(container: Container) -> List[ValidationIssue]:
    """Runs every validation rule and returns all issues found."""
    return TopologyValidator(container).validate()


def ensure_valid(container: Container) -> List[ValidationIssue]:
    """
    Validates the container and raises `TopologyValidationError` if any
    ERROR-level issue exists. Returns the remaining warnings and info issues.
    """
    issues = validate(container)
    if any(issue.is_error for issue in issues):
        raise TopologyValidationError(issues)
    return issues
