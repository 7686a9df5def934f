# src/circuit_solver/topology/container.py
import copy
import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .data_structures import Element, Tool, GroundReference
from .enums import ElementKind, ToolKind, GroundTarget
from .exceptions import TopologyError

logger = logging.getLogger(__name__)


class Container:
    """
    The aggregate circuit description: an arena of Elements, an arena of Tools
    and an optional designated ground reference.

    Elements and Tools are addressed by their position in the arena. Node
    membership is kept in sync by the Container itself: adding an Element
    replaces the Node records it touches with copies that list the new index.
    Nothing downstream (validator, builders, solver) mutates a Container.
    """

    def __init__(self, name: str = "circuit"):
        self.name = name
        self._elements: List[Element] = []
        self._tools: List[Tool] = []
        self._ground: Optional[GroundReference] = None

    # --- Construction ---

    def add_tool(self, kind: ToolKind = ToolKind.NODE, members: Iterable[int] = ()) -> int:
        """
        Appends a Node or Mesh tool and returns its index.

        Node members are derived from element endpoints, so `members` must be
        empty for nodes. Meshes list the elements around their loop.
        """
        if kind.is_derived:
            raise TopologyError(details=f"{kind.label} tools are derived during solving and cannot be added directly.")
        member_set = frozenset(int(m) for m in members)
        if kind == ToolKind.NODE and member_set:
            raise TopologyError(details="Node members are derived from element endpoints; pass no members for a node.")
        if kind == ToolKind.MESH:
            if not member_set:
                raise TopologyError(details="Tool has no members", tool_index=len(self._tools))
            grounded = [m for m in member_set if m < len(self._elements) and self._elements[m].kind == ElementKind.GROUND]
            if grounded:
                raise TopologyError(details="Tool contains a ground element", tool_index=len(self._tools))

        index = len(self._tools)
        self._tools.append(Tool(index=index, kind=kind, element_members=member_set))
        logger.debug(f"Container '{self.name}': added {kind.label} tool {index}.")
        return index

    def add_node(self) -> int:
        return self.add_tool(ToolKind.NODE)

    def add_element(self, name: str, kind: ElementKind, value: float, endpoints: Sequence[int]) -> int:
        """Appends an Element connecting two existing node tools and returns its index."""
        if len(endpoints) != 2:
            raise TopologyError(details=f"Element '{name}' must have exactly two endpoints, got {len(endpoints)}.", element_name=name)
        a, b = int(endpoints[0]), int(endpoints[1])
        for endpoint in (a, b):
            if not 0 <= endpoint < len(self._tools):
                raise TopologyError(details=f"Element '{name}' references tool {endpoint}, which does not exist.", element_name=name, tool_index=endpoint)
            if self._tools[endpoint].kind != ToolKind.NODE:
                raise TopologyError(details=f"Element '{name}' references tool {endpoint}, which is a {self._tools[endpoint].kind.label}, not a Node.", element_name=name, tool_index=endpoint)
        if kind == ElementKind.GROUND and a != b:
            raise TopologyError(details="Ground element cannot have dual polarity", element_name=name)

        index = len(self._elements)
        element = Element(index=index, name=str(name), kind=kind, value=float(value), endpoints=(a, b))
        self._elements.append(element)
        for endpoint in {a, b}:
            tool = self._tools[endpoint]
            self._tools[endpoint] = replace(tool, element_members=tool.element_members | {index})
        logger.debug(f"Container '{self.name}': added element {element.pretty_string()} between tools {a} and {b}.")
        return index

    def set_ground(self, tool: Optional[int] = None, element: Optional[int] = None) -> GroundReference:
        """Designates the reference point by node tool index or by ground element index."""
        if (tool is None) == (element is None):
            raise TopologyError(details="Specify exactly one of 'tool' or 'element' as the ground reference.")
        if tool is not None:
            self._ground = GroundReference(GroundTarget.TOOL, int(tool))
        else:
            self._ground = GroundReference(GroundTarget.ELEMENT, int(element))
        return self._ground

    # --- Queries ---

    @property
    def elements(self) -> Tuple[Element, ...]:
        return tuple(self._elements)

    @property
    def tools(self) -> Tuple[Tool, ...]:
        return tuple(self._tools)

    @property
    def ground(self) -> Optional[GroundReference]:
        return self._ground

    def element(self, index: int) -> Element:
        return self._elements[index]

    def tool(self, index: int) -> Tool:
        return self._tools[index]

    def element_by_name(self, name: str) -> Element:
        for element in self._elements:
            if element.name == name:
                return element
        raise KeyError(f"No element named '{name}' in container '{self.name}'.")

    def node_indices(self) -> List[int]:
        return [t.index for t in self._tools if t.kind == ToolKind.NODE]

    def mesh_indices(self) -> List[int]:
        return [t.index for t in self._tools if t.kind == ToolKind.MESH]

    def elements_of_kind(self, *kinds: ElementKind) -> List[Element]:
        return [e for e in self._elements if e.kind in kinds]

    def circuit_elements(self) -> List[Element]:
        """Every element except ground markers."""
        return [e for e in self._elements if e.kind != ElementKind.GROUND]

    def ground_candidates(self) -> Set[int]:
        """
        Node indices claimed as ground, either through the designated reference or
        through Ground elements. A valid circuit has exactly one.

        A designated reference that points outside the arenas, or at the wrong kind
        of record, contributes nothing.
        """
        candidates: Set[int] = set()
        if self._ground is not None:
            resolved = self._resolve_reference(self._ground)
            if resolved is not None:
                candidates.add(resolved)
        for element in self._elements:
            if element.kind == ElementKind.GROUND:
                candidates.add(element.endpoints[0])
        return candidates

    def ground_reference_is_valid(self) -> bool:
        return self._ground is None or self._resolve_reference(self._ground) is not None

    def ground_node(self) -> Optional[int]:
        """The single reference node, or None if it is missing or ambiguous."""
        if not self.ground_reference_is_valid():
            return None
        candidates = self.ground_candidates()
        if len(candidates) != 1:
            return None
        return next(iter(candidates))

    def _resolve_reference(self, reference: GroundReference) -> Optional[int]:
        if reference.target == GroundTarget.TOOL:
            if 0 <= reference.index < len(self._tools) and self._tools[reference.index].kind == ToolKind.NODE:
                return reference.index
            return None
        if 0 <= reference.index < len(self._elements) and self._elements[reference.index].kind == ElementKind.GROUND:
            return self._elements[reference.index].endpoints[0]
        return None

    def incidence(self) -> Dict[int, List[int]]:
        """Maps every node index to the indices of the non-ground elements touching it."""
        mapping: Dict[int, List[int]] = {i: [] for i in self.node_indices()}
        for element in self.circuit_elements():
            for endpoint in dict.fromkeys(element.endpoints):
                mapping[endpoint].append(element.index)
        return mapping

    def copy(self) -> "Container":
        """An independent deep copy, for hosts that solve the same circuit concurrently."""
        return copy.deepcopy(self)

    def __len__(self) -> int:
        return len(self._elements)

    def __repr__(self) -> str:
        return (f"Container(name='{self.name}', elements={len(self._elements)}, "
                f"tools={len(self._tools)}, ground={self._ground})")
