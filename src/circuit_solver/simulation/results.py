# src/circuit_solver/simulation/results.py
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from ..analysis import MeshSystem, NodalSystem
from ..steps import Step, serialize_steps
from ..topology import Container, Element, Tool
from ..validation import ValidationIssue
from .config import SolverMethod
from .solver import LinearSolution

logger = logging.getLogger(__name__)


class ResultSlots:
    """
    One write-once float slot per tool index: potentials for node-type tools,
    circulating currents for mesh-type tools. Slots never written read as None.
    """

    def __init__(self, size: int):
        self._values: List[Optional[float]] = [None] * size

    def write(self, index: int, value: float) -> None:
        if self._values[index] is not None:
            raise ValueError(f"Result for tool {index} has already been written.")
        self._values[index] = float(value)

    def read(self, index: int) -> Optional[float]:
        return self._values[index]

    def as_tuple(self) -> Tuple[Optional[float], ...]:
        return tuple(self._values)

    def __len__(self) -> int:
        return len(self._values)


@dataclass(frozen=True, eq=False)
class SolvedCircuit:
    """
    Read-only view over a solved Container.

    The Container itself is never written; potentials and currents live here,
    together with the tools derived while solving (supernodes, supermeshes and
    any meshes taken from a spanning tree) and the ordered trace.
    """
    container: Container
    method: SolverMethod
    system: Union[NodalSystem, MeshSystem]
    solution: LinearSolution
    node_voltages: Dict[int, float]
    element_currents: Dict[int, float]
    tools: Tuple[Tool, ...]
    tool_results: ResultSlots
    steps: Tuple[Step, ...]
    issues: Tuple[ValidationIssue, ...] = field(default_factory=tuple)

    @property
    def derived_tools(self) -> Tuple[Tool, ...]:
        return self.tools[len(self.container.tools):]

    def tool(self, index: int) -> Tool:
        return self.tools[index]

    def tool_result(self, index: int) -> Optional[float]:
        return self.tool_results.read(index)

    def voltage(self, node_index: int) -> float:
        return self.node_voltages[node_index]

    def current(self, element: Union[int, str, Element]) -> float:
        """Signed current through an element, looked up by index, name or record."""
        if isinstance(element, Element):
            index = element.index
        elif isinstance(element, str):
            index = self.container.element_by_name(element).index
        else:
            index = int(element)
        return self.element_currents[index]

    def currents_by_name(self) -> Dict[str, float]:
        return {self.container.element(i).name: value for i, value in self.element_currents.items()}

    def serialized_steps(self) -> List[Dict[str, Any]]:
        return serialize_steps(self.steps)
