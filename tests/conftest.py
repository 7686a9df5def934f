# tests/conftest.py
import pytest
from typing import Iterable, Optional, Tuple

from circuit_solver import Container, ElementKind, ToolKind

R = ElementKind.RESISTOR
V = ElementKind.VOLTAGE_SOURCE
I = ElementKind.CURRENT_SOURCE
GND = ElementKind.GROUND
W = ElementKind.WIRE


def build_container(
    node_count: int,
    elements: Iterable[Tuple[str, ElementKind, float, Tuple[int, int]]],
    ground_tool: Optional[int] = None,
    name: str = "TestCircuit",
) -> Container:
    """
    Creates `node_count` node tools followed by the given elements.
    elements: e.g. [("R1", ElementKind.RESISTOR, 2.0, (1, 0))]
    """
    container = Container(name=name)
    for _ in range(node_count):
        container.add_tool(ToolKind.NODE)
    for element_name, kind, value, endpoints in elements:
        container.add_element(element_name, kind, value, endpoints)
    if ground_tool is not None:
        container.set_ground(tool=ground_tool)
    return container


@pytest.fixture
def make_container():
    """Exposes `build_container` to tests that assemble their own circuits."""
    return build_container


@pytest.fixture
def scenario_one() -> Container:
    """Two resistors to ground, a bridging resistor, a 15 A current source out of node 1, 10 V at node 2."""
    return build_container(3, [
        ("R1", R, 2.0, (1, 0)),
        ("R2", R, 6.0, (2, 0)),
        ("I3", I, 15.0, (1, 0)),
        ("R4", R, 4.0, (1, 2)),
        ("V5", V, 10.0, (2, 0)),
        ("GND", GND, 0.0, (0, 0)),
    ], name="ScenarioOne")


@pytest.fixture
def scenario_two() -> Container:
    """A floating 32 V source between nodes 2 and 3 (a supernode) plus a grounded 20 V source."""
    return build_container(4, [
        ("GND", GND, 0.0, (0, 0)),
        ("R1", R, 2.0, (3, 0)),
        ("R2", R, 4.0, (1, 2)),
        ("R3", R, 8.0, (2, 0)),
        ("V1", V, 32.0, (2, 3)),
        ("V2", V, 20.0, (1, 0)),
    ], name="ScenarioTwo")


@pytest.fixture
def shared_current_source() -> Container:
    """
    A 3 A source in parallel with R1, inside a 10 V loop. The two mesh tools both
    run through the current source, so mesh analysis needs a supermesh.
    """
    container = build_container(3, [
        ("GND", GND, 0.0, (0, 0)),
        ("V1", V, 10.0, (1, 0)),
        ("R1", R, 2.0, (1, 2)),
        ("R2", R, 4.0, (2, 0)),
        ("I1", I, 3.0, (1, 2)),
    ], name="SharedSource")
    container.add_tool(ToolKind.MESH, [2, 4])
    container.add_tool(ToolKind.MESH, [4, 3, 1])
    return container


@pytest.fixture
def scenario_two_document() -> dict:
    return {
        "name": "ScenarioTwo",
        "elements": [
            {"name": "GND", "kind": "ground", "endpoints": [0, 0]},
            {"name": "R1", "kind": "resistor", "value": 2, "endpoints": [3, 0]},
            {"name": "R2", "kind": "resistor", "value": "4 ohm", "endpoints": [1, 2]},
            {"name": "R3", "kind": "resistor", "value": 8, "endpoints": [2, 0]},
            {"name": "V1", "kind": "voltage_source", "value": "32 V", "endpoints": [2, 3]},
            {"name": "V2", "kind": "voltage_source", "value": 20, "endpoints": [1, 0]},
        ],
        "tools": [{"kind": "node"}, {"kind": "node"}, {"kind": "node"}, {"kind": "node"}],
    }
