# tests/test_nodal_builder.py
import numpy as np
import pytest

from circuit_solver import ElementKind, StepRecorder, ToolKind, build_nodal_system
from circuit_solver.analysis import BuildError, build_connection_matrix

R = ElementKind.RESISTOR
V = ElementKind.VOLTAGE_SOURCE
I = ElementKind.CURRENT_SOURCE
GND = ElementKind.GROUND
W = ElementKind.WIRE


def build(container):
    recorder = StepRecorder()
    system = build_nodal_system(container, recorder)
    return system, recorder.into_steps()


class TestScenarioOne:

    def test_matrix_and_sources(self, scenario_one):
        system, _ = build(scenario_one)
        assert system.unknowns == (1, 2)
        np.testing.assert_allclose(system.coefficients, [[0.75, -0.25], [0.0, 1.0]])
        np.testing.assert_allclose(system.sources, [-15.0, 10.0])
        assert system.row_labels == ("KCL Node: 1", "V5")
        assert system.supernodes == ()
        assert system.ground == 0

    def test_kcl_trace(self, scenario_one):
        _, steps = build(scenario_one)
        assert [s.title for s in steps] == ["KCL Equations", "Connection Matrix"]
        kcl = steps[0]
        assert [s.description for s in kcl.sub_steps] == [
            "Enumerate nodes", "KCL at Node: 1", "Voltage source V5: 10 V",
        ]
        enumerate_nodes = kcl.sub_steps[0]
        assert enumerate_nodes.operations == ("N_{0} = 0",)
        assert enumerate_nodes.result == "\\begin{bmatrix}N_{1}\\\\N_{2}\\\\\\end{bmatrix}"

        kcl_node = kcl.sub_steps[1]
        assert len(kcl_node.operations) == 3
        assert "I_{R1}" in kcl_node.operations[0]
        assert kcl_node.result == "0.75 \\cdot N_{1} - 0.25 \\cdot N_{2} = -15"
        assert kcl.sub_steps[2].result == "1 \\cdot N_{2} = 10"

    def test_connection_step(self, scenario_one):
        _, steps = build(scenario_one)
        connection = steps[1]
        assert [s.description for s in connection.sub_steps] == [
            "Element connections",
            "Connection matrix (rows: elements, columns: nodes)",
            "Coefficient matrix",
            "Source vector",
        ]
        assert connection.sub_steps[0].operations[0] == "I_{R1}: N_{0} \\rightarrow N_{1}"
        assert connection.result.startswith("\\begin{bmatrix}0.75 & -0.25\\\\0 & 1\\\\\\end{bmatrix} \\cdot ")


class TestSupernodes:

    def test_floating_source_forms_supernode(self, scenario_two):
        system, _ = build(scenario_two)
        assert system.unknowns == (1, 2, 3)
        np.testing.assert_allclose(system.coefficients, [[-0.25, 0.375, 0.5], [0, 1, -1], [1, 0, 0]])
        np.testing.assert_allclose(system.sources, [0.0, 32.0, 20.0])
        assert system.row_labels == ("KCL Supernode: 4", "V1", "V2")

        (supernode,) = system.supernodes
        assert supernode.kind == ToolKind.SUPERNODE
        assert supernode.index == 4
        assert supernode.tool_members == frozenset({2, 3})
        assert supernode.element_members == frozenset({4})
        assert system.supernode_of(3) is supernode
        assert system.supernode_of(1) is None

    def test_container_is_untouched(self, scenario_two):
        tools_before = scenario_two.tools
        build(scenario_two)
        assert scenario_two.tools == tools_before

    def test_connection_step_result(self, scenario_two):
        _, steps = build(scenario_two)
        kcl, connection = steps
        assert "Enumerate supernodes" in [s.description for s in kcl.sub_steps]
        assert connection.result == (
            "\\begin{bmatrix}-0.25 & 0.375 & 0.5\\\\0 & 1 & -1\\\\1 & 0 & 0\\\\\\end{bmatrix} \\cdot "
            "\\begin{bmatrix}N_{1}\\\\N_{2}\\\\N_{3}\\\\\\end{bmatrix} = "
            "\\begin{bmatrix}0\\\\32\\\\20\\\\\\end{bmatrix}"
        )

    def test_chained_floating_sources(self, make_container):
        container = make_container(4, [
            ("GND", GND, 0.0, (0, 0)),
            ("Va", V, 5.0, (1, 2)),
            ("Vb", V, 3.0, (2, 3)),
            ("R1", R, 1.0, (1, 0)),
            ("R2", R, 1.0, (3, 0)),
        ])
        system, _ = build(container)
        (supernode,) = system.supernodes
        assert supernode.tool_members == frozenset({1, 2, 3})
        assert supernode.element_members == frozenset({1, 2})
        assert system.row_labels == ("KCL Supernode: 4", "Va", "Vb")


class TestWires:

    def test_wire_merges_nodes(self, make_container):
        container = make_container(4, [
            ("GND", GND, 0.0, (0, 0)),
            ("V", V, 10.0, (1, 0)),
            ("W", W, 0.0, (1, 2)),
            ("R1", R, 2.0, (2, 3)),
            ("R2", R, 2.0, (3, 0)),
        ])
        system, steps = build(container)
        assert system.unknowns == (1, 3)
        assert system.representative == {0: 0, 1: 1, 2: 1, 3: 3}
        np.testing.assert_allclose(system.coefficients, [[-0.5, 1.0], [1.0, 0.0]])
        assert "N_{2} = N_{1}" in steps[0].sub_steps[0].operations

    def test_wire_to_ground_leaves_no_unknowns(self, make_container):
        container = make_container(2, [
            ("GND", GND, 0.0, (0, 0)), ("W", W, 0.0, (1, 0)), ("I", I, 2.0, (1, 0)),
        ])
        system, _ = build(container)
        assert system.is_empty
        assert system.coefficients.shape == (0, 0)


class TestBuildErrors:

    def test_no_ground(self, make_container):
        container = make_container(2, [("V", V, 1.0, (1, 0)), ("R", R, 1.0, (1, 0))])
        with pytest.raises(BuildError, match="no single ground"):
            build(container)

    def test_voltage_source_shorted_by_wire(self, make_container):
        container = make_container(2, [
            ("GND", GND, 0.0, (0, 0)), ("V", V, 1.0, (1, 0)), ("W", W, 0.0, (1, 0)),
        ])
        with pytest.raises(BuildError) as excinfo:
            build(container)
        assert excinfo.value.element_names == ("V",)
        assert "Equation Build Error" in excinfo.value.get_diagnostic_report()

    def test_voltage_source_loop(self, make_container):
        container = make_container(3, [
            ("GND", GND, 0.0, (0, 0)), ("V1", V, 1.0, (1, 0)), ("V2", V, 1.0, (2, 1)),
            ("V3", V, 1.0, (2, 0)), ("R", R, 1.0, (2, 0)),
        ])
        with pytest.raises(BuildError, match="form a loop"):
            build(container)


class TestConnectionMatrix:

    def test_rows(self, scenario_one):
        connections = build_connection_matrix(scenario_one)
        assert connections.element_indices == (0, 1, 2, 3, 4)
        np.testing.assert_allclose(connections.matrix, [
            [1, -1, 0],
            [1, 0, -1],
            [-1, 1, 0],
            [0, 1, -1],
            [-1, 0, 1],
        ])

    def test_sources_keep_polarity(self, scenario_one):
        connections = build_connection_matrix(scenario_one)
        source = connections.connection(2)
        assert (source.origin, source.destination, source.sign) == (1, 0, 1)
        resistor = connections.connection(0)
        assert (resistor.origin, resistor.destination, resistor.sign) == (0, 1, -1)
        with pytest.raises(KeyError):
            connections.connection(5)
