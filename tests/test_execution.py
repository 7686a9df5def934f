# tests/test_execution.py
import pytest

from circuit_solver import CircuitSolveError, ElementKind, SolveConfig, SolverMethod, ToolKind, solve
from circuit_solver import StepRecorder, build_mesh_system, build_nodal_system, solve_linear_system
from circuit_solver.simulation import (
    ConfigParsingError, ResultSlots, SingularMatrixError, compute_branch_currents, parse_solve_config,
)
from circuit_solver.validation import TopologyValidationError

R = ElementKind.RESISTOR
V = ElementKind.VOLTAGE_SOURCE
I = ElementKind.CURRENT_SOURCE
GND = ElementKind.GROUND
W = ElementKind.WIRE

MESH = {"method": "mesh"}


class TestNodalSolve:

    def test_scenario_one(self, scenario_one):
        solved = solve(scenario_one)
        assert solved.method == SolverMethod.NODE
        assert solved.voltage(0) == 0.0
        assert solved.voltage(1) == pytest.approx(-50.0 / 3.0)
        assert solved.voltage(2) == pytest.approx(10.0)
        currents = solved.currents_by_name()
        assert currents["R1"] == pytest.approx(-25.0 / 3.0)
        assert currents["R2"] == pytest.approx(5.0 / 3.0)
        assert currents["R4"] == pytest.approx(-20.0 / 3.0)
        assert currents["V5"] == pytest.approx(-25.0 / 3.0)
        assert currents["I3"] == pytest.approx(15.0)

    def test_scenario_two(self, scenario_two):
        solved = solve(scenario_two)
        assert [solved.voltage(n) for n in range(4)] == pytest.approx([0.0, 20.0, 24.0, -8.0])
        assert solved.current("R1") == pytest.approx(-4.0)
        assert solved.current("R2") == pytest.approx(-1.0)
        assert solved.current("R3") == pytest.approx(3.0)
        assert solved.current("V1") == pytest.approx(-4.0)
        assert solved.current("V2") == pytest.approx(1.0)

    def test_supernode_result(self, scenario_two):
        solved = solve(scenario_two)
        (supernode,) = solved.derived_tools
        assert supernode.index == 4
        assert solved.tool(4) is supernode
        assert solved.tool_result(4) == pytest.approx(24.0)
        assert len(solved.tool_results) == 5

    def test_current_lookup_forms(self, scenario_one):
        solved = solve(scenario_one)
        r4 = scenario_one.element_by_name("R4")
        assert solved.current(r4) == solved.current("R4") == solved.current(3)

    def test_wire_current_from_kcl(self, make_container):
        container = make_container(4, [
            ("GND", GND, 0.0, (0, 0)),
            ("V", V, 10.0, (1, 0)),
            ("W", W, 0.0, (1, 2)),
            ("R1", R, 2.0, (2, 3)),
            ("R2", R, 2.0, (3, 0)),
        ])
        solved = solve(container)
        assert solved.node_voltages == pytest.approx({0: 0.0, 1: 10.0, 2: 10.0, 3: 5.0})
        assert solved.current("W") == pytest.approx(2.5)
        assert solved.current("V") == pytest.approx(-2.5)

    def test_no_unknowns(self, make_container):
        container = make_container(2, [("GND", GND, 0.0, (0, 0)), ("W", W, 0.0, (1, 0)), ("I", I, 2.0, (1, 0))])
        solved = solve(container)
        assert solved.node_voltages == {0: 0.0, 1: 0.0}
        assert solved.current("W") == pytest.approx(-2.0)
        solve_step = solved.steps[2]
        assert [s.description for s in solve_step.sub_steps] == [
            "There are no unknowns to solve for.", "Node potentials",
        ]
        assert solve_step.result is None

    def test_container_is_not_modified(self, scenario_two):
        tools_before, elements_before = scenario_two.tools, scenario_two.elements
        solve(scenario_two)
        assert scenario_two.tools == tools_before
        assert scenario_two.elements == elements_before

    @pytest.mark.parametrize("count", [40, 60])
    def test_long_series_ladder(self, make_container, count):
        resistors = [(f"R{k}", R, 1.0, (k, k + 1 if k < count else 0)) for k in range(1, count + 1)]
        container = make_container(count + 1, [("GND", GND, 0.0, (0, 0)), ("V", V, 10.0, (1, 0))] + resistors)
        solved = solve(container)
        assert solved.current("R1") == pytest.approx(10.0 / count)
        assert solved.voltage(count) == pytest.approx(10.0 / count)

    def test_repeated_solves_are_identical(self, scenario_two):
        first = solve(scenario_two)
        second = solve(scenario_two)
        assert first.steps == second.steps
        assert first.tool_results.as_tuple() == second.tool_results.as_tuple()
        assert first.serialized_steps() == second.serialized_steps()

    def test_warnings_are_kept(self, make_container):
        container = make_container(2, [("GND", GND, 0.0, (0, 0)), ("R1", R, 1.0, (1, 0))])
        solved = solve(container)
        assert [issue.code for issue in solved.issues] == ["NO_SOURCES"]
        assert solved.current("R1") == 0.0


class TestSolveSteps:

    def test_step_order(self, scenario_one):
        solved = solve(scenario_one)
        assert [s.title for s in solved.steps] == [
            "KCL Equations", "Connection Matrix", "Solve For Node Voltages", "Current Results",
        ]

    def test_solve_step(self, scenario_one):
        solve_step = solve(scenario_one).steps[2]
        assert [s.description for s in solve_step.sub_steps] == [
            "Invert the coefficient matrix", "Multiply by the source vector", "Node potentials",
        ]
        assert solve_step.result == (
            "\\begin{bmatrix}N_{1}\\\\N_{2}\\\\\\end{bmatrix} = \\begin{bmatrix}-16.667\\\\10\\\\\\end{bmatrix}"
        )
        assert solve_step.sub_steps[2].operations == ("N_{0} = 0", "N_{1} = -16.667", "N_{2} = 10")

    def test_current_narration(self, scenario_one):
        current_step = solve(scenario_one).steps[3]
        first = current_step.sub_steps[0]
        assert first.description == "R1: 2 Ω: 8.333 A flows from Node: 0 to Node: 1"
        assert first.result == "I_{R1} = -8.333"
        assert first.operations[0] == "I_{R1} = \\frac{N_{1} - N_{0}}{R1}"
        source = current_step.sub_steps[2]
        assert source.description == "I3: 15 A: 15 A flows from Node: 1 to Node: 0"

    def test_serialized_steps(self, scenario_one):
        serialized = solve(scenario_one).serialized_steps()
        assert len(serialized) == 4
        assert serialized[0]["title"] == "KCL Equations"
        assert serialized[0]["sub_steps"][1]["result"] == "$0.75 \\cdot N_{1} - 0.25 \\cdot N_{2} = -15$"
        assert all(op.startswith("$") for sub in serialized[3]["sub_steps"] for op in sub["operations"])


class TestMeshSolve:

    @pytest.mark.parametrize("fixture_name", ["scenario_one", "scenario_two", "shared_current_source"])
    def test_matches_nodal(self, request, fixture_name):
        container = request.getfixturevalue(fixture_name)
        nodal = solve(container)
        mesh = solve(container, MESH)
        for name, value in nodal.currents_by_name().items():
            assert mesh.current(name) == pytest.approx(value, abs=1e-9)
        for node, value in nodal.node_voltages.items():
            assert mesh.voltage(node) == pytest.approx(value, abs=1e-9)

    def test_supermesh_result(self, shared_current_source):
        solved = solve(shared_current_source, SolveConfig(method=SolverMethod.MESH))
        assert [s.title for s in solved.steps] == [
            "KVL Equations", "Connection Matrix", "Solve For Mesh Currents", "Current Results",
        ]
        (supermesh,) = solved.derived_tools
        assert supermesh.kind == ToolKind.SUPERMESH
        assert solved.tool_result(3) == pytest.approx(-1.0 / 3.0)
        assert solved.tool_result(4) == pytest.approx(-8.0 / 3.0)
        assert solved.tool_result(supermesh.index) == pytest.approx(-1.0 / 3.0)
        assert solved.voltage(2) == pytest.approx(32.0 / 3.0)

    def test_supplied_meshes(self, scenario_two):
        scenario_two.add_tool(ToolKind.MESH, [2, 3, 5])
        scenario_two.add_tool(ToolKind.MESH, [1, 3, 4])
        solved = solve(scenario_two, MESH)
        assert solved.derived_tools == ()
        assert solved.tool_result(4) == pytest.approx(-1.0)
        assert solved.tool_result(1) == pytest.approx(20.0)

    def test_derived_loops_get_results(self, scenario_one):
        solved = solve(scenario_one, MESH)
        assert [t.index for t in solved.derived_tools] == [3, 4, 5]
        assert all(solved.tool_result(t.index) is not None for t in solved.derived_tools)


class TestSolveErrors:

    def test_validation_failure(self, make_container):
        container = make_container(2, [("V", V, 1.0, (1, 0)), ("R", R, 1.0, (1, 0))])
        with pytest.raises(CircuitSolveError) as excinfo:
            solve(container)
        assert isinstance(excinfo.value.__cause__, TopologyValidationError)
        assert "MISSING_OR_MULTIPLE_GROUND" in str(excinfo.value)

    def test_singular_system(self, scenario_one):
        with pytest.raises(CircuitSolveError) as excinfo:
            solve(scenario_one, {"singular_tolerance": 0.99})
        assert isinstance(excinfo.value.__cause__, SingularMatrixError)
        assert "Singular Matrix Encountered" in str(excinfo.value)

    def test_bad_config(self, scenario_one):
        with pytest.raises(CircuitSolveError) as excinfo:
            solve(scenario_one, {"method": "tableau"})
        assert isinstance(excinfo.value.__cause__, ConfigParsingError)

    def test_unexpected_error_is_wrapped(self):
        with pytest.raises(CircuitSolveError) as excinfo:
            solve("not a container")
        assert "Unexpected Internal Error: TypeError" in str(excinfo.value)
        assert isinstance(excinfo.value.__cause__, TypeError)


class TestSolveConfig:

    @pytest.mark.parametrize("raw", [None, {}])
    def test_defaults(self, raw):
        assert parse_solve_config(raw) == SolveConfig()

    def test_method_and_tolerance(self):
        config = parse_solve_config({"method": " Mesh ", "singular_tolerance": 1e-6})
        assert config == SolveConfig(method=SolverMethod.MESH, singular_tolerance=1e-6)

    @pytest.mark.parametrize("raw, message", [
        ({"method": "tableau"}, "Unknown solver method"),
        ({"singular_tolerance": 0}, "positive finite"),
        ({"singular_tolerance": float("nan")}, "positive finite"),
        ({"singular_tolerance": "small"}, "not a number"),
        ({"singular_tolerance": True}, "not a number"),
        ({"precision": 3}, "Unknown solver option"),
    ])
    def test_rejects(self, raw, message):
        with pytest.raises(ConfigParsingError, match=message):
            parse_solve_config(raw)

    def test_config_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_solve_config({"method": 1})


class TestResultSlots:

    def test_write_once(self):
        slots = ResultSlots(3)
        slots.write(1, 2)
        assert slots.read(1) == 2.0
        assert slots.read(0) is None
        assert slots.as_tuple() == (None, 2.0, None)
        with pytest.raises(ValueError, match="already been written"):
            slots.write(1, 3.0)


class TestBranchCurrents:

    def test_nodal_and_mesh_back_substitution_agree(self, shared_current_source):
        nodal = build_nodal_system(shared_current_source, StepRecorder())
        mesh = build_mesh_system(shared_current_source, StepRecorder())
        nodal_potentials, nodal_currents = compute_branch_currents(
            shared_current_source, nodal, solve_linear_system(nodal.coefficients, nodal.sources).values)
        mesh_potentials, mesh_currents = compute_branch_currents(
            shared_current_source, mesh, solve_linear_system(mesh.coefficients, mesh.sources).values)
        assert nodal_potentials == pytest.approx(mesh_potentials)
        assert nodal_currents == pytest.approx(mesh_currents)
        assert nodal_currents[2] == pytest.approx(-1.0 / 3.0)
        assert nodal_currents[0] == 0.0
