# tests/test_steps.py
import numpy as np
import pytest

from circuit_solver import StepRecorder, serialize_steps
from circuit_solver.steps import StepRecorderError
from circuit_solver.steps.formatting import (
    difference, format_matrix, format_number, format_vector, latex_wrap, linear_combination,
)


class TestFormatting:

    @pytest.mark.parametrize("value, expected", [
        (32.0, "32"),
        (-16.666666, "-16.667"),
        (0.25, "0.25"),
        (-0.0, "0"),
        (1e-5, "0"),
        (np.float64(10.6666), "10.667"),
        (3, "3"),
    ])
    def test_format_number(self, value, expected):
        assert format_number(value) == expected

    def test_format_matrix(self):
        matrix = np.array([[-0.25, 0.375, 0.5], [0, 1, -1], [1, 0, 0]])
        expected = "\\begin{bmatrix}-0.25 & 0.375 & 0.5\\\\0 & 1 & -1\\\\1 & 0 & 0\\\\\\end{bmatrix}"
        assert format_matrix(matrix) == expected

    def test_format_vector_accepts_names(self):
        assert format_vector(["N_{1}", 2.5]) == "\\begin{bmatrix}N_{1}\\\\2.5\\\\\\end{bmatrix}"

    def test_empty_matrix(self):
        assert format_matrix([]) == "\\begin{bmatrix}\\end{bmatrix}"

    def test_linear_combination(self):
        assert linear_combination([0.75, -0.25], ["N_{1}", "N_{2}"]) == "0.75 \\cdot N_{1} - 0.25 \\cdot N_{2}"
        assert linear_combination([0, -1], ["N_{1}", "N_{2}"]) == "-1 \\cdot N_{2}"
        assert linear_combination([0, 0], ["N_{1}", "N_{2}"]) == "0"

    def test_difference_of_negative_literal(self):
        assert difference("20", "-8") == "20 + 8"
        assert difference("N_{1}", "N_{2}") == "N_{1} - N_{2}"

    def test_latex_wrap_splits_double_dollar(self):
        assert latex_wrap("a = b") == "$a = b$"
        assert latex_wrap("x$$y") == "$x$ $y$"


class TestStepRecorder:

    def test_records_in_order(self):
        recorder = StepRecorder()
        first = recorder.push_step("First", "first description")
        recorder.push_substep(first, "a", operations=["x = 1"], result="x = 1")
        recorder.complete_step(first, "done")
        second = recorder.push_step("Second")
        recorder.push_substep(second, operations=["y = 2"])

        steps = recorder.into_steps()
        assert [s.title for s in steps] == ["First", "Second"]
        assert steps[0].sub_steps[0].operations == ("x = 1",)
        assert steps[0].result == "done"
        assert steps[1].result is None
        assert steps[1].sub_steps[0].description is None

    def test_only_latest_step_is_open(self):
        recorder = StepRecorder()
        first = recorder.push_step("First")
        recorder.push_step("Second")
        with pytest.raises(StepRecorderError, match="closed"):
            recorder.push_substep(first, "late")

    def test_result_is_write_once(self):
        recorder = StepRecorder()
        handle = recorder.push_step("Only")
        recorder.complete_step(handle, "r")
        with pytest.raises(StepRecorderError, match="already has a result"):
            recorder.complete_step(handle, "again")

    def test_foreign_handle_is_rejected(self):
        handle = StepRecorder().push_step("Elsewhere")
        recorder = StepRecorder()
        recorder.push_step("Here")
        with pytest.raises(StepRecorderError, match="different recorder"):
            recorder.push_substep(handle, "x")

    def test_consumed_recorder_is_closed(self):
        recorder = StepRecorder()
        handle = recorder.push_step("Only")
        recorder.into_steps()
        with pytest.raises(StepRecorderError):
            recorder.push_substep(handle, "x")
        with pytest.raises(StepRecorderError):
            recorder.into_steps()

    def test_error_report(self):
        recorder = StepRecorder()
        handle = recorder.push_step("Only")
        recorder.complete_step(handle, "r")
        with pytest.raises(StepRecorderError) as excinfo:
            recorder.complete_step(handle, "again")
        assert "Step Recorder Error" in excinfo.value.get_diagnostic_report()


class TestSerialization:

    def test_output_schema(self):
        recorder = StepRecorder()
        handle = recorder.push_step("Title", "Description")
        recorder.push_substep(handle, "Sub", operations=["a = 1", "b = 2"], result="c = 3")
        recorder.push_substep(handle)
        recorder.complete_step(handle, "x = y")

        serialized = serialize_steps(recorder.into_steps())
        assert serialized == [{
            "title": "Title",
            "description": "Description",
            "result": "$x = y$",
            "sub_steps": [
                {"description": "Sub", "result": "$c = 3$", "operations": ["$a = 1$", "$b = 2$"]},
                {"description": None, "result": None, "operations": []},
            ],
        }]

    def test_step_string(self):
        recorder = StepRecorder()
        handle = recorder.push_step("Title")
        recorder.push_substep(handle, "Sub", operations=["a = 1"], result="a = 1")
        step = recorder.into_steps()[0]
        assert str(step) == "Title\n\tSub\n\t\ta = 1\n\t\t=> a = 1"
