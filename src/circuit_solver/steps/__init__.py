# src/circuit_solver/steps/__init__.py
from .recorder import Step, SubStep, StepHandle, StepRecorder, serialize_steps
from .exceptions import StepRecorderError
from . import formatting

__all__ = [
    "Step",
    "SubStep",
    "StepHandle",
    "StepRecorder",
    "serialize_steps",
    "StepRecorderError",
    "formatting",
]
