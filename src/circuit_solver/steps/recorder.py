# src/circuit_solver/steps/recorder.py
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .exceptions import StepRecorderError
from .formatting import latex_wrap

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubStep:
    """One stage of a Step: an optional description, operations and an optional result."""
    description: Optional[str] = None
    result: Optional[str] = None
    operations: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "result": latex_wrap(self.result) if self.result is not None else None,
            "operations": [latex_wrap(op) for op in self.operations],
        }


@dataclass(frozen=True)
class Step:
    """A titled block of the derivation trace."""
    title: str
    description: Optional[str] = None
    result: Optional[str] = None
    sub_steps: Tuple[SubStep, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "result": latex_wrap(self.result) if self.result is not None else None,
            "sub_steps": [sub.to_dict() for sub in self.sub_steps],
        }

    def __str__(self) -> str:
        lines = [self.title]
        if self.description:
            lines.append(self.description)
        for sub in self.sub_steps:
            if sub.description:
                lines.append(f"\t{sub.description}")
            for op in sub.operations:
                lines.append(f"\t\t{op}")
            if sub.result is not None:
                lines.append(f"\t\t=> {sub.result}")
        if self.result is not None:
            lines.append(f"Result: {self.result}")
        return "\n".join(lines)


@dataclass(frozen=True)
class StepHandle:
    """Opaque reference to a pushed step, valid only for the recorder that issued it."""
    position: int
    recorder_id: int


@dataclass
class _StepDraft:
    title: str
    description: Optional[str]
    sub_steps: List[SubStep] = field(default_factory=list)
    result: Optional[str] = None


class StepRecorder:
    """
    Append-only log of Steps for a single solve run.

    Sub-steps can only be appended to the most recently pushed step, a step's
    final result can be set once, and `into_steps()` consumes the recorder.
    There is no way to remove or reorder anything once recorded.
    """

    def __init__(self):
        self._drafts: List[_StepDraft] = []
        self._consumed = False

    def push_step(self, title: str, description: Optional[str] = None) -> StepHandle:
        self._ensure_open()
        self._drafts.append(_StepDraft(title=title, description=description))
        logger.debug(f"Step {len(self._drafts) - 1} recorded: '{title}'.")
        return StepHandle(position=len(self._drafts) - 1, recorder_id=id(self))

    def push_substep(
        self,
        handle: StepHandle,
        description: Optional[str] = None,
        operations: Iterable[str] = (),
        result: Optional[str] = None,
    ) -> SubStep:
        draft = self._current_draft(handle)
        sub_step = SubStep(description=description, result=result, operations=tuple(operations))
        draft.sub_steps.append(sub_step)
        return sub_step

    def complete_step(self, handle: StepHandle, result: str) -> None:
        """Sets the final result of the current step. A result can only be written once."""
        draft = self._current_draft(handle)
        if draft.result is not None:
            raise StepRecorderError(details=f"Step '{draft.title}' already has a result.")
        draft.result = result

    def into_steps(self) -> Tuple[Step, ...]:
        """Freezes the log into the final ordered sequence. The recorder cannot be used afterwards."""
        self._ensure_open()
        self._consumed = True
        steps = tuple(
            Step(title=d.title, description=d.description, result=d.result, sub_steps=tuple(d.sub_steps))
            for d in self._drafts
        )
        self._drafts = []
        return steps

    def __len__(self) -> int:
        return len(self._drafts)

    def _ensure_open(self) -> None:
        if self._consumed:
            raise StepRecorderError(details="This recorder has already been consumed by into_steps().")

    def _current_draft(self, handle: StepHandle) -> _StepDraft:
        self._ensure_open()
        if handle.recorder_id != id(self):
            raise StepRecorderError(details="The step handle was issued by a different recorder.")
        if handle.position != len(self._drafts) - 1:
            raise StepRecorderError(
                details=f"Step {handle.position} is closed; only the most recent step ({len(self._drafts) - 1}) can be extended."
            )
        return self._drafts[handle.position]


def serialize_steps(steps: Sequence[Step]) -> List[Dict[str, Any]]:
    """Converts a step sequence into the plain output schema handed to the binding layer."""
    return [step.to_dict() for step in steps]
