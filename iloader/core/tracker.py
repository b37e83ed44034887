"""Fold step lifecycle events into an immutable OperationState.

``apply`` is a pure function: it never mutates its input and always returns a
snapshot that respects these invariants:

- completed and the failed step ids are disjoint;
- every completed or failed step is also in started;
- a step fails at most once and failures keep arrival order.

Everything the view needs (done, per-step status, headline text) is derived
from the snapshot on demand.
"""
from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import Enum

from iloader.core.events import StepEvent, StepFailed, StepFinished, StepStarted
from iloader.core.operations import Operation

_BULLET = "●"
_BULLET_RE = re.compile(r"●\s*")


class StepStatus(str, Enum):
    NOT_STARTED = "not_started"
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class FailedStep:
    step_id: str
    extra_details: str


@dataclass(frozen=True, slots=True)
class OperationState:
    current: Operation
    started: frozenset[str] = frozenset()
    completed: frozenset[str] = frozenset()
    failed: tuple[FailedStep, ...] = ()

    @property
    def failed_ids(self) -> frozenset[str]:
        return frozenset(f.step_id for f in self.failed)

    @property
    def has_failed(self) -> bool:
        return bool(self.failed)

    @property
    def done(self) -> bool:
        if len(self.completed) == len(self.current.steps):
            return True
        return self.has_failed and len(self.started) == len(self.completed) + len(self.failed)

    def failure_for(self, step_id: str) -> FailedStep | None:
        for f in self.failed:
            if f.step_id == step_id:
                return f
        return None

    def status_of(self, step_id: str) -> StepStatus:
        if step_id in self.failed_ids:
            return StepStatus.FAILED
        if step_id in self.completed:
            return StepStatus.COMPLETED
        if step_id in self.started:
            return StepStatus.STARTED
        # Unstarted steps of a failed run will never start.
        if self.has_failed:
            return StepStatus.SKIPPED
        return StepStatus.NOT_STARTED


def initial_state(operation: Operation) -> OperationState:
    return OperationState(current=operation)


def apply(previous: OperationState, event: StepEvent) -> OperationState:
    new_state = _apply_event(previous, event)
    # done never flips back to false, e.g. on a late start of a skipped step.
    if previous.done and not new_state.done:
        return previous
    return new_state


def _apply_event(previous: OperationState, event: StepEvent) -> OperationState:
    step_id = event.step_id
    started = previous.started if step_id in previous.started else previous.started | {step_id}

    if isinstance(event, StepStarted):
        if started is previous.started:
            return previous
        return replace(previous, started=started)

    if isinstance(event, StepFinished):
        completed = previous.completed
        # A recorded failure is final for that step.
        if step_id not in previous.failed_ids:
            completed = completed | {step_id}
        if started is previous.started and completed == previous.completed:
            return previous
        return replace(previous, started=started, completed=completed)

    if isinstance(event, StepFailed):
        if step_id in previous.failed_ids:
            return previous
        return replace(
            previous,
            started=started,
            completed=previous.completed - {step_id},
            failed=(*previous.failed, FailedStep(step_id, event.extra_details)),
        )

    raise TypeError(f"unsupported step event: {event!r}")


def fold(state: OperationState, events: Iterable[StepEvent]) -> OperationState:
    for event in events:
        state = apply(state, event)
    return state


# ---- display helpers ----
def headline(state: OperationState) -> str:
    op = state.current
    if state.done and not state.has_failed and op.success_title:
        return op.success_title
    return op.title


def status_text(state: OperationState) -> str:
    if not state.done:
        return "Please wait..."
    return "Operation failed." if state.has_failed else "Operation completed"


def strip_leading_newlines(text: str) -> str:
    return text.lstrip("\n")


def error_summary(extra_details: str) -> str:
    """Short form of a backend error report.

    Backend errors are multi-line reports where each cause is a ``●`` bullet;
    the last bullet is the most specific one.
    """
    lines = [line for line in (extra_details or "").split("\n") if _BULLET in line]
    if not lines:
        return strip_leading_newlines(extra_details or "")
    return _BULLET_RE.sub("", lines[-1], count=1).strip()


def copyable_error(state: OperationState) -> str:
    if not state.failed:
        return "No error"
    return strip_leading_newlines(state.failed[0].extra_details)
