"""Typed events exchanged with the backend over the event bus.

The bus itself carries ``(name, payload)`` pairs. Everything that crosses into
the core is parsed into one of the frozen dataclasses below so the tracker and
the broker never match on raw strings or dicts.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from iloader.errors import MalformedEventError

# Bus event names (backend -> core)
STEP_STARTED = "step-started"
STEP_FINISHED = "step-finished"
STEP_FAILED = "step-failed"
VERIFICATION_REQUEST = "2fa-required"
SELECTION_REQUEST = "max-certs-reached"

# Bus event names (core -> backend). The misspelling is what the backend listens for.
VERIFICATION_REPLY = "2fa-recieved"
SELECTION_REPLY = "max-certs-response"

STEP_EVENT_NAMES = (STEP_STARTED, STEP_FINISHED, STEP_FAILED)


# ---- step lifecycle ----
@dataclass(frozen=True, slots=True)
class StepStarted:
    step_id: str


@dataclass(frozen=True, slots=True)
class StepFinished:
    step_id: str


@dataclass(frozen=True, slots=True)
class StepFailed:
    step_id: str
    extra_details: str = ""


StepEvent = Union[StepStarted, StepFinished, StepFailed]


# ---- prompts ----
@dataclass(frozen=True, slots=True)
class SelectableItem:
    """A certificate the user may pick for revocation."""

    id: str
    name: str = ""
    machine_name: str = ""

    @property
    def label(self) -> str:
        if self.name and self.machine_name:
            return f"{self.name} - {self.machine_name}"
        return self.name or self.machine_name or self.id


@dataclass(frozen=True, slots=True)
class VerificationRequest:
    pass


@dataclass(frozen=True, slots=True)
class VerificationReply:
    code: str


@dataclass(frozen=True, slots=True)
class SelectionRequest:
    items: tuple[SelectableItem, ...]

    @property
    def item_ids(self) -> tuple[str, ...]:
        return tuple(i.id for i in self.items)


@dataclass(frozen=True, slots=True)
class SelectionReply:
    """``selected_ids`` is a non-empty tuple, or None for "revoke nothing"."""

    selected_ids: tuple[str, ...] | None

    @property
    def payload(self) -> list[str] | None:
        return None if self.selected_ids is None else list(self.selected_ids)


# ---- wire parsing ----
def _step_id(payload: object) -> str:
    if isinstance(payload, Mapping):
        raw = payload.get("stepId")
    else:
        raw = payload
    if not isinstance(raw, str) or not raw.strip():
        raise MalformedEventError(f"missing stepId in {payload!r}")
    return raw.strip()


def parse_step_event(name: str, payload: object) -> StepEvent:
    """Turn a ``step-*`` bus event into a typed StepEvent."""
    if name == STEP_STARTED:
        return StepStarted(_step_id(payload))
    if name == STEP_FINISHED:
        return StepFinished(_step_id(payload))
    if name == STEP_FAILED:
        details: Any = payload.get("extraDetails", "") if isinstance(payload, Mapping) else ""
        return StepFailed(_step_id(payload), "" if details is None else str(details))
    raise MalformedEventError(f"not a step event: {name!r}")


def _selectable_item(raw: object) -> SelectableItem:
    if isinstance(raw, str) and raw:
        return SelectableItem(raw)
    if not isinstance(raw, Mapping):
        raise MalformedEventError(f"selectable item must be an object: {raw!r}")
    item_id = raw.get("serialNumber", raw.get("id"))
    if not isinstance(item_id, str) or not item_id:
        raise MalformedEventError(f"selectable item without id: {raw!r}")
    return SelectableItem(
        id=item_id,
        name=str(raw.get("name") or ""),
        machine_name=str(raw.get("machineName") or ""),
    )


def parse_selection_request(payload: object) -> SelectionRequest:
    """Parse the ``max-certs-reached`` payload (a list of certificates)."""
    if isinstance(payload, Mapping):
        payload = payload.get("items")
    if not isinstance(payload, (list, tuple)):
        raise MalformedEventError(f"selection request needs a list of items, got {payload!r}")
    items = tuple(_selectable_item(raw) for raw in payload)
    if len({i.id for i in items}) != len(items):
        raise MalformedEventError("selection request contains duplicate item ids")
    return SelectionRequest(items)
