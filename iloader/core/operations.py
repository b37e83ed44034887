"""Static catalog of the operations the backend can run."""
from __future__ import annotations

from dataclasses import dataclass

from iloader.errors import UnknownOperationError


@dataclass(frozen=True, slots=True)
class OperationStep:
    id: str
    title: str


@dataclass(frozen=True, slots=True)
class Operation:
    """One backend task and its ordered steps.

    Step order is display order only; lifecycle events may arrive for steps in
    any order.
    """

    id: str
    title: str
    steps: tuple[OperationStep, ...]
    success_title: str | None = None
    success_message: str | None = None

    @property
    def step_ids(self) -> tuple[str, ...]:
        return tuple(s.id for s in self.steps)


INSTALL_SIDESTORE = Operation(
    id="install_sidestore",
    title="Installing SideStore",
    success_title="SideStore Installed",
    success_message="SideStore was installed on your device. Open it to finish setup.",
    steps=(
        OperationStep("download", "Download SideStore"),
        OperationStep("install", "Sign & Install SideStore"),
        OperationStep("pairing", "Place Pairing File"),
    ),
)

INSTALL_LIVECONTAINER = Operation(
    id="install_livecontainer",
    title="Installing LiveContainer",
    success_title="LiveContainer Installed",
    success_message="LiveContainer + SideStore was installed on your device.",
    steps=(
        OperationStep("download", "Download LiveContainer"),
        OperationStep("install", "Sign & Install LiveContainer"),
        OperationStep("pairing", "Place Pairing File"),
    ),
)

SIDELOAD = Operation(
    id="sideload",
    title="Installing App",
    steps=(OperationStep("install", "Sign & Install App"),),
)

_CATALOG: dict[str, Operation] = {op.id: op for op in (INSTALL_SIDESTORE, INSTALL_LIVECONTAINER, SIDELOAD)}


def get_operation(operation_id: str) -> Operation:
    try:
        return _CATALOG[operation_id]
    except KeyError:
        raise UnknownOperationError(operation_id) from None


def operation_ids() -> tuple[str, ...]:
    return tuple(_CATALOG)
