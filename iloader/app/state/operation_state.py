from __future__ import annotations

from PySide6.QtCore import Property, QObject, Signal

from iloader.core import tracker


def _step_rows(state: tracker.OperationState) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    for step in state.current.steps:
        failure = state.failure_for(step.id)
        details = tracker.strip_leading_newlines(failure.extra_details) if failure else ""
        rows.append(
            {
                "id": step.id,
                "title": step.title,
                "status": state.status_of(step.id).value,
                "errorShort": tracker.error_summary(failure.extra_details) if failure else "",
                "errorDetails": details,
            }
        )
    return rows


class OperationViewState(QObject):
    """Snapshot of the active run that the progress dialog binds to.

    Always rebuilt from a whole OperationState; the UI never writes to it.
    """

    activeChanged = Signal(bool)
    snapshotChanged = Signal()

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._state: tracker.OperationState | None = None
        self._steps: list[dict[str, str]] = []

    @property
    def snapshot(self) -> tracker.OperationState | None:
        return self._state

    def _get_active(self) -> bool:
        return self._state is not None

    active = Property(bool, _get_active, notify=activeChanged)  # type: ignore[arg-type]

    def _get_operation_id(self) -> str:
        return self._state.current.id if self._state else ""

    operationId = Property(str, _get_operation_id, notify=snapshotChanged)  # type: ignore[arg-type]

    def _get_title(self) -> str:
        return tracker.headline(self._state) if self._state else ""

    title = Property(str, _get_title, notify=snapshotChanged)  # type: ignore[arg-type]

    def _get_status_text(self) -> str:
        return tracker.status_text(self._state) if self._state else ""

    statusText = Property(str, _get_status_text, notify=snapshotChanged)  # type: ignore[arg-type]

    def _get_done(self) -> bool:
        return bool(self._state and self._state.done)

    done = Property(bool, _get_done, notify=snapshotChanged)  # type: ignore[arg-type]

    def _get_failed(self) -> bool:
        return bool(self._state and self._state.has_failed)

    failed = Property(bool, _get_failed, notify=snapshotChanged)  # type: ignore[arg-type]

    def _get_success_message(self) -> str:
        st = self._state
        if st is None or not st.done or st.has_failed:
            return ""
        return st.current.success_message or ""

    successMessage = Property(str, _get_success_message, notify=snapshotChanged)  # type: ignore[arg-type]

    def _get_steps(self) -> list[dict[str, str]]:
        return [dict(r) for r in self._steps]

    steps = Property(list, _get_steps, notify=snapshotChanged)  # type: ignore[arg-type]

    # ---- internal mutation helpers (called by backend) ----
    def _set_snapshot(self, state: tracker.OperationState | None) -> None:
        if state is self._state:
            return
        was_active = self._state is not None
        self._state = state
        self._steps = _step_rows(state) if state is not None else []
        self.snapshotChanged.emit()
        if was_active != (state is not None):
            self.activeChanged.emit(state is not None)
