from __future__ import annotations

import contextlib
import json
import sys
from pathlib import Path
from typing import Any

from PySide6.QtCore import Property, QObject, Signal, Slot
from PySide6.QtGui import QGuiApplication

from iloader.app.state.operation_state import OperationViewState
from iloader.app.state.prompt_state import PromptState
from iloader.core import tracker
from iloader.core.broker import SignalBroker
from iloader.core.bus import EventBus, Subscription
from iloader.core.channel import OperationRun, StepEventChannel
from iloader.core.events import SelectionRequest
from iloader.core.operations import get_operation
from iloader.errors import UnknownOperationError
from iloader.logger import get_logger
from iloader.settings_manager import SettingsManager

_logger = get_logger("backend")
_BASE_DIR = Path(getattr(sys, "_MEIPASS", Path(__file__).resolve().parents[1]))


def _coerce_ids(payload: object) -> list[str] | None:
    """Coerce a QML-provided payload into a list of ids (None stays None)."""

    if payload is None:
        return None

    if payload.__class__.__name__ == "QJSValue" and hasattr(payload, "toVariant"):
        with contextlib.suppress(Exception):
            payload = payload.toVariant()  # type: ignore[attr-defined]
        if payload is None:
            return None

    if isinstance(payload, (list, tuple)):
        return [str(p) for p in payload if p is not None]

    if isinstance(payload, str):
        s = payload.strip()
        try:
            v = json.loads(s)
        except ValueError:
            return [s] if s else []
        if v is None:
            return None
        if isinstance(v, list):
            return [str(p) for p in v if p is not None]
        return [str(v)]

    return [str(payload)]


class BackendFacade(QObject):
    """Single backend object exposed to QML.

    QML → Python: backend.dispatch(cmd, payload)
    Python → QML: backend.event(dict)
    QML bindings: backend.operation / backend.prompts
    """

    # QObject already has an .event() handler method, so we must not shadow it.
    event_ = Signal(object, name="event")

    def __init__(
        self,
        bus: EventBus | None = None,
        settings: SettingsManager | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)

        self._bus = bus or EventBus(self)
        self._settings_mgr = settings or SettingsManager(str(_BASE_DIR / "settings.json"))

        self._operation = OperationViewState(self)
        self._prompts = PromptState(self)

        self._channel = StepEventChannel(self._bus)
        self._run: OperationRun | None = None
        self._run_subscription: Subscription | None = None

        self._broker = SignalBroker(self._bus, code_length=self._settings_mgr.verification_code_length, parent=self)
        self._setup_broker_signals()
        self._broker.attach()

    # ---- expose state objects to QML ----
    def _get_operation(self) -> QObject:
        return self._operation

    operation = Property(QObject, _get_operation, constant=True)  # type: ignore[arg-type]

    def _get_prompts(self) -> QObject:
        return self._prompts

    prompts = Property(QObject, _get_prompts, constant=True)  # type: ignore[arg-type]

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def broker(self) -> SignalBroker:
        return self._broker

    @property
    def run(self) -> OperationRun | None:
        return self._run

    # ---- init wiring ----
    def _setup_broker_signals(self) -> None:
        self._broker.verificationChanged.connect(self._prompts._set_verification_open)
        self._broker.selectionChanged.connect(self._on_selection_changed)
        self._broker.validationFailed.connect(self._on_validation_failed)

    def _on_selection_changed(self, request: SelectionRequest | None) -> None:
        self._prompts._set_selection(request, list(self._broker.default_selection()))

    def _on_validation_failed(self, message: str) -> None:
        self._emit_event("validation", "warning", message)

    def _emit_event(self, name: str, level: str, message: str) -> None:
        self.event_.emit({"type": "event", "name": name, "level": level, "message": message})

    # ---- QML command entry ----
    @Slot(str, "QVariant")  # type: ignore[call-overload]
    def dispatch(self, cmd: str, payload: object | None = None) -> None:  # noqa: PLR0911
        command = str(cmd or "").strip()
        if not command:
            self._emit_event("error", "error", "Empty cmd")
            return

        if command == "log":
            self._handle_log_cmd(payload)
            return

        if command == "startOperation":
            op_id = str(_get_payload_value(payload, "operationId", default=payload) or "")
            self.start_operation(op_id)
            return

        if command == "dismissOperation":
            self.dismiss_operation()
            return

        if command == "submitVerification":
            code = _get_payload_value(payload, "code", default=payload)
            self._broker.resolve_verification("" if code is None else str(code))
            return

        if command == "toggleSelection":
            self._prompts._toggle_selected(str(_get_payload_value(payload, "id", default=payload) or ""))
            return

        if command == "submitSelection":
            if isinstance(payload, (list, tuple)):
                raw: object = payload
            else:
                raw = _get_payload_value(payload, "selectedIds", default=self._prompts._get_selected_ids())
            self._broker.resolve_selection(_coerce_ids(raw))
            return

        if command == "cancelSelection":
            self._broker.cancel_selection()
            return

        if command == "copyError":
            self._cmd_copy_error()
            return

        _logger.warning("unknown command: %s", command)
        self._emit_event("error", "error", f"Unknown cmd: {command}")

    # ---- run lifecycle ----
    def start_operation(self, operation_id: str) -> OperationRun | None:
        if self._run is not None:
            if not self._run.done:
                _logger.warning("start_operation(%s): %s is still running", operation_id, self._run.operation.id)
                self._emit_event("error", "error", "Another operation is still running")
                return None
            self.dismiss_operation()

        try:
            operation = get_operation(operation_id)
        except UnknownOperationError:
            _logger.error("start_operation: unknown operation %r", operation_id)
            self._emit_event("error", "error", f"Unknown operation: {operation_id}")
            return None

        run = OperationRun(operation, self)
        run.stateChanged.connect(self._operation._set_snapshot)
        self._run = run
        self._run_subscription = self._channel.attach(run)
        self._operation._set_snapshot(run.state)
        _logger.info("operation started: %s", operation.id)
        return run

    def dismiss_operation(self) -> bool:
        run = self._run
        if run is None:
            return False
        if not run.done:
            _logger.debug("dismiss_operation: %s is not done yet", run.operation.id)
            return False
        if self._run_subscription is not None:
            self._channel.detach(self._run_subscription)
        self._run_subscription = None
        self._run = None
        run.stateChanged.disconnect(self._operation._set_snapshot)
        run.deleteLater()
        self._operation._set_snapshot(None)
        _logger.info("operation dismissed: %s", run.operation.id)
        return True

    def shutdown(self) -> None:
        self._broker.detach()
        self._channel.close()
        self._run_subscription = None

    # ---- commands ----
    def _cmd_copy_error(self) -> None:
        state = self._operation.snapshot
        text = tracker.copyable_error(state) if state is not None else "No error"
        cb = QGuiApplication.clipboard()
        if cb is None:
            self._emit_event("error", "error", "Clipboard is not available")
            return
        cb.setText(text)
        self._emit_event("copied", "success", "Logs copied to clipboard")

    def _handle_log_cmd(self, payload: object | None) -> None:
        level = str(_get_payload_value(payload, "level", default="debug")).lower()
        msg = str(_get_payload_value(payload, "message", default=""))
        if not msg:
            return

        # integrate into Python logging pipeline
        if level == "info":
            _logger.info("[QML] %s", msg)
        elif level in {"warn", "warning"}:
            _logger.warning("[QML] %s", msg)
        elif level == "error":
            _logger.error("[QML] %s", msg)
        else:
            _logger.debug("[QML] %s", msg)


def _get_payload_value(payload: object | None, key: str, *, default: Any) -> Any:
    """Extract a value from a QML payload.

    Supports:
    - dict-like payloads (Python dict)
    - None
    - otherwise returns default
    """

    if payload is None:
        return default

    # QML often passes a JS object which arrives as QJSValue/QVariant.
    if payload.__class__.__name__ == "QJSValue" and hasattr(payload, "toVariant"):
        with contextlib.suppress(Exception):
            payload = payload.toVariant()  # type: ignore[assignment, attr-defined]

    if isinstance(payload, dict):
        return payload.get(key, default)

    return default
