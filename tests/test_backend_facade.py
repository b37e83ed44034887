from __future__ import annotations

from pathlib import Path

import pytest
from PySide6.QtGui import QGuiApplication

from iloader.app.backend import BackendFacade
from iloader.settings_manager import SettingsManager


@pytest.fixture
def facade(tmp_path: Path, bus):
    sm = SettingsManager(str(tmp_path / "settings.json"))
    backend = BackendFacade(bus=bus, settings=sm)
    yield backend
    backend.shutdown()


@pytest.fixture
def events(facade):
    seen: list[dict] = []
    facade.event_.connect(seen.append)
    return seen


def test_start_operation_exposes_initial_snapshot(facade):
    facade.dispatch("startOperation", {"operationId": "install_sidestore"})

    op = facade.operation
    assert op.active is True
    assert op.title == "Installing SideStore"
    assert op.statusText == "Please wait..."
    assert [s["status"] for s in op.steps] == ["not_started"] * 3


def test_step_events_update_view_state(facade, bus):
    facade.start_operation("install_sidestore")

    bus.emit("step-started", {"stepId": "download"})
    bus.emit("step-finished", {"stepId": "download"})
    bus.emit("step-started", {"stepId": "install"})
    bus.emit("step-failed", {"stepId": "install", "extraDetails": "\nInstall failed\n ● device locked"})

    op = facade.operation
    assert op.done is True
    assert op.failed is True
    assert op.statusText == "Operation failed."
    assert op.successMessage == ""
    steps = {s["id"]: s for s in op.steps}
    assert steps["download"]["status"] == "completed"
    assert steps["install"]["status"] == "failed"
    assert steps["install"]["errorShort"] == "device locked"
    assert steps["install"]["errorDetails"] == "Install failed\n ● device locked"
    assert steps["pairing"]["status"] == "skipped"


def test_success_shows_success_title_and_message(facade, bus):
    facade.start_operation("install_livecontainer")
    for step in ("download", "install", "pairing"):
        bus.emit("step-started", {"stepId": step})
        bus.emit("step-finished", {"stepId": step})

    op = facade.operation
    assert op.title == "LiveContainer Installed"
    assert op.statusText == "Operation completed"
    assert op.successMessage


def test_dismiss_requires_done(facade, bus):
    run = facade.start_operation("sideload")

    assert facade.dismiss_operation() is False
    assert facade.run is run

    bus.emit("step-finished", {"stepId": "install"})
    facade.dispatch("dismissOperation")

    assert facade.run is None
    assert facade.operation.active is False
    assert bus.listener_count == 2  # only the broker's listeners remain


def test_dismissed_run_ignores_late_events(facade, bus):
    run = facade.start_operation("sideload")
    bus.emit("step-finished", {"stepId": "install"})
    facade.dismiss_operation()

    bus.emit("step-failed", {"stepId": "install", "extraDetails": "late"})

    assert run.state.failed == ()


def test_second_start_while_running_is_refused(facade, events):
    first = facade.start_operation("sideload")

    assert facade.start_operation("install_sidestore") is None
    assert facade.run is first
    assert events[-1]["level"] == "error"


def test_start_after_done_replaces_run(facade, bus):
    facade.start_operation("sideload")
    bus.emit("step-finished", {"stepId": "install"})

    run = facade.start_operation("install_sidestore")

    assert facade.run is run
    assert facade.operation.operationId == "install_sidestore"
    assert bus.listener_count == 3


def test_unknown_operation_emits_error(facade, events):
    facade.dispatch("startOperation", {"operationId": "nope"})

    assert facade.run is None
    assert events == [{"type": "event", "name": "error", "level": "error", "message": "Unknown operation: nope"}]


def test_verification_flow(facade, bus, recorder, events):
    bus.emit("2fa-required")
    assert facade.prompts.verificationOpen is True

    facade.dispatch("submitVerification", {"code": "12345"})
    assert facade.prompts.verificationOpen is True
    assert events[-1]["name"] == "validation"
    assert events[-1]["level"] == "warning"

    facade.dispatch("submitVerification", {"code": "123456"})
    assert facade.prompts.verificationOpen is False
    assert [p for n, p in recorder if n == "2fa-recieved"] == ["123456"]


def test_selection_flow_uses_toggled_ids(facade, bus, recorder):
    bus.emit(
        "max-certs-reached",
        [
            {"serialNumber": "a", "name": "Dev", "machineName": "mac-1"},
            {"serialNumber": "b", "name": "Dev", "machineName": "mac-2"},
        ],
    )
    prompts = facade.prompts
    assert prompts.selectionOpen is True
    assert prompts.selectedIds == ["a", "b"]
    assert prompts.selectionItems[0]["label"] == "Dev - mac-1"

    facade.dispatch("toggleSelection", {"id": "a"})
    assert prompts.selectedIds == ["b"]

    facade.dispatch("submitSelection")

    assert prompts.selectionOpen is False
    assert prompts.selectionItems == []
    assert [p for n, p in recorder if n == "max-certs-response"] == [["b"]]


def test_selection_cancel(facade, bus, recorder):
    bus.emit("max-certs-reached", [{"serialNumber": "a"}])

    facade.dispatch("cancelSelection")

    assert facade.prompts.selectionOpen is False
    assert [p for n, p in recorder if n == "max-certs-response"] == [None]


def test_submit_selection_with_explicit_ids(facade, bus, recorder):
    bus.emit("max-certs-reached", [{"serialNumber": "a"}, {"serialNumber": "b"}])

    facade.dispatch("submitSelection", ["a"])

    assert [p for n, p in recorder if n == "max-certs-response"] == [["a"]]


def test_copy_error_puts_first_failure_on_clipboard(facade, bus, events):
    facade.start_operation("sideload")
    bus.emit("step-failed", {"stepId": "install", "extraDetails": "\n\nsigning failed"})

    facade.dispatch("copyError")

    assert QGuiApplication.clipboard().text() == "signing failed"
    assert events[-1]["name"] == "copied"


def test_unknown_and_empty_commands(facade, events):
    facade.dispatch("")
    facade.dispatch("doesNotExist")

    assert [e["message"] for e in events] == ["Empty cmd", "Unknown cmd: doesNotExist"]


def test_code_length_comes_from_settings(tmp_path: Path, bus, recorder):
    sm = SettingsManager(str(tmp_path / "settings.json"))
    sm.set("verification_code_length", 4)
    backend = BackendFacade(bus=bus, settings=sm)

    bus.emit("2fa-required")
    backend.dispatch("submitVerification", "1234")

    assert [p for n, p in recorder if n == "2fa-recieved"] == ["1234"]
    backend.shutdown()
