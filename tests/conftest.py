"""Pytest configuration.

The facade uses the application clipboard, which needs a QGuiApplication.
We create a single one for the entire session as early as possible (offscreen,
so no display is required) and cleanly shut it down at the end.
"""

from __future__ import annotations

import os
from typing import Any

import pytest

_APP: Any | None = None


def pytest_configure(config) -> None:  # noqa: ARG001
    """Ensure a QGuiApplication exists before collecting/running tests."""

    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

    from PySide6.QtGui import QGuiApplication

    global _APP

    app = QGuiApplication.instance()
    # Keep a strong ref so it isn't GC'd mid-session.
    _APP = app if app is not None else QGuiApplication([])


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    from PySide6.QtGui import QGuiApplication

    app = QGuiApplication.instance()
    if app is None:
        return

    app.quit()
    app.processEvents()


@pytest.fixture
def bus():
    from iloader.core.bus import EventBus

    return EventBus()


@pytest.fixture
def recorder(bus):
    """Collect every (name, payload) that crosses the bus."""

    seen: list[tuple[str, object]] = []
    bus.emitted.connect(lambda name, payload: seen.append((name, payload)))
    return seen
