"""In-process event bus between the UI core and the backend service.

Backend and core both talk through named events carrying one payload object.
Listeners get an owned ``Subscription`` back; releasing it is the only way to
stop delivery, and releasing twice is harmless.
"""
from __future__ import annotations

from collections.abc import Callable, Iterable

from PySide6.QtCore import QObject, Signal

from iloader.logger import get_logger

_logger = get_logger("bus")

Handler = Callable[[object], None]


class Subscription:
    """Handle for one or more bus listeners registered together."""

    def __init__(self, bus: EventBus, names: Iterable[str], slot: Callable[[str, object], None]) -> None:
        self._bus = bus
        self._names = frozenset(names)
        self._slot: Callable[[str, object], None] | None = slot

    @property
    def names(self) -> frozenset[str]:
        return self._names

    @property
    def active(self) -> bool:
        return self._slot is not None

    def release(self) -> None:
        slot, self._slot = self._slot, None
        if slot is None:
            return
        self._bus._disconnect(slot)
        _logger.debug("released listener for %s", ", ".join(sorted(self._names)))

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "active" if self.active else "released"
        return f"<Subscription {sorted(self._names)} {state}>"


class EventBus(QObject):
    """Named events with a payload, delivered synchronously in emit order.

    Signals:
        emitted: every event that crosses the bus (name, payload)
    """

    emitted = Signal(str, object)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._listeners = 0

    @property
    def listener_count(self) -> int:
        return self._listeners

    def listen(self, name: str | Iterable[str], handler: Callable[..., None], *, with_name: bool = False) -> Subscription:
        """Register ``handler`` for one event name or a group of names.

        ``handler(payload)`` is called for each matching event, or
        ``handler(name, payload)`` when ``with_name`` is set.
        """
        names = frozenset([name] if isinstance(name, str) else name)
        if not names:
            raise ValueError("listen() needs at least one event name")

        def _deliver(event_name: str, payload: object) -> None:
            if event_name not in names:
                return
            if with_name:
                handler(event_name, payload)
            else:
                handler(payload)

        self.emitted.connect(_deliver)
        self._listeners += 1
        _logger.debug("listening for %s", ", ".join(sorted(names)))
        return Subscription(self, names, _deliver)

    def emit(self, name: str, payload: object = None) -> None:
        _logger.debug("emit %s", name)
        self.emitted.emit(str(name), payload)

    def _disconnect(self, slot: Callable[[str, object], None]) -> None:
        self.emitted.disconnect(slot)
        self._listeners -= 1
