"""Bridge backend step events into an OperationRun.

One ``OperationRun`` exists per execution of an operation. The channel owns at
most one bus subscription per run and applies events to it in arrival order.
"""
from __future__ import annotations

from PySide6.QtCore import QObject, Signal

from iloader.core import tracker
from iloader.core.bus import EventBus, Subscription
from iloader.core.events import STEP_EVENT_NAMES, StepEvent, parse_step_event
from iloader.core.operations import Operation
from iloader.errors import MalformedEventError
from iloader.logger import get_logger

_logger = get_logger("channel")


class OperationRun(QObject):
    """Session object for one run of an operation.

    Signals:
        stateChanged: a new OperationState snapshot was produced
        doneChanged: the run reached done (emitted once)
    """

    stateChanged = Signal(object)
    doneChanged = Signal(bool)

    def __init__(self, operation: Operation, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._state = tracker.initial_state(operation)

    @property
    def operation(self) -> Operation:
        return self._state.current

    @property
    def state(self) -> tracker.OperationState:
        return self._state

    @property
    def done(self) -> bool:
        return self._state.done

    def apply(self, event: StepEvent) -> tracker.OperationState:
        previous = self._state
        new_state = tracker.apply(previous, event)
        if new_state is previous:
            _logger.debug("%s: %r changed nothing", self.operation.id, event)
            return previous
        self._state = new_state
        self.stateChanged.emit(new_state)
        if new_state.done and not previous.done:
            _logger.info(
                "%s: done (%s)", self.operation.id, "failed" if new_state.has_failed else "completed"
            )
            self.doneChanged.emit(True)
        return new_state


class StepEventChannel:
    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self._attached: dict[int, tuple[OperationRun, Subscription]] = {}

    def _prune(self) -> None:
        # Subscriptions released directly instead of through detach().
        for key, (_run, sub) in list(self._attached.items()):
            if not sub.active:
                del self._attached[key]

    def is_attached(self, run: OperationRun) -> bool:
        self._prune()
        return id(run) in self._attached

    def attach(self, run: OperationRun) -> Subscription:
        """Start feeding step events into ``run``.

        Attaching a run that is already attached returns its existing
        subscription without adding another listener.
        """
        self._prune()
        entry = self._attached.get(id(run))
        if entry is not None:
            _logger.debug("%s: already attached", run.operation.id)
            return entry[1]

        def _on_step_event(name: str, payload: object) -> None:
            if not subscription.active:
                return
            try:
                event = parse_step_event(name, payload)
            except MalformedEventError as e:
                _logger.warning("%s: dropped step event: %s", run.operation.id, e)
                return
            if event.step_id not in run.operation.step_ids:
                _logger.warning("%s: event for unknown step %r", run.operation.id, event.step_id)
            run.apply(event)

        subscription = self._bus.listen(STEP_EVENT_NAMES, _on_step_event, with_name=True)
        self._attached[id(run)] = (run, subscription)
        _logger.debug("%s: attached", run.operation.id)
        return subscription

    def detach(self, subscription: Subscription) -> None:
        subscription.release()
        for key, (run, sub) in list(self._attached.items()):
            if sub is subscription:
                del self._attached[key]
                _logger.debug("%s: detached", run.operation.id)

    def close(self) -> None:
        for _run, sub in list(self._attached.values()):
            sub.release()
        self._attached.clear()
