"""Core of the operation progress UI.

This package tracks backend operations and mediates backend prompts:
- Operation definitions (operations)
- Typed bus events (events)
- Progress reducer (tracker)
- Step event delivery per run (channel)
- Verification/selection prompts (broker)

Usage:
    from iloader.core import EventBus, OperationRun, StepEventChannel, get_operation

    bus = EventBus()
    run = OperationRun(get_operation("install_sidestore"))
    sub = StepEventChannel(bus).attach(run)
    run.stateChanged.connect(on_state)
"""

from .broker import SignalBroker
from .bus import EventBus, Subscription
from .channel import OperationRun, StepEventChannel
from .operations import Operation, OperationStep, get_operation, operation_ids
from .tracker import OperationState, StepStatus

__all__ = [
    "EventBus",
    "Operation",
    "OperationRun",
    "OperationState",
    "OperationStep",
    "SignalBroker",
    "StepEventChannel",
    "StepStatus",
    "Subscription",
    "get_operation",
    "operation_ids",
]
