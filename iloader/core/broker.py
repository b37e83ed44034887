"""Pause-and-resume protocol for backend prompts.

The backend can stop mid-operation and ask the foreground for input:

- ``2fa-required``: a one-time verification code is needed;
- ``max-certs-reached``: the account has no free certificate slot and the user
  has to pick certificates to revoke.

Each prompt kind is a tiny state machine (idle -> awaiting input -> idle). A
request opens the prompt, and exactly one successful ``resolve_*`` call closes
it and emits the reply. While a prompt is open, further requests of the same
kind are ignored so the open one stays answerable.
"""
from __future__ import annotations

from collections.abc import Iterable

from PySide6.QtCore import QObject, Signal

from iloader.core.bus import EventBus, Subscription
from iloader.core.events import (
    SELECTION_REPLY,
    SELECTION_REQUEST,
    VERIFICATION_REPLY,
    VERIFICATION_REQUEST,
    SelectionReply,
    SelectionRequest,
    VerificationReply,
    VerificationRequest,
    parse_selection_request,
)
from iloader.errors import MalformedEventError
from iloader.logger import get_logger

_logger = get_logger("broker")

VERIFICATION_CODE_LENGTH = 6


def is_valid_code(code: str, length: int = VERIFICATION_CODE_LENGTH) -> bool:
    # str.isdigit() also accepts superscripts and other unicode digits.
    return len(code) == length and all("0" <= c <= "9" for c in code)


class SignalBroker(QObject):
    """Holds the pending prompts and emits their replies on the bus.

    Signals:
        verificationChanged: the verification prompt opened (True) or closed (False)
        selectionChanged: the pending SelectionRequest, or None once closed
        validationFailed: a reply was rejected locally (message)
    """

    verificationChanged = Signal(bool)
    selectionChanged = Signal(object)
    validationFailed = Signal(str)

    def __init__(
        self,
        bus: EventBus,
        *,
        code_length: int = VERIFICATION_CODE_LENGTH,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._bus = bus
        self._code_length = int(code_length)
        self._verification: VerificationRequest | None = None
        self._selection: SelectionRequest | None = None
        self._subscriptions: list[Subscription] = []

    # ---- listener lifecycle ----
    @property
    def attached(self) -> bool:
        return bool(self._subscriptions)

    def attach(self) -> None:
        if self._subscriptions:
            return
        self._subscriptions = [
            self._bus.listen(VERIFICATION_REQUEST, self._on_verification_request),
            self._bus.listen(SELECTION_REQUEST, self._on_selection_request),
        ]
        _logger.debug("broker attached")

    def detach(self) -> None:
        subs, self._subscriptions = self._subscriptions, []
        for sub in subs:
            sub.release()
        if subs:
            _logger.debug("broker detached")

    # ---- read-only views ----
    @property
    def pending_verification(self) -> VerificationRequest | None:
        return self._verification

    @property
    def pending_selection(self) -> SelectionRequest | None:
        return self._selection

    def default_selection(self) -> tuple[str, ...]:
        """Ids pre-selected when the selection prompt opens (all of them)."""
        return self._selection.item_ids if self._selection is not None else ()

    # ---- request handlers ----
    def _on_verification_request(self, _payload: object) -> None:
        if self._verification is not None:
            _logger.warning("ignoring %s: a verification prompt is already open", VERIFICATION_REQUEST)
            return
        self._verification = VerificationRequest()
        _logger.info("verification code requested")
        self.verificationChanged.emit(True)

    def _on_selection_request(self, payload: object) -> None:
        if self._selection is not None:
            _logger.warning("ignoring %s: a selection prompt is already open", SELECTION_REQUEST)
            return
        try:
            request = parse_selection_request(payload)
        except MalformedEventError as e:
            _logger.warning("dropped %s: %s", SELECTION_REQUEST, e)
            return
        self._selection = request
        _logger.info("selection requested (%d items)", len(request.items))
        self.selectionChanged.emit(request)

    # ---- replies ----
    def _reject(self, message: str) -> bool:
        _logger.warning("reply rejected: %s", message)
        self.validationFailed.emit(message)
        return False

    def resolve_verification(self, code: str) -> bool:
        """Answer the open verification prompt.

        Returns False (and keeps the prompt open) when nothing is pending or
        the code is not exactly ``code_length`` digits.
        """
        if self._verification is None:
            _logger.warning("verification reply without a pending request")
            return False
        code = str(code or "").strip()
        if not is_valid_code(code, self._code_length):
            return self._reject(f"Please enter a valid {self._code_length}-digit code")

        reply = VerificationReply(code)
        # Re-arm before replying: the backend may ask again from inside its handler.
        self._verification = None
        self.verificationChanged.emit(False)
        self._bus.emit(VERIFICATION_REPLY, reply.code)
        return True

    def resolve_selection(self, selected_ids: Iterable[str] | None) -> bool:
        """Answer the open selection prompt.

        ``None`` (or an empty selection) tells the backend to revoke nothing.
        Ids that were not offered are rejected and the prompt stays open.
        """
        request = self._selection
        if request is None:
            _logger.warning("selection reply without a pending request")
            return False

        if selected_ids is None:
            reply = SelectionReply(None)
        else:
            if isinstance(selected_ids, str):
                selected_ids = [selected_ids]
            chosen = tuple(dict.fromkeys(str(i) for i in selected_ids))
            unknown = [i for i in chosen if i not in request.item_ids]
            if unknown:
                return self._reject(f"Unknown selection: {', '.join(unknown)}")
            reply = SelectionReply(chosen or None)

        self._selection = None
        self.selectionChanged.emit(None)
        self._bus.emit(SELECTION_REPLY, reply.payload)
        return True

    def cancel_selection(self) -> bool:
        return self.resolve_selection(None)
