from __future__ import annotations

from PySide6.QtCore import Property, QObject, Signal

from iloader.core.events import SelectionRequest


class PromptState(QObject):
    """State bound by the verification-code and revoke-certificate dialogs."""

    verificationOpenChanged = Signal(bool)
    selectionOpenChanged = Signal(bool)
    selectionItemsChanged = Signal()
    selectedIdsChanged = Signal()

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._verification_open = False
        self._selection_items: list[dict[str, str]] = []
        self._selection_open = False
        self._selected_ids: list[str] = []

    def _get_verification_open(self) -> bool:
        return bool(self._verification_open)

    verificationOpen = Property(bool, _get_verification_open, notify=verificationOpenChanged)  # type: ignore[arg-type]

    def _get_selection_open(self) -> bool:
        return bool(self._selection_open)

    selectionOpen = Property(bool, _get_selection_open, notify=selectionOpenChanged)  # type: ignore[arg-type]

    def _get_selection_items(self) -> list[dict[str, str]]:
        return [dict(i) for i in self._selection_items]

    selectionItems = Property(list, _get_selection_items, notify=selectionItemsChanged)  # type: ignore[arg-type]

    def _get_selected_ids(self) -> list[str]:
        return list(self._selected_ids)

    selectedIds = Property(list, _get_selected_ids, notify=selectedIdsChanged)  # type: ignore[arg-type]

    # ---- internal mutation helpers (called by backend) ----
    def _set_verification_open(self, value: bool) -> None:
        v = bool(value)
        if v == self._verification_open:
            return
        self._verification_open = v
        self.verificationOpenChanged.emit(v)

    def _set_selection(self, request: SelectionRequest | None, selected: list[str] | None = None) -> None:
        if request is None:
            items: list[dict[str, str]] = []
        else:
            items = [
                {"id": i.id, "name": i.name, "machineName": i.machine_name, "label": i.label}
                for i in request.items
            ]
        self._selection_items = items
        self.selectionItemsChanged.emit()
        self._set_selected_ids(list(selected or []) if request is not None else [])
        is_open = request is not None
        if is_open != self._selection_open:
            self._selection_open = is_open
            self.selectionOpenChanged.emit(is_open)

    def _set_selected_ids(self, ids: list[str]) -> None:
        new = [str(i) for i in ids]
        if new == self._selected_ids:
            return
        self._selected_ids = new
        self.selectedIdsChanged.emit()

    def _toggle_selected(self, item_id: str) -> None:
        if item_id not in {i["id"] for i in self._selection_items}:
            return
        if item_id in self._selected_ids:
            self._set_selected_ids([i for i in self._selected_ids if i != item_id])
        else:
            self._set_selected_ids([*self._selected_ids, item_id])
