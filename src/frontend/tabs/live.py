"""Live tab: every broadcast event as it happens."""

from __future__ import annotations

from typing import Any

from textual.containers import Container, Vertical
from textual.widgets import DataTable, Static

from adapters.message_formatting import format_address_label, format_body, format_timestamp
from core.models import BroadcastEvent, RegisteredEvent
import settings

MAX_ROWS = 500


class LiveTab(Container):
    """Append-only feed of recorded messages and registrations."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._row_keys: list[str] = []

    def compose(self):
        with Vertical(id="live-panel"):
            yield Static("Live feed (new events only, no history)", classes="subtle")
            yield DataTable(id="live-table", cursor_type="row")

    def on_mount(self) -> None:
        table = self.query_one("#live-table", DataTable)
        table.add_column("time", key="time", width=20)
        table.add_column("dir", key="direction", width=4)
        table.add_column("peer", key="peer", width=28)
        table.add_column("message", key="body", width=60)
        table.zebra_stripes = True

    def add_event(self, event: BroadcastEvent) -> None:
        table = self.query_one("#live-table", DataTable)
        if isinstance(event, RegisteredEvent):
            key = f"registered:{event.phone}"
            row = ("", "*", format_address_label(event.phone, settings.CONTACT_ALIASES), "registered")
        else:
            key = event.message_id
            row = (
                format_timestamp(event),
                event.direction.value,
                format_address_label(event.peer, settings.CONTACT_ALIASES),
                " ".join(format_body(event).split()),
            )
        if key in self._row_keys:
            return
        table.add_row(*row, key=key)
        self._row_keys.append(key)
        # Keep the feed bounded; history lives in the Data tab.
        if len(self._row_keys) > MAX_ROWS:
            table.remove_row(self._row_keys.pop(0))
        table.move_cursor(row=table.row_count - 1)
