"""Data tab for viewing and exporting stored messages."""

from __future__ import annotations

import csv
import json
import sqlite3
from datetime import datetime
from typing import Any

from textual import on
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Button, DataTable, Static

from adapters.message_formatting import format_address_label, format_body, format_timestamp, message_to_dict
from adapters.sqlite_storage import SQLiteStorage
import settings

from ..constants import EXPORTS_DIR

MAX_ROWS = 5000


class DataTab(Container):
    """Data tab to browse messages and export them to JSON/CSV."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._rows: list[dict[str, Any]] = []
        self._table_ready = False

    def compose(self):
        with Vertical(id="data-panel"):
            yield Static("Messages", id="data-title")
            yield DataTable(id="data-table", cursor_type="row")
            with Horizontal(id="data-actions"):
                yield Button("Reload", id="reload-data")
                yield Button("Export JSON", id="export-json", variant="success")
                yield Button("Export CSV", id="export-csv")
            yield Static("", id="data-output")

    def on_mount(self) -> None:
        table = self.query_one("#data-table", DataTable)
        table.add_column("date", key="date", width=20)
        table.add_column("dir", key="direction", width=4)
        table.add_column("from", key="sender", width=22)
        table.add_column("to", key="receiver", width=22)
        table.add_column("message", key="body", width=42)
        table.zebra_stripes = True
        self.query_one("#data-actions").styles.height = 3
        self._table_ready = True
        self.reload()

    @on(Button.Pressed, "#reload-data")
    def _on_reload(self) -> None:
        self.reload()

    @on(Button.Pressed, "#export-json")
    def _on_export_json(self) -> None:
        self._export_rows("json")

    @on(Button.Pressed, "#export-csv")
    def _on_export_csv(self) -> None:
        self._export_rows("csv")

    def reload(self) -> None:
        if not self._table_ready:
            return
        table = self.query_one("#data-table", DataTable)
        table.clear()
        # Reads go straight to the database so the tab works before the
        # session is connected.
        storage = SQLiteStorage(settings.DB_PATH)
        try:
            storage.init_db()
            messages = storage.fetch_messages(limit=MAX_ROWS)
        except sqlite3.Error as exc:
            self._rows = []
            self._set_output(f"db error: {exc}")
            return

        self._rows = [message_to_dict(message) for message in messages]
        for message in messages:
            table.add_row(
                format_timestamp(message),
                message.direction.value,
                format_address_label(message.sender, settings.CONTACT_ALIASES),
                format_address_label(message.receiver, settings.CONTACT_ALIASES),
                self._clip_text(" ".join(format_body(message).split())),
                key=message.message_id,
            )
        self._set_output(f"loaded {len(messages)} messages from {settings.DB_PATH}")

    def _export_rows(self, fmt: str) -> None:
        if not self._rows:
            self._set_output("No messages to export.")
            return
        EXPORTS_DIR.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        path = EXPORTS_DIR / f"messages-{timestamp}.{fmt}"
        try:
            if fmt == "json":
                path.write_text(json.dumps(self._rows, indent=2, ensure_ascii=True), encoding="utf-8")
            else:
                with path.open("w", encoding="utf-8", newline="") as handle:
                    writer = csv.DictWriter(handle, fieldnames=list(self._rows[0].keys()))
                    writer.writeheader()
                    writer.writerows(self._rows)
            self._set_output(f"exported {len(self._rows)} messages to {path}")
        except OSError as exc:
            self._set_output(f"export failed: {exc.strerror or exc}")

    def _set_output(self, message: str) -> None:
        self.query_one("#data-output", Static).update(message)

    @staticmethod
    def _clip_text(value: str, limit: int = 64) -> str:
        if len(value) <= limit:
            return value
        return value[: limit - 3] + "..."
