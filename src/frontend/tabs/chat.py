"""Chat tab: history and sending for one phone number."""

from __future__ import annotations

import logging
from typing import Any, Optional

from textual import on
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Button, DataTable, Input, Static

from adapters.message_formatting import DIRECTION_ARROWS, format_body, format_timestamp
from core.errors import ChatLedgerError
from core.models import Message
import settings

from ..validators import parse_phone_input

LOGGER = logging.getLogger(__name__)


class ChatTab(Container):
    """Conversation view backed by the query and send surfaces."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._address: Optional[str] = None
        self._shown: set[str] = set()

    def compose(self):
        with Vertical(id="chat-panel"):
            with Horizontal(classes="form-row"):
                yield Input(placeholder="+91 98765 43210", id="chat-phone")
                yield Button("Open", id="chat-open", variant="primary")
            yield Static("", id="chat-phone-error", classes="form-error")
            yield DataTable(id="chat-table", cursor_type="row")
            with Horizontal(classes="form-row"):
                yield Input(placeholder="Message", id="chat-text")
                yield Button("Send", id="chat-send", variant="success")
            yield Static("", id="chat-output", classes="subtle")

    def on_mount(self) -> None:
        table = self.query_one("#chat-table", DataTable)
        table.add_column("time", key="time", width=20)
        table.add_column("", key="direction", width=3)
        table.add_column("message", key="body", width=80)
        table.zebra_stripes = True

    @on(Button.Pressed, "#chat-open")
    @on(Input.Submitted, "#chat-phone")
    def _on_open(self) -> None:
        raw = self.query_one("#chat-phone", Input).value
        info = parse_phone_input(raw, settings.PHONE)
        error = self.query_one("#chat-phone-error", Static)
        if info.error:
            error.update(info.error)
            return
        error.update("")
        self._address = info.address
        self._load_history()

    def _load_history(self) -> None:
        service = self.app.service
        table = self.query_one("#chat-table", DataTable)
        table.clear()
        self._shown.clear()
        if service is None or self._address is None:
            self._set_output("session not ready")
            return
        messages = service.fetch_messages(self._address, settings.HISTORY_LIMIT)
        for message in messages:
            self._add_row(message)
        self._set_output(f"loaded {len(messages)} messages with +{self._address}")

    @on(Button.Pressed, "#chat-send")
    @on(Input.Submitted, "#chat-text")
    async def _on_send(self) -> None:
        text_input = self.query_one("#chat-text", Input)
        text = text_input.value.strip()
        service = self.app.service
        if not text or self._address is None:
            return
        if service is None:
            self._set_output("session not ready")
            return
        try:
            await service.send_text(self._address, text)
        except ChatLedgerError as exc:
            LOGGER.warning("Send to %s failed: %s", self._address, exc)
            self._set_output(f"send failed: {exc}")
            return
        text_input.value = ""
        self._set_output("sent")

    def on_message_recorded(self, message: Message) -> None:
        """Append broadcast messages that belong to the open conversation."""

        if self._address is not None and message.peer == self._address:
            self._add_row(message)

    def _add_row(self, message: Message) -> None:
        if message.message_id in self._shown:
            return
        self._shown.add(message.message_id)
        table = self.query_one("#chat-table", DataTable)
        table.add_row(format_timestamp(message), DIRECTION_ARROWS[message.direction], format_body(message), key=message.message_id)

    def _set_output(self, message: str) -> None:
        self.query_one("#chat-output", Static).update(message)
