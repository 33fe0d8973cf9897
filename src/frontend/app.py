"""Main Textual app for the chatledger console."""

from __future__ import annotations

import logging
from typing import Any, Optional

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Center, Container, Horizontal, Vertical
from textual.widgets import ContentSwitcher, Footer, Static, Tab, Tabs

from adapters.message_formatting import format_address_label
from core.models import Message
from core.service import MessagingService
import settings
from session import build_client
from wiring import start_service, stop_service

from .constants import ACCENT
from .state import SessionState
from .tabs.chat import ChatTab
from .tabs.data import DataTab
from .tabs.live import LiveTab

LOGGER = logging.getLogger(__name__)


class ChatConsoleApp(App):
    """Live message feed, per-phone chat, and stored history in one TUI."""

    CSS = """
    Screen {
        background: #0f1a21;
        color: #e8eef5;
    }

    #header {
        height: 6;
        padding: 1 4;
        border-bottom: solid #2a3a46;
    }

    #header-left, #header-right {
        width: 1fr;
    }

    #header-right {
        text-align: right;
    }

    #title {
        text-style: bold;
    }

    .subtle {
        color: #c6d2dd;
    }

    .status-ready {
        color: #5fd38d;
    }

    .status-error {
        color: #ff6b6b;
    }

    #tabs-bar {
        height: 4;
        padding: 0 4;
        border-bottom: solid #2a3a46;
    }

    #tabs {
        width: auto;
    }

    #content {
        height: 1fr;
        padding: 0 2;
    }

    DataTable {
        height: 1fr;
    }

    .form-row {
        height: 3;
    }

    .form-error {
        color: #ff6b6b;
        height: 1;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("ctrl+c", "quit", "Quit"),
    ]

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.session_state = SessionState()
        self.service: Optional[MessagingService] = None
        self._client = None
        self._transport = None

    def compose(self) -> ComposeResult:
        with Container(id="header"):
            with Horizontal():
                with Vertical(id="header-left"):
                    yield Static(self._title_text(), id="title")
                    yield Static(f"db: {settings.DB_PATH}", classes="subtle")
                with Vertical(id="header-right"):
                    yield Static("session: connecting...", id="header-status", classes="subtle")
                    yield Static("", id="header-address", classes="subtle")

        with Container(id="tabs-bar"):
            with Center():
                yield Tabs(
                    Tab("Live", id="live"),
                    Tab("Chat", id="chat"),
                    Tab("Data", id="data"),
                    id="tabs",
                )

        with ContentSwitcher(id="content", initial="live"):
            yield LiveTab(id="live")
            yield ChatTab(id="chat")
            yield DataTab(id="data")
        yield Footer()

    def on_mount(self) -> None:
        self.run_worker(self._run_session(), exclusive=True, name="session")

    def on_tabs_tab_activated(self, event: Tabs.TabActivated) -> None:
        tab_id = event.tab.id or "live"
        self.query_one("#content", ContentSwitcher).current = tab_id
        if tab_id == "data":
            self.query_one(DataTab).reload()

    async def _run_session(self) -> None:
        """Connect the Telegram session and pump broadcast events into the tabs."""

        try:
            self._client = build_client()
            await self._client.connect()
            if not await self._client.is_user_authorized():
                self._set_status(error="not authorized, run `chatledger login` first")
                return
            self._transport, self.service = await start_service(self._client)
        except Exception as exc:
            LOGGER.exception("Console failed to start the session")
            self._set_status(error=str(exc))
            return

        self.session_state.ready = True
        self.session_state.own_address = self._transport.own_address()
        self._set_status()

        live = self.query_one(LiveTab)
        chat = self.query_one(ChatTab)
        async for event in self.service.subscribe():
            live.add_event(event)
            if isinstance(event, Message):
                chat.on_message_recorded(event)

    async def action_quit(self) -> None:
        if self.service is not None and self._transport is not None:
            await stop_service(self._transport, self.service)
        if self._client is not None:
            await self._client.disconnect()
        self.exit()

    def _set_status(self, error: Optional[str] = None) -> None:
        status = self.query_one("#header-status", Static)
        address = self.query_one("#header-address", Static)
        status.remove_class("status-ready", "status-error")
        if error:
            self.session_state.error = error
            status.update(f"session: {error}")
            status.add_class("status-error")
            return
        status.update("session: ready")
        status.add_class("status-ready")
        own = self.session_state.own_address or ""
        address.update(f"as {format_address_label(own, settings.CONTACT_ALIASES)}")

    @staticmethod
    def _title_text() -> Text:
        return Text.assemble(
            ("CHAT", ACCENT),
            ("LEDGER > Console", "bold"),
        )
