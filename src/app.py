"""Application entry point for chatledger."""

from __future__ import annotations

import argparse
import asyncio
import logging
import mimetypes
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

import settings
from adapters.message_formatting import format_address_label, format_body, format_timestamp
from adapters.telegram_transport import TelegramTransport
from core.errors import ChatLedgerError
from core.phone import canonical_address
from session import authorize, build_client
from wiring import build_storage, start_service, stop_service

NAME = "CHATLEDGER"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    """Masks secret values (API hash, 2FA password) in every log line."""

    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = [os.getenv(name) for name in redact_cfg.get("patterns", [])]
    # Longest first so a secret containing another is masked whole.
    return sorted({value for value in values if value}, key=len, reverse=True)


def _configure_logging(to_console: bool = True) -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    formatter = _RedactingFormatter(
        _collect_redaction_values(config),
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []

    # The console TUI owns the terminal, so it only logs to file.
    if to_console and config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/chatledger.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        file_handler = RotatingFileHandler(
            path,
            maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
            backupCount=int(file_cfg.get("backup_count", 5)),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # Telethon is chatty at INFO; keep its connection noise out of our logs.
    logging.getLogger("telethon").setLevel(max(level, logging.WARNING))


async def _serve() -> None:
    client = build_client()
    await client.connect()
    await authorize(client)
    transport, service = await start_service(client)
    LOGGER.info("Client connected. Listening for messages...")
    try:
        await client.run_until_disconnected()
    finally:
        await stop_service(transport, service)
        await client.disconnect()


def _run() -> None:
    _print_banner()
    _configure_logging()
    LOGGER.info("Starting chatledger")
    asyncio.run(_serve())


def _login() -> None:
    _print_banner()
    _configure_logging()

    async def _run_login() -> None:
        client = build_client()
        await client.connect()
        await authorize(client)
        transport = TelegramTransport(client, settings.PHONE)
        address = await transport.connect()
        print(f"Logged in as {format_address_label(address, settings.CONTACT_ALIASES)}")
        await client.disconnect()

    asyncio.run(_run_login())


def _console() -> None:
    _print_banner()
    _configure_logging(to_console=False)
    from frontend.app import ChatConsoleApp

    ChatConsoleApp().run()


def _history(phone: Optional[str], limit: int) -> None:
    storage = build_storage()
    address = canonical_address(phone, settings.PHONE) if phone else None
    messages = storage.fetch_messages(address, limit)

    title = f"Messages with {format_address_label(address, settings.CONTACT_ALIASES)}" if address else "Messages"
    table = Table(title=title)
    table.add_column("time")
    table.add_column("dir")
    table.add_column("from")
    table.add_column("to")
    table.add_column("message")
    for message in messages:
        table.add_row(
            format_timestamp(message),
            message.direction.value,
            format_address_label(message.sender, settings.CONTACT_ALIASES),
            format_address_label(message.receiver, settings.CONTACT_ALIASES),
            format_body(message),
        )
    Console().print(table)


def _send(to: str, text: Optional[str], file_path: Optional[str], caption: Optional[str]) -> None:
    _configure_logging()

    async def _run_send() -> None:
        client = build_client()
        await client.connect()
        await authorize(client)
        transport, service = await start_service(client)
        try:
            if file_path:
                mime_type = mimetypes.guess_type(file_path)[0] or "application/octet-stream"
                with open(file_path, "rb") as handle:
                    data = handle.read()
                message = await service.send_media(
                    to, data, mime_type, caption=caption, filename=os.path.basename(file_path)
                )
            else:
                message = await service.send_text(to, text or "")
            print(f"Sent {message.message_id} to {format_address_label(message.receiver, settings.CONTACT_ALIASES)}")
        finally:
            await stop_service(transport, service)
            await client.disconnect()

    asyncio.run(_run_send())


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="chatledger")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the message recorder")
    subparsers.add_parser("console", help="Launch the chat console TUI")
    subparsers.add_parser("login", help="Authorize the Telegram session")

    history = subparsers.add_parser("history", help="Print stored messages")
    history.add_argument("--phone", help="Only messages with this phone number")
    history.add_argument("--limit", type=int, default=settings.HISTORY_LIMIT)

    send = subparsers.add_parser("send", help="Send a text message")
    send.add_argument("--to", required=True)
    send.add_argument("--text", required=True)

    send_media = subparsers.add_parser("send-media", help="Send a file with an optional caption")
    send_media.add_argument("--to", required=True)
    send_media.add_argument("--file", required=True)
    send_media.add_argument("--caption")

    args = parser.parse_args(argv)
    try:
        if args.command == "console":
            _console()
        elif args.command == "login":
            _login()
        elif args.command == "history":
            _history(args.phone, args.limit)
        elif args.command == "send":
            _send(args.to, args.text, None, None)
        elif args.command == "send-media":
            _send(args.to, None, args.file, args.caption)
        else:
            _run()
    except ChatLedgerError as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
