"""Message formatting helpers shared by the CLI and the console."""

from __future__ import annotations

from typing import Any

from core.models import Direction, Message

DIRECTION_ARROWS = {Direction.INBOUND: "<-", Direction.OUTBOUND: "->"}


def format_address_label(address: str, aliases: dict[str, str]) -> str:
    """Return a human-friendly label, using configured contact aliases."""

    if not address:
        return "unknown"
    alias = aliases.get(address)
    if not alias:
        if address.isdigit():
            return f"+{address}"
        return address
    return f"{alias} (+{address})" if address.isdigit() else f"{alias} ({address})"


def format_body(message: Message) -> str:
    """Text shown for a message, with a marker for attachments."""

    parts = []
    if message.attachment is not None:
        parts.append(f"[{message.attachment.mime_type}] {message.attachment.stored_locator}")
    if message.body:
        parts.append(message.body)
    if not parts:
        return "(empty)"
    return "\n".join(parts)


def format_timestamp(message: Message) -> str:
    return message.created_at.astimezone().strftime("%H:%M:%S %d-%m-%Y")


def message_to_dict(message: Message) -> dict[str, Any]:
    """Flat, JSON-friendly representation used for exports."""

    attachment = message.attachment
    return {
        "message_id": message.message_id,
        "direction": message.direction.value,
        "sender": message.sender,
        "receiver": message.receiver,
        "body": message.body,
        "attachment_name": attachment.stored_name if attachment else None,
        "attachment_locator": attachment.stored_locator if attachment else None,
        "attachment_type": attachment.mime_type if attachment else None,
        "created_at": message.created_at.isoformat(),
    }
