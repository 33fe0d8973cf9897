"""Telegram-to-core event mapping adapter.

This keeps Telethon-specific details out of the core pipeline: message ids,
peer resolution, and media download all stop here.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from telethon.tl.custom import Message

from core.config import PhoneConfig
from core.errors import InvalidPhoneNumber, MediaIngestionFailure
from core.models import DeliveredEvent, SelfSentEvent, TransportEvent
from core.phone import PEER_PREFIX, canonical_address

LOGGER = logging.getLogger(__name__)


def transport_message_id(message: Message) -> str:
    """Telegram ids are only unique per chat, so qualify them with the chat."""

    return f"{message.chat_id}:{message.id}"


def address_for_entity(entity: Any, phone_config: Optional[PhoneConfig] = None) -> str:
    """Canonical address for a Telegram user, falling back to its peer id.

    Users who hide their phone number still get a stable address; it just
    cannot be used for registration or as a send target by phone.
    """

    phone = getattr(entity, "phone", None)
    if isinstance(phone, str) and phone:
        try:
            return canonical_address(phone, phone_config)
        except InvalidPhoneNumber:
            LOGGER.warning("Unparseable phone on entity %s", getattr(entity, "id", None))
    return f"{PEER_PREFIX}{getattr(entity, 'id', 'unknown')}"


class PeerDirectory:
    """Remembers which Telegram peer stands behind each canonical address."""

    def __init__(self, client, phone_config: Optional[PhoneConfig] = None) -> None:
        self._client = client
        self._phone_config = phone_config
        self._cache: dict[str, Any] = {}

    def remember(self, entity: Any) -> str:
        address = address_for_entity(entity, self._phone_config)
        self._cache[address] = entity
        return address

    async def resolve(self, address: str) -> Any:
        if address in self._cache:
            return self._cache[address]
        if address.startswith(PEER_PREFIX):
            target: Any = int(address[len(PEER_PREFIX):])
        else:
            # Phone lookups only succeed for numbers in the account's contacts.
            target = f"+{address}"
        entity = await self._client.get_input_entity(target)
        self._cache[address] = entity
        return entity


def _fetcher(message: Message):
    async def fetch_attachment() -> tuple[bytes, str]:
        try:
            data = await message.download_media(file=bytes)
        except Exception as exc:
            raise MediaIngestionFailure(f"Download failed for {transport_message_id(message)}: {exc}") from exc
        if data is None:
            raise MediaIngestionFailure(f"No media on {transport_message_id(message)}")
        file = getattr(message, "file", None)
        mime_type = getattr(file, "mime_type", None) or "application/octet-stream"
        return data, mime_type

    return fetch_attachment


def _has_attachment(message: Message) -> bool:
    # Web page previews are media too, but carry no file to ingest.
    return getattr(message, "file", None) is not None


async def build_event(message: Message, directory: PeerDirectory, own_address: str) -> TransportEvent:
    """Build a core transport event from a private-chat Telethon Message."""

    body = message.raw_text or None
    has_attachment = _has_attachment(message)
    chat = await message.get_chat()
    peer_address = directory.remember(chat) if chat is not None else f"{PEER_PREFIX}{message.chat_id}"

    if message.out:
        return SelfSentEvent(
            event_id=transport_message_id(message),
            sender=own_address,
            receiver=peer_address,
            body=body,
            has_attachment=has_attachment,
        )

    sender = await message.get_sender()
    sender_address = directory.remember(sender) if sender is not None else peer_address
    return DeliveredEvent(
        event_id=transport_message_id(message),
        sender=sender_address,
        receiver=own_address,
        body=body,
        has_attachment=has_attachment,
        fetch_attachment=_fetcher(message) if has_attachment else None,
    )
