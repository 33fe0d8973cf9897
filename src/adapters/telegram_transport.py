"""Telethon transport adapter.

Implements the core TransportPort on top of a logged-in Telegram user
session and forwards private-chat messages to the messaging service.
"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Optional

from telethon import TelegramClient, errors, events

from core.config import PhoneConfig
from core.errors import TransientTransportError, TransportNotReady
from core.media import extension_for_mime
from core.models import SentMessage
from core.service import MessagingService
from adapters.telegram_mapper import PeerDirectory, address_for_entity, build_event, transport_message_id

LOGGER = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (ConnectionError, asyncio.TimeoutError, errors.RPCError)


class TelegramTransport:
    """Transport adapter for a Telethon user session."""

    def __init__(self, client: TelegramClient, phone_config: Optional[PhoneConfig] = None) -> None:
        self._client = client
        self._phone_config = phone_config
        self._directory = PeerDirectory(client, phone_config)
        self._own_address: Optional[str] = None
        self._handler = None

    async def connect(self) -> str:
        """Resolve the session's own address; the session must be authorized."""

        me = await self._client.get_me()
        if me is None:
            raise TransportNotReady("Telegram session is not authorized")
        self._own_address = address_for_entity(me, self._phone_config)
        LOGGER.info("Telegram session established as %s", self._own_address)
        return self._own_address

    def own_address(self) -> str:
        if self._own_address is None:
            raise TransportNotReady("Telegram session is not connected")
        return self._own_address

    def attach(self, service: MessagingService) -> None:
        """Forward private-chat messages into the service's event queue."""

        own_address = self.own_address()

        async def handler(event) -> None:
            # The client is built with sequential_updates, so this runs once per
            # update in arrival order; the service consumes the queue serially.
            if not event.is_private:
                return
            try:
                transport_event = await build_event(event.message, self._directory, own_address)
            except Exception:
                LOGGER.exception("Could not map message %s", transport_message_id(event.message))
                return
            service.submit(transport_event)

        self._handler = handler
        self._client.add_event_handler(handler, events.NewMessage())

    def detach(self) -> None:
        if self._handler is not None:
            self._client.remove_event_handler(self._handler)
            self._handler = None

    async def reply(self, address: str, text: str) -> None:
        await self.send_text(address, text)

    async def send_text(self, address: str, text: str) -> SentMessage:
        try:
            entity = await self._directory.resolve(address)
            sent = await self._client.send_message(entity, text)
        except (ValueError, *_TRANSIENT_ERRORS) as exc:
            raise TransientTransportError(f"Failed to send to {address}: {exc}") from exc
        return SentMessage(
            message_id=transport_message_id(sent),
            sender=self.own_address(),
            receiver=address,
        )

    async def send_media(
        self,
        address: str,
        data: bytes,
        mime_type: str,
        caption: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> SentMessage:
        payload = io.BytesIO(data)
        # Telethon infers the upload's name (and type) from the name attribute.
        payload.name = filename or f"upload.{extension_for_mime(mime_type)}"
        try:
            entity = await self._directory.resolve(address)
            sent = await self._client.send_file(
                entity,
                payload,
                caption=caption,
                mime_type=mime_type,
                force_document=not mime_type.startswith("image/"),
            )
        except (ValueError, *_TRANSIENT_ERRORS) as exc:
            raise TransientTransportError(f"Failed to send media to {address}: {exc}") from exc
        return SentMessage(
            message_id=transport_message_id(sent),
            sender=self.own_address(),
            receiver=address,
        )
