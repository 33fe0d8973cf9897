"""Long-lived messaging service.

Owns the per-session state that would otherwise be process-wide globals:
the ready flag, the broadcaster, the dedup cache, and the single consumer
loop that drains raw transport events one at a time.

Lifecycle:
- ``start()`` runs once the transport session is established. It starts the
  consumer loop and marks the service ready.
- ``stop()`` runs when the session is torn down. It marks the service not
  ready, stops the loop, and closes every subscription.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from core.broadcast import Broadcaster, Subscription
from core.classifier import EventClassifier
from core.config import DedupConfig, PhoneConfig, RegistrationConfig
from core.dedup import DedupCache
from core.errors import MediaIngestionFailure, TransportNotReady
from core.media import MediaIngestor
from core.models import Attachment, Direction, InsertResult, Message, TransportEvent
from core.phone import canonical_address
from core.ports import BlobStorePort, StoragePort, TransportPort
from core.recorder import MessageRecorder
from core.registration import RegistrationEngine

LOGGER = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MessagingService:
    """Wires the core components around one transport session."""

    def __init__(
        self,
        transport: TransportPort,
        storage: StoragePort,
        blob_store: BlobStorePort,
        phone_config: Optional[PhoneConfig] = None,
        dedup_config: Optional[DedupConfig] = None,
        registration_config: Optional[RegistrationConfig] = None,
        broadcaster: Optional[Broadcaster] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._transport = transport
        self._storage = storage
        self._phone_config = phone_config or PhoneConfig()
        self._clock = clock

        self.broadcaster = broadcaster or Broadcaster()
        self.dedup = DedupCache((dedup_config or DedupConfig()).threshold)
        self.media = MediaIngestor(blob_store, clock=clock)
        self.recorder = MessageRecorder(storage, self.broadcaster)
        self.registration = RegistrationEngine(
            storage,
            transport,
            broadcaster=self.broadcaster,
            config=registration_config,
            phone_config=self._phone_config,
            clock=clock,
        )
        self.classifier = EventClassifier(
            transport,
            self.dedup,
            self.media,
            self.registration,
            self.recorder,
            clock=clock,
        )

        self._ready = False
        self._queue: Optional[asyncio.Queue] = None
        self._consumer: Optional[asyncio.Task] = None

    @property
    def ready(self) -> bool:
        return self._ready

    async def start(self) -> None:
        """Start consuming events; call once the session is established."""

        if self._ready:
            return
        self._queue = asyncio.Queue()
        self._consumer = asyncio.create_task(self._consume(), name="chatledger-consumer")
        self._ready = True
        LOGGER.info("Messaging service ready as %s", self._transport.own_address())

    async def stop(self) -> None:
        """Stop consuming events and disconnect subscribers."""

        self._ready = False
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
        self._queue = None
        self.broadcaster.close()
        LOGGER.info("Messaging service stopped")

    def submit(self, event: TransportEvent) -> None:
        """Queue a raw transport event for serial processing."""

        if self._queue is None:
            LOGGER.warning("Dropping event %s received before start()", event.event_id)
            return
        self._queue.put_nowait(event)

    async def drain(self) -> None:
        """Wait until every queued event has been processed."""

        if self._queue is not None:
            await self._queue.join()

    async def _consume(self) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            event = await queue.get()
            try:
                await self.classifier.handle(event)
            except asyncio.CancelledError:
                raise
            except Exception:
                # One bad event must not stall the session's stream.
                LOGGER.exception("Error while processing event %s", event.event_id)
            finally:
                queue.task_done()

    def subscribe(self) -> Subscription:
        return self.broadcaster.subscribe()

    def fetch_messages(self, phone: Optional[str] = None, limit: int = 100) -> list[Message]:
        """Stored messages oldest-first, optionally for one conversation."""

        address = canonical_address(phone, self._phone_config) if phone else None
        return self._storage.fetch_messages(address, limit)

    def _require_ready(self) -> None:
        if not self._ready:
            raise TransportNotReady("Client not ready")

    async def send_text(self, to: str, text: str) -> Message:
        """Send a text message and record it as outbound."""

        self._require_ready()
        address = canonical_address(to, self._phone_config)
        sent = await self._transport.send_text(address, text)
        message = Message(
            message_id=sent.message_id,
            direction=Direction.OUTBOUND,
            sender=sent.sender,
            receiver=sent.receiver,
            body=text,
            attachment=None,
            created_at=self._clock(),
        )
        self._record_outbound(message)
        return message

    async def send_media(
        self,
        to: str,
        data: bytes,
        mime_type: str,
        caption: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> Message:
        """Send an attachment and record it as outbound with its locator."""

        self._require_ready()
        address = canonical_address(to, self._phone_config)

        sent = await self._transport.send_media(address, data, mime_type, caption, filename)

        # Stored only after a successful send so failed sends leave no blob.
        attachment: Optional[Attachment] = None
        try:
            attachment = self.media.ingest(data, mime_type)
        except MediaIngestionFailure:
            LOGGER.exception("Could not store outgoing attachment for %s", address)

        message = Message(
            message_id=sent.message_id,
            direction=Direction.OUTBOUND,
            sender=sent.sender,
            receiver=sent.receiver,
            body=caption or None,
            attachment=attachment,
            created_at=self._clock(),
        )
        self._record_outbound(message)
        return message

    def _record_outbound(self, message: Message) -> None:
        # The self-sent echo for this id may already have been recorded.
        if self.recorder.record(message) is InsertResult.DUPLICATE_IGNORED:
            LOGGER.debug("Outbound %s was already recorded from its echo", message.message_id)
