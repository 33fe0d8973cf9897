"""Core event classification pipeline.

This module is integration-agnostic. It turns raw transport events into
canonical messages and enforces a strict order per event:

1) Resolve the local session's own address
2) Drop echoes of our own sends on the delivered path
3) In-memory dedup on the transport event id
4) Ingest attachments (failures never drop the message)
5) Evaluate text-only messages against the registration workflow
6) Record the canonical message (durable insert, then broadcast)

Self-sent events skip dedup and registration. Attachment-bearing self-sent
events are skipped because the send-media path records them itself.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from core.dedup import DedupCache
from core.errors import MediaIngestionFailure
from core.media import MediaIngestor
from core.models import (
    Attachment,
    DeliveredEvent,
    Direction,
    InsertResult,
    Message,
    SelfSentEvent,
    TransportEvent,
)
from core.ports import TransportPort
from core.recorder import MessageRecorder
from core.registration import RegistrationEngine

LOGGER = logging.getLogger(__name__)


class ClassificationResult(str, Enum):
    RECORDED = "recorded"
    DUPLICATE = "duplicate"
    ECHO_SKIPPED = "echo_skipped"
    MEDIA_ECHO_SKIPPED = "media_echo_skipped"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventClassifier:
    """Orchestrates direction, dedup, media, registration, and recording."""

    def __init__(
        self,
        transport: TransportPort,
        dedup: DedupCache,
        media: MediaIngestor,
        registration: RegistrationEngine,
        recorder: MessageRecorder,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._transport = transport
        self._dedup = dedup
        self._media = media
        self._registration = registration
        self._recorder = recorder
        self._clock = clock

    async def handle(self, event: TransportEvent) -> ClassificationResult:
        """Process one raw transport event."""

        if isinstance(event, SelfSentEvent):
            return self._handle_self_sent(event)
        return await self._handle_delivered(event)

    async def _handle_delivered(self, event: DeliveredEvent) -> ClassificationResult:
        own_address = self._transport.own_address()

        # Outgoing messages are recorded only via the self-sent path.
        if event.sender == own_address:
            return ClassificationResult.ECHO_SKIPPED

        if self._dedup.seen(event.event_id):
            LOGGER.debug("Dedup skip for %s", event.event_id)
            return ClassificationResult.DUPLICATE

        attachment: Optional[Attachment] = None
        if event.has_attachment:
            attachment = await self._ingest(event)
        elif event.body and event.body.strip():
            outcome = await self._registration.evaluate(event.sender, event.body)
            LOGGER.debug("Registration outcome for %s: %s", event.event_id, outcome.value)

        message = Message(
            message_id=event.event_id,
            direction=Direction.INBOUND,
            sender=event.sender,
            receiver=event.receiver or own_address,
            body=event.body or None,
            attachment=attachment,
            created_at=self._clock(),
        )
        return self._record(message)

    def _handle_self_sent(self, event: SelfSentEvent) -> ClassificationResult:
        if event.has_attachment:
            return ClassificationResult.MEDIA_ECHO_SKIPPED

        message = Message(
            message_id=event.event_id,
            direction=Direction.OUTBOUND,
            sender=event.sender or self._transport.own_address(),
            receiver=event.receiver,
            body=event.body or None,
            attachment=None,
            created_at=self._clock(),
        )
        return self._record(message)

    async def _ingest(self, event: DeliveredEvent) -> Optional[Attachment]:
        if event.fetch_attachment is None:
            LOGGER.warning("Event %s has an attachment but no fetcher", event.event_id)
            return None
        try:
            data, mime_type = await event.fetch_attachment()
            return self._media.ingest(data, mime_type)
        except MediaIngestionFailure:
            LOGGER.exception("Media ingestion failed for %s, recording without attachment", event.event_id)
            return None

    def _record(self, message: Message) -> ClassificationResult:
        if self._recorder.record(message) is InsertResult.DUPLICATE_IGNORED:
            return ClassificationResult.DUPLICATE
        return ClassificationResult.RECORDED
