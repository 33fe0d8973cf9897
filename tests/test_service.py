from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Optional

import pytest

from adapters.sqlite_storage import SQLiteStorage
from core.errors import TransientTransportError, TransportNotReady
from core.models import DeliveredEvent, Direction, SelfSentEvent, SentMessage
from core.service import MessagingService

OWN = "919999999999"
ALICE = "919876543210"


class FakeTransport:
    def __init__(self, fail_media: bool = False) -> None:
        self.sent: list[tuple] = []
        self.fail_media = fail_media
        self._counter = 0

    def own_address(self) -> str:
        return OWN

    async def reply(self, address: str, text: str) -> None:
        self.sent.append(("reply", address, text))

    def _next(self, address: str) -> SentMessage:
        self._counter += 1
        return SentMessage(message_id=f"{address}:{self._counter}", sender=OWN, receiver=address)

    async def send_text(self, address: str, text: str) -> SentMessage:
        self.sent.append(("text", address, text))
        return self._next(address)

    async def send_media(
        self,
        address: str,
        data: bytes,
        mime_type: str,
        caption: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> SentMessage:
        if self.fail_media:
            raise TransientTransportError("connection lost")
        self.sent.append(("media", address, mime_type, caption, filename))
        return self._next(address)


class FakeBlobStore:
    def __init__(self) -> None:
        self.names: list[str] = []

    def put(self, name: str, data: bytes, mime_type: str) -> str:
        self.names.append(name)
        return f"/media/{name}"


def _service(tmp_path) -> tuple[MessagingService, SQLiteStorage, FakeTransport]:
    storage = SQLiteStorage(str(tmp_path / "ledger.db"))
    storage.init_db()
    transport = FakeTransport()
    service = MessagingService(
        transport,
        storage,
        FakeBlobStore(),
        clock=lambda: datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
    return service, storage, transport


def test_send_before_start_raises_not_ready(tmp_path) -> None:
    service, storage, transport = _service(tmp_path)

    with pytest.raises(TransportNotReady, match="Client not ready"):
        asyncio.run(service.send_text(ALICE, "hello"))
    with pytest.raises(TransportNotReady):
        asyncio.run(service.send_media(ALICE, b"data", "image/png"))

    assert transport.sent == []
    assert storage.count_messages() == 0


def test_send_text_records_once_despite_echo(tmp_path) -> None:
    service, storage, transport = _service(tmp_path)

    async def scenario() -> int:
        await service.start()
        subscription = service.subscribe()
        message = await service.send_text("+91 98765 43210", "hello")
        service.submit(
            SelfSentEvent(event_id=message.message_id, sender=OWN, receiver=ALICE, body="hello", has_attachment=False)
        )
        await service.drain()
        pending = subscription.pending()
        await service.stop()
        return pending

    assert asyncio.run(scenario()) == 1
    assert transport.sent == [("text", ALICE, "hello")]

    (message,) = storage.fetch_messages()
    assert message.direction is Direction.OUTBOUND
    assert message.sender == OWN
    assert message.receiver == ALICE
    assert message.body == "hello"


def test_send_media_records_attachment_and_caption(tmp_path) -> None:
    service, storage, transport = _service(tmp_path)

    async def scenario() -> None:
        await service.start()
        message = await service.send_media(ALICE, b"%PDF-1.7", "application/pdf", caption="invoice", filename="a.pdf")
        # The echo of a media send carries the attachment flag and is skipped.
        service.submit(
            SelfSentEvent(event_id=message.message_id, sender=OWN, receiver=ALICE, body="invoice", has_attachment=True)
        )
        await service.drain()
        await service.stop()

    asyncio.run(scenario())

    assert transport.sent == [("media", ALICE, "application/pdf", "invoice", "a.pdf")]
    (message,) = storage.fetch_messages()
    assert message.body == "invoice"
    assert message.attachment is not None
    assert message.attachment.mime_type == "application/pdf"
    assert message.attachment.stored_locator.endswith(".pdf")


def test_fetch_messages_normalizes_the_phone(tmp_path) -> None:
    service, storage, _ = _service(tmp_path)

    async def scenario() -> None:
        await service.start()
        service.submit(DeliveredEvent("1:1", ALICE, OWN, "first", False))
        service.submit(DeliveredEvent("2:1", "14155550123", OWN, "someone else", False))
        service.submit(DeliveredEvent("1:2", ALICE, OWN, "second", False))
        await service.drain()
        await service.stop()

    asyncio.run(scenario())

    assert [message.body for message in service.fetch_messages("(+91) 98765-43210")] == ["first", "second"]
    assert [message.body for message in service.fetch_messages("9876543210", limit=1)] == ["first"]
    assert len(service.fetch_messages()) == 3


def test_consumer_survives_a_failing_event(tmp_path) -> None:
    service, storage, _ = _service(tmp_path)

    async def broken_fetch() -> tuple[bytes, str]:
        raise RuntimeError("boom")

    async def scenario() -> None:
        await service.start()
        service.submit(DeliveredEvent("1:1", ALICE, OWN, None, True, broken_fetch))
        service.submit(DeliveredEvent("1:2", ALICE, OWN, "still here", False))
        await service.drain()
        await service.stop()

    asyncio.run(scenario())

    assert [message.body for message in storage.fetch_messages()] == ["still here"]


def test_stop_clears_ready_and_closes_subscriptions(tmp_path) -> None:
    service, _, _ = _service(tmp_path)

    async def scenario() -> list:
        await service.start()
        assert service.ready
        subscription = service.subscribe()
        await service.stop()
        return [event async for event in subscription]

    assert asyncio.run(scenario()) == []
    assert not service.ready
    assert service.broadcaster.subscriber_count() == 0


def test_events_before_start_are_dropped(tmp_path) -> None:
    service, storage, _ = _service(tmp_path)

    service.submit(DeliveredEvent("1:1", ALICE, OWN, "early", False))

    assert storage.count_messages() == 0


def test_failed_media_send_stores_nothing(tmp_path) -> None:
    storage = SQLiteStorage(str(tmp_path / "ledger.db"))
    storage.init_db()
    blobs = FakeBlobStore()
    service = MessagingService(FakeTransport(fail_media=True), storage, blobs)

    async def scenario() -> None:
        await service.start()
        try:
            await service.send_media(ALICE, b"\x89PNG", "image/png", caption="receipt")
        finally:
            await service.stop()

    with pytest.raises(TransientTransportError):
        asyncio.run(scenario())

    assert blobs.names == []
    assert storage.count_messages() == 0
