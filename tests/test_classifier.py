from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from adapters.sqlite_storage import SQLiteStorage
from core.broadcast import Broadcaster
from core.classifier import ClassificationResult, EventClassifier
from core.dedup import DedupCache
from core.errors import MediaIngestionFailure
from core.media import MediaIngestor
from core.models import DeliveredEvent, Direction, SelfSentEvent
from core.recorder import MessageRecorder
from core.registration import RegistrationEngine

OWN = "919999999999"
ALICE = "919876543210"
NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeTransport:
    def __init__(self) -> None:
        self.replies: list[tuple[str, str]] = []

    def own_address(self) -> str:
        return OWN

    async def reply(self, address: str, text: str) -> None:
        self.replies.append((address, text))


class FakeBlobStore:
    def __init__(self) -> None:
        self.writes: dict[str, bytes] = {}

    def put(self, name: str, data: bytes, mime_type: str) -> str:
        self.writes[name] = data
        return f"https://cdn.example/{name}"


class Pipeline:
    def __init__(self, tmp_path, db_name: str = "ledger.db", broadcaster: "Broadcaster | None" = None, blobs=None) -> None:
        self.storage = SQLiteStorage(str(tmp_path / db_name))
        self.storage.init_db()
        self.transport = FakeTransport()
        self.blobs = blobs or FakeBlobStore()
        self.broadcaster = broadcaster or Broadcaster()
        self.subscription = self.broadcaster.subscribe()
        recorder = MessageRecorder(self.storage, self.broadcaster)
        registration = RegistrationEngine(self.storage, self.transport, broadcaster=self.broadcaster, clock=lambda: NOW)
        self.classifier = EventClassifier(
            self.transport,
            DedupCache(),
            MediaIngestor(self.blobs, clock=lambda: NOW),
            registration,
            recorder,
            clock=lambda: NOW,
        )

    def handle(self, event) -> ClassificationResult:
        return asyncio.run(self.classifier.handle(event))


def _delivered(event_id: str = "100:1", body: "str | None" = "hello", sender: str = ALICE, fetcher=None) -> DeliveredEvent:
    return DeliveredEvent(
        event_id=event_id,
        sender=sender,
        receiver=OWN,
        body=body,
        has_attachment=fetcher is not None,
        fetch_attachment=fetcher,
    )


def test_repeated_delivery_is_recorded_and_broadcast_once(tmp_path) -> None:
    pipeline = Pipeline(tmp_path)

    results = [pipeline.handle(_delivered()) for _ in range(5)]

    assert results[0] is ClassificationResult.RECORDED
    assert set(results[1:]) == {ClassificationResult.DUPLICATE}
    assert pipeline.storage.count_messages() == 1
    assert pipeline.subscription.pending() == 1

    (message,) = pipeline.storage.fetch_messages()
    assert message.direction is Direction.INBOUND
    assert message.sender == ALICE
    assert message.receiver == OWN
    assert message.body == "hello"


def test_second_instance_on_same_database_does_not_duplicate(tmp_path) -> None:
    first = Pipeline(tmp_path)
    second = Pipeline(tmp_path)

    assert first.handle(_delivered()) is ClassificationResult.RECORDED
    assert second.handle(_delivered()) is ClassificationResult.DUPLICATE
    assert first.storage.count_messages() == 1
    assert second.subscription.pending() == 0


def test_delivered_echo_of_own_message_is_skipped(tmp_path) -> None:
    pipeline = Pipeline(tmp_path)

    result = pipeline.handle(_delivered(sender=OWN))

    assert result is ClassificationResult.ECHO_SKIPPED
    assert pipeline.storage.count_messages() == 0


def test_self_sent_text_is_recorded_outbound(tmp_path) -> None:
    pipeline = Pipeline(tmp_path)
    event = SelfSentEvent(event_id="100:2", sender=OWN, receiver=ALICE, body="on my way", has_attachment=False)

    assert pipeline.handle(event) is ClassificationResult.RECORDED

    (message,) = pipeline.storage.fetch_messages(ALICE)
    assert message.direction is Direction.OUTBOUND
    assert message.sender == OWN
    assert message.receiver == ALICE


def test_self_sent_media_is_left_to_the_send_path(tmp_path) -> None:
    pipeline = Pipeline(tmp_path)
    event = SelfSentEvent(event_id="100:3", sender=OWN, receiver=ALICE, body="photo", has_attachment=True)

    assert pipeline.handle(event) is ClassificationResult.MEDIA_ECHO_SKIPPED
    assert pipeline.storage.count_messages() == 0


def test_attachment_is_stored_and_referenced(tmp_path) -> None:
    pipeline = Pipeline(tmp_path)

    async def fetch() -> tuple[bytes, str]:
        return b"\xff\xd8\xff", "image/jpeg"

    assert pipeline.handle(_delivered(body="look", fetcher=fetch)) is ClassificationResult.RECORDED

    (message,) = pipeline.storage.fetch_messages()
    assert message.attachment is not None
    assert message.attachment.mime_type == "image/jpeg"
    assert message.attachment.stored_name.endswith(".jpg")
    assert message.attachment.stored_locator == f"https://cdn.example/{message.attachment.stored_name}"
    assert list(pipeline.blobs.writes.values()) == [b"\xff\xd8\xff"]
    assert message.body == "look"


def test_failed_download_still_records_the_message(tmp_path) -> None:
    pipeline = Pipeline(tmp_path)

    async def fetch() -> tuple[bytes, str]:
        raise MediaIngestionFailure("download failed")

    assert pipeline.handle(_delivered(body="caption", fetcher=fetch)) is ClassificationResult.RECORDED

    (message,) = pipeline.storage.fetch_messages()
    assert message.attachment is None
    assert message.body == "caption"
    assert pipeline.blobs.writes == {}


def test_registration_command_is_recorded_as_well(tmp_path) -> None:
    pipeline = Pipeline(tmp_path)

    pipeline.handle(_delivered(body="Register Alice"))

    assert pipeline.storage.find_registration(ALICE) is not None
    assert len(pipeline.transport.replies) == 1
    assert [message.body for message in pipeline.storage.fetch_messages()] == ["Register Alice"]
    # the recorded message and the registration event
    assert pipeline.subscription.pending() == 2


def test_invalid_registration_is_recorded_without_side_effects(tmp_path) -> None:
    pipeline = Pipeline(tmp_path)

    pipeline.handle(_delivered(body="Register A1"))

    assert pipeline.storage.find_registration(ALICE) is None
    assert pipeline.transport.replies == []
    assert pipeline.storage.count_messages() == 1


def test_caption_on_media_does_not_trigger_registration(tmp_path) -> None:
    pipeline = Pipeline(tmp_path)

    async def fetch() -> tuple[bytes, str]:
        return b"data", "image/png"

    pipeline.handle(_delivered(body="Register Alice", fetcher=fetch))

    assert pipeline.storage.find_registration(ALICE) is None
    assert pipeline.transport.replies == []


class UnreachableBlobStore:
    def put(self, name: str, data: bytes, mime_type: str) -> str:
        raise RuntimeError("store unreachable")


def test_unreachable_blob_store_still_records_the_message(tmp_path) -> None:
    pipeline = Pipeline(tmp_path, blobs=UnreachableBlobStore())

    async def fetch() -> tuple[bytes, str]:
        return b"\x89PNG", "image/png"

    assert pipeline.handle(_delivered(body="receipt", fetcher=fetch)) is ClassificationResult.RECORDED

    (message,) = pipeline.storage.fetch_messages()
    assert message.attachment is None
    assert message.body == "receipt"
