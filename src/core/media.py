"""Attachment ingestion (core domain).

Turns transport-provided bytes into a stored blob plus the locator metadata
kept on the message record.
"""

from __future__ import annotations

import logging
import mimetypes
import secrets
from datetime import datetime, timezone
from typing import Callable, Optional

from core.errors import MediaIngestionFailure
from core.models import Attachment
from core.ports import BlobStorePort

LOGGER = logging.getLogger(__name__)

FALLBACK_EXTENSION = "bin"

# Transport MIME types that mimetypes either misses or maps to odd suffixes.
_MIME_EXT_MAP = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "video/mp4": "mp4",
    "audio/ogg": "ogg",
    "audio/opus": "opus",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/aac": "aac",
    "application/pdf": "pdf",
    "application/x-tgsticker": "tgs",
    "text/plain": "txt",
}


def _base_mime(mime_type: Optional[str]) -> str:
    return (mime_type or "").split(";", 1)[0].strip().lower()


def extension_for_mime(mime_type: Optional[str]) -> str:
    """Return a file extension (without dot) for a declared MIME type."""

    base = _base_mime(mime_type)
    if not base:
        return FALLBACK_EXTENSION
    if base in _MIME_EXT_MAP:
        return _MIME_EXT_MAP[base]
    guessed = mimetypes.guess_extension(base)
    if guessed:
        return guessed.lstrip(".")
    return FALLBACK_EXTENSION


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MediaIngestor:
    """Derives a stored filename and writes attachment bytes exactly once."""

    def __init__(self, blob_store: BlobStorePort, clock: Callable[[], datetime] = _utc_now) -> None:
        self._blob_store = blob_store
        self._clock = clock

    def build_filename(self, mime_type: Optional[str]) -> str:
        # Millisecond timestamp keeps names sortable; the random suffix keeps
        # two attachments in the same millisecond apart.
        millis = int(self._clock().timestamp() * 1000)
        return f"{millis}-{secrets.token_hex(4)}.{extension_for_mime(mime_type)}"

    def ingest(self, data: bytes, mime_type: Optional[str]) -> Attachment:
        """Persist ``data`` and return its locator metadata.

        Raises MediaIngestionFailure when the payload is empty or the blob
        store rejects the write.
        """

        if not data:
            raise MediaIngestionFailure("Attachment payload is empty")

        declared = (mime_type or "").strip() or "application/octet-stream"
        name = self.build_filename(declared)
        try:
            locator = self._blob_store.put(name, data, declared)
        except Exception as exc:
            raise MediaIngestionFailure(f"Failed to store {name}: {exc}") from exc

        LOGGER.info("Stored attachment %s (%s, %s bytes)", name, declared, len(data))
        return Attachment(stored_name=name, stored_locator=locator, mime_type=declared)
