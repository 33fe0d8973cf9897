"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for storage, blob, and transport adapters
so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Optional, Protocol

from core.models import CreateResult, InsertResult, Message, RegistrationRecord, SentMessage


class StoragePort(Protocol):
    """Durable storage required by the core pipeline."""

    def insert_message(self, message: Message) -> InsertResult:
        ...

    def fetch_messages(self, address: Optional[str] = None, limit: int = 100) -> list[Message]:
        ...

    def find_registration(self, canonical_phone: str) -> Optional[RegistrationRecord]:
        ...

    def create_registration(self, record: RegistrationRecord) -> CreateResult:
        ...


class BlobStorePort(Protocol):
    """Stores attachment bytes and returns a locator for them."""

    def put(self, name: str, data: bytes, mime_type: str) -> str:
        ...


class TransportPort(Protocol):
    """Operations the core needs from the live messaging session."""

    def own_address(self) -> str:
        ...

    async def reply(self, address: str, text: str) -> None:
        ...

    async def send_text(self, address: str, text: str) -> SentMessage:
        ...

    async def send_media(
        self,
        address: str,
        data: bytes,
        mime_type: str,
        caption: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> SentMessage:
        ...
