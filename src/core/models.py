"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple, Union


class Direction(str, Enum):
    """Message direction relative to the local session."""

    INBOUND = "I"
    OUTBOUND = "O"


class InsertResult(str, Enum):
    """Outcome of an idempotent message insert."""

    INSERTED = "inserted"
    DUPLICATE_IGNORED = "duplicate_ignored"


class CreateResult(str, Enum):
    """Outcome of creating a registration record."""

    CREATED = "created"
    ALREADY_EXISTS = "already_exists"


@dataclass(frozen=True)
class Attachment:
    """Locator metadata for a stored attachment."""

    stored_name: str
    stored_locator: str
    mime_type: str


@dataclass(frozen=True)
class Message:
    """Canonical, append-only message record."""

    message_id: str
    direction: Direction
    sender: str
    receiver: str
    body: Optional[str]
    attachment: Optional[Attachment]
    created_at: datetime

    @property
    def peer(self) -> str:
        """The other party of the conversation, seen from the local session."""

        if self.direction is Direction.INBOUND:
            return self.sender
        return self.receiver


@dataclass(frozen=True)
class RegistrationRecord:
    """Persisted result of a successful registration command."""

    canonical_phone: str
    country_code: str
    subscriber_number: str
    display_name: str
    credential_plain: str
    credential_expires_at: datetime
    active: bool
    created_at: datetime

    def is_credential_valid(self, now: datetime) -> bool:
        return self.active and now < self.credential_expires_at


@dataclass(frozen=True)
class RegisteredEvent:
    """Broadcast when a new phone completes registration."""

    phone: str
    kind: str = "registered"


BroadcastEvent = Union[Message, RegisteredEvent]

# Fetches attachment bytes and their declared MIME type from the transport.
AttachmentFetcher = Callable[[], Awaitable[Tuple[bytes, str]]]


@dataclass(frozen=True)
class DeliveredEvent:
    """A message delivered to the session; inbound, or an echo of our own."""

    event_id: str
    sender: str
    receiver: str
    body: Optional[str]
    has_attachment: bool
    fetch_attachment: Optional[AttachmentFetcher] = None


@dataclass(frozen=True)
class SelfSentEvent:
    """A message the local session itself sent."""

    event_id: str
    sender: str
    receiver: str
    body: Optional[str]
    has_attachment: bool


TransportEvent = Union[DeliveredEvent, SelfSentEvent]


@dataclass(frozen=True)
class SentMessage:
    """What the transport reports back after a successful send."""

    message_id: str
    sender: str
    receiver: str
