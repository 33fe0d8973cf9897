"""Register-by-message workflow (core domain).

A sender registers by texting ``register <name>``. The first valid command
from an unknown phone creates a record holding a short-lived credential and
replies with it on the same channel. Every later command from that phone is
a no-op: there is no rename, refresh, or second credential.

Records are keyed by the canonical address (country code + subscriber
number); both parts are stored alongside it.
"""

from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from core.broadcast import Broadcaster
from core.config import PhoneConfig, RegistrationConfig
from core.errors import InvalidPhoneNumber, TransientTransportError
from core.models import CreateResult, RegisteredEvent, RegistrationRecord
from core.phone import is_peer_address, normalize_phone
from core.ports import StoragePort, TransportPort

LOGGER = logging.getLogger(__name__)

CREDENTIAL_ALPHABET = string.ascii_uppercase
MIN_NAME_LENGTH = 2


class RegistrationOutcome(str, Enum):
    NOT_A_COMMAND = "not_a_command"
    INVALID_NAME = "invalid_name"
    INVALID_PHONE = "invalid_phone"
    ALREADY_REGISTERED = "already_registered"
    REGISTERED = "registered"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_command(text: str, prefix: str) -> Optional[str]:
    """Return the raw name argument if ``text`` is a registration command."""

    stripped = (text or "").strip()
    if not stripped.lower().startswith(prefix.lower()):
        return None
    return stripped[len(prefix):].strip()


def is_valid_name(name: str) -> bool:
    """Letters and whitespace only, at least two characters once trimmed."""

    trimmed = name.strip()
    if len(trimmed) < MIN_NAME_LENGTH:
        return False
    return all(ch.isalpha() or ch.isspace() for ch in trimmed)


def generate_credential(length: int) -> str:
    return "".join(secrets.choice(CREDENTIAL_ALPHABET) for _ in range(length))


class RegistrationEngine:
    """State machine Unknown -> Registered, keyed by canonical phone."""

    def __init__(
        self,
        storage: StoragePort,
        transport: TransportPort,
        broadcaster: Optional[Broadcaster] = None,
        config: Optional[RegistrationConfig] = None,
        phone_config: Optional[PhoneConfig] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._storage = storage
        self._transport = transport
        self._broadcaster = broadcaster
        self._config = config or RegistrationConfig()
        self._phone_config = phone_config or PhoneConfig()
        self._clock = clock

    async def evaluate(self, sender: str, text: str) -> RegistrationOutcome:
        """Run one inbound text through the workflow.

        Invalid names and unreadable phones are ignored silently: no record
        and no reply. The caller records the message either way.
        """

        name = parse_command(text, self._config.command_prefix)
        if name is None:
            return RegistrationOutcome.NOT_A_COMMAND

        if not is_valid_name(name):
            LOGGER.info("Ignoring registration with invalid name from %s", sender)
            return RegistrationOutcome.INVALID_NAME

        if is_peer_address(sender):
            LOGGER.info("Ignoring registration from non-phone address %s", sender)
            return RegistrationOutcome.INVALID_PHONE
        try:
            phone = normalize_phone(sender, self._phone_config)
        except InvalidPhoneNumber:
            LOGGER.info("Ignoring registration from non-phone address %s", sender)
            return RegistrationOutcome.INVALID_PHONE

        if self._storage.find_registration(phone.address) is not None:
            LOGGER.info("Phone %s is already registered, skipping", phone.address)
            return RegistrationOutcome.ALREADY_REGISTERED

        now = self._clock()
        ttl_minutes = self._config.credential_ttl_minutes
        display_name = " ".join(name.split())
        record = RegistrationRecord(
            canonical_phone=phone.address,
            country_code=phone.country_code,
            subscriber_number=phone.subscriber,
            display_name=display_name,
            credential_plain=generate_credential(self._config.credential_length),
            credential_expires_at=now + timedelta(minutes=ttl_minutes),
            active=True,
            created_at=now,
        )
        if self._storage.create_registration(record) is CreateResult.ALREADY_EXISTS:
            # Another instance won the insert; it owns the reply.
            LOGGER.info("Registration for %s created concurrently, skipping", phone.address)
            return RegistrationOutcome.ALREADY_REGISTERED

        reply = self._config.reply_template.format(
            name=display_name,
            code=record.credential_plain,
            minutes=ttl_minutes,
        )
        try:
            await self._transport.reply(sender, reply)
        except TransientTransportError:
            LOGGER.exception("Failed to send credential to %s", phone.address)

        LOGGER.info("Registered %s as %s", phone.address, display_name)
        if self._broadcaster is not None:
            self._broadcaster.publish(RegisteredEvent(phone=phone.address))
        return RegistrationOutcome.REGISTERED

    def verify_credential(self, phone: str, code: str, now: Optional[datetime] = None) -> bool:
        """Check a code against the stored, unexpired credential for ``phone``."""

        if is_peer_address(phone):
            return False
        try:
            address = normalize_phone(phone, self._phone_config).address
        except InvalidPhoneNumber:
            return False
        record = self._storage.find_registration(address)
        if record is None:
            return False
        if not record.is_credential_valid(now or self._clock()):
            return False
        return secrets.compare_digest(record.credential_plain, (code or "").strip().upper())
