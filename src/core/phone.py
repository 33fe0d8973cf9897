"""Phone number normalization (core domain).

Every address that crosses the core is reduced to a digit-only canonical
form so messages and registrations join on the same key. The split between
country code and subscriber number is heuristic: it is deterministic for
equivalent inputs, not authoritative for every numbering plan.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from core.config import PhoneConfig
from core.errors import InvalidPhoneNumber

SUBSCRIBER_DIGITS = 10

# Addresses of peers without a visible phone number (see adapters/telegram_mapper.py).
PEER_PREFIX = "peer:"

_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True)
class CanonicalPhone:
    country_code: str
    subscriber: str

    @property
    def address(self) -> str:
        return f"{self.country_code}{self.subscriber}"


def _split_recognized(digits: str, country_lengths: dict[str, int]) -> Optional[CanonicalPhone]:
    # Longest prefix first so "1" never shadows a longer code.
    for prefix in sorted(country_lengths, key=len, reverse=True):
        if digits.startswith(prefix) and len(digits) == country_lengths[prefix]:
            return CanonicalPhone(prefix, digits[len(prefix):])
    return None


def normalize_phone(raw: str, config: Optional[PhoneConfig] = None) -> CanonicalPhone:
    """Return the canonical (country code, subscriber) split for ``raw``.

    Rules, in order:
    - exactly 10 digits: prepend the default country code
    - a recognized prefix with that country's total length: split on it
    - more than 10 digits: leading excess is the prefix, last 10 the subscriber
    - otherwise: the whole string is the subscriber, prefix empty
    """

    config = config or PhoneConfig()
    digits = _NON_DIGITS.sub("", raw or "")
    if not digits:
        raise InvalidPhoneNumber(f"No digits in phone number: {raw!r}")

    if len(digits) == SUBSCRIBER_DIGITS:
        return CanonicalPhone(config.default_country_code, digits)

    recognized = _split_recognized(digits, config.country_lengths)
    if recognized is not None:
        return recognized

    if len(digits) > SUBSCRIBER_DIGITS:
        return CanonicalPhone(digits[:-SUBSCRIBER_DIGITS], digits[-SUBSCRIBER_DIGITS:])

    return CanonicalPhone("", digits)


def is_peer_address(address: str) -> bool:
    return (address or "").startswith(PEER_PREFIX)


def canonical_address(raw: str, config: Optional[PhoneConfig] = None) -> str:
    """Shortcut for ``normalize_phone(raw).address``; peer addresses pass through."""

    if is_peer_address(raw):
        return raw
    return normalize_phone(raw, config).address
