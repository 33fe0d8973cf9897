"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

DEFAULT_COUNTRY_LENGTHS = {"91": 12, "1": 11, "44": 12, "86": 13}


@dataclass(frozen=True)
class PhoneConfig:
    """Phone normalization settings."""

    default_country_code: str = "91"
    # Recognized prefix -> expected total digit count (prefix + subscriber).
    country_lengths: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_COUNTRY_LENGTHS))


@dataclass(frozen=True)
class DedupConfig:
    """In-memory deduplication settings for the classifier."""

    threshold: int = 2000


@dataclass(frozen=True)
class RegistrationConfig:
    """Settings for the register-by-message workflow."""

    command_prefix: str = "register "
    credential_length: int = 4
    credential_ttl_minutes: int = 10
    reply_template: str = "Hi {name}, your verification code is {code}. It expires in {minutes} minutes."


@dataclass(frozen=True)
class MediaConfig:
    """Where ingested attachments are written and how they are addressed."""

    directory: str
    public_base_url: Optional[str] = None
