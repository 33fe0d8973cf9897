"""Static configuration for chatledger.

All user-editable settings (phone rules, dedup, registration, media, contact
aliases, logging) live in a single JSON file for quick edits without
touching Python. Secrets stay in the environment (see session.py).
"""

import json
import os

from core.config import DedupConfig, MediaConfig, PhoneConfig, RegistrationConfig, DEFAULT_COUNTRY_LENGTHS
from core.errors import InvalidPhoneNumber
from core.phone import canonical_address

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.environ.get("CHATLEDGER_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _project_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


def _normalize_contacts(raw_contacts: list[dict], phone_config: PhoneConfig) -> dict[str, str]:
    """Build an alias map keyed by canonical address."""

    aliases: dict[str, str] = {}
    for entry in raw_contacts:
        phone = entry.get("phone")
        alias = entry.get("alias")
        if not phone or not alias:
            continue
        try:
            aliases[canonical_address(str(phone), phone_config)] = alias
        except InvalidPhoneNumber:
            continue
    return aliases


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Phone normalization: default country code for bare 10-digit numbers and
# the table of recognized country codes with their total digit counts.
_phone = _CONFIG.get("phone", {})
PHONE = PhoneConfig(
    default_country_code=str(_phone.get("default_country_code", "91")),
    country_lengths={
        str(prefix): int(length)
        for prefix, length in (_phone.get("country_lengths") or DEFAULT_COUNTRY_LENGTHS).items()
    },
)

# In-memory dedup high-water mark; the cache clears itself when reached.
_dedup = _CONFIG.get("dedup", {})
DEDUP = DedupConfig(threshold=int(_dedup.get("threshold", 2000)))

_registration = _CONFIG.get("registration", {})
REGISTRATION = RegistrationConfig(
    command_prefix=_registration.get("command_prefix", "register "),
    credential_length=int(_registration.get("credential_length", 4)),
    credential_ttl_minutes=int(_registration.get("credential_ttl_minutes", 10)),
    reply_template=_registration.get("reply_template", RegistrationConfig.reply_template),
)

_media = _CONFIG.get("media", {})
MEDIA = MediaConfig(
    directory=_project_path(_media.get("directory", "media")),
    public_base_url=_media.get("public_base_url"),
)

# Where to store the SQLite database.
DB_PATH = _project_path(_CONFIG.get("storage", {}).get("db_path", "chatledger.db"))

# Contact aliases are display-only; they never change stored addresses.
CONTACT_ALIASES = _normalize_contacts(_CONFIG.get("contacts", []), PHONE)

_console = _CONFIG.get("console", {})
HISTORY_LIMIT = int(_console.get("history_limit", 100))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
