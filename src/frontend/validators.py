"""Validation helpers for console input."""

from __future__ import annotations

from dataclasses import dataclass

from core.config import PhoneConfig
from core.errors import InvalidPhoneNumber
from core.phone import normalize_phone


@dataclass
class PhoneInputInfo:
    address: str | None
    country_code: str | None
    subscriber: str | None
    error: str | None = None


def parse_phone_input(raw_value: str, config: PhoneConfig | None = None) -> PhoneInputInfo:
    raw_value = raw_value.strip()
    if not raw_value:
        return PhoneInputInfo(None, None, None, "phone number is required")

    try:
        phone = normalize_phone(raw_value, config)
    except InvalidPhoneNumber:
        return PhoneInputInfo(None, None, None, "phone number must contain digits")

    if not phone.country_code:
        return PhoneInputInfo(None, None, phone.subscriber, "phone number is too short")
    return PhoneInputInfo(phone.address, phone.country_code, phone.subscriber)
