from __future__ import annotations

import pytest

from core.config import PhoneConfig
from core.errors import InvalidPhoneNumber
from core.phone import CanonicalPhone, canonical_address, is_peer_address, normalize_phone


def test_ten_digits_get_default_country_code() -> None:
    phone = normalize_phone("9876543210")
    assert phone.country_code == "91"
    assert phone.subscriber == "9876543210"
    assert phone.address == "919876543210"


def test_plus_prefixed_us_number_splits_on_recognized_prefix() -> None:
    phone = normalize_phone("+14155550123")
    assert phone.country_code == "1"
    assert phone.subscriber == "4155550123"


def test_full_indian_number_splits_on_recognized_prefix() -> None:
    phone = normalize_phone("919876543210")
    assert phone.country_code == "91"
    assert phone.subscriber == "9876543210"


def test_punctuation_is_ignored() -> None:
    assert canonical_address("+91 (98765) 43-210") == "919876543210"
    assert canonical_address("+1 415.555.0123") == "14155550123"


def test_other_recognized_prefixes() -> None:
    assert normalize_phone("+86 139 1234 5678").country_code == "86"
    uk = normalize_phone("447911123456")
    assert uk.country_code == "44"
    assert uk.subscriber == "7911123456"


def test_unrecognized_long_number_keeps_last_ten_digits() -> None:
    phone = normalize_phone("+33 61 234 567 890")
    assert phone.country_code == "336"
    assert phone.subscriber == "1234567890"


def test_short_number_has_empty_prefix() -> None:
    phone = normalize_phone("12345")
    assert phone.country_code == ""
    assert phone.subscriber == "12345"


def test_equivalent_inputs_share_an_address() -> None:
    variants = ["9876543210", "+91 9876543210", "919876543210", "(+91) 98765-43210"]
    assert {canonical_address(value) for value in variants} == {"919876543210"}


def test_normalization_is_idempotent() -> None:
    for raw in ["9876543210", "+14155550123", "12345", "+33612345678"]:
        address = canonical_address(raw)
        assert canonical_address(address) == address


def test_custom_default_country_code() -> None:
    config = PhoneConfig(default_country_code="1", country_lengths={"1": 11})
    assert canonical_address("4155550123", config) == "14155550123"


@pytest.mark.parametrize("raw", ["", "   ", "+-()", "alice"])
def test_inputs_without_digits_are_rejected(raw: str) -> None:
    with pytest.raises(InvalidPhoneNumber):
        normalize_phone(raw)


def test_letters_and_labels_are_stripped() -> None:
    assert canonical_address("Tel: +91 98765 43210") == "919876543210"
    assert normalize_phone("98765abc10") == CanonicalPhone("", "9876510")


def test_peer_addresses_pass_through_canonical_address() -> None:
    assert canonical_address("peer:12345") == "peer:12345"
    assert is_peer_address("peer:12345")
    assert not is_peer_address("919876543210")
