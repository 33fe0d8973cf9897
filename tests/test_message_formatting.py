from __future__ import annotations

from datetime import datetime, timezone

from adapters.message_formatting import (
    DIRECTION_ARROWS,
    format_address_label,
    format_body,
    message_to_dict,
)
from core.models import Attachment, Direction, Message

ALIASES = {"919876543210": "Front desk"}


def _message(body="hello", attachment=None, direction=Direction.INBOUND) -> Message:
    return Message(
        message_id="42:7",
        direction=direction,
        sender="919876543210" if direction is Direction.INBOUND else "919999999999",
        receiver="919999999999" if direction is Direction.INBOUND else "919876543210",
        body=body,
        attachment=attachment,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def test_address_label_uses_alias_when_known() -> None:
    assert format_address_label("919876543210", ALIASES) == "Front desk (+919876543210)"
    assert format_address_label("14155550123", ALIASES) == "+14155550123"
    assert format_address_label("peer:42", ALIASES) == "peer:42"
    assert format_address_label("", ALIASES) == "unknown"


def test_body_marks_attachments() -> None:
    attachment = Attachment("a.jpg", "/media/a.jpg", "image/jpeg")
    assert format_body(_message(body="look", attachment=attachment)) == "[image/jpeg] /media/a.jpg\nlook"
    assert format_body(_message(body=None)) == "(empty)"


def test_direction_arrows_cover_both_directions() -> None:
    assert DIRECTION_ARROWS[Direction.INBOUND] == "<-"
    assert DIRECTION_ARROWS[Direction.OUTBOUND] == "->"
    assert _message(direction=Direction.OUTBOUND).peer == "919876543210"

def test_message_to_dict_is_flat() -> None:
    row = message_to_dict(_message())
    assert row["direction"] == "I"
    assert row["attachment_locator"] is None
    assert row["created_at"] == "2024-01-01T00:00:00+00:00"
