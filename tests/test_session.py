from __future__ import annotations

import pytest

import session


class RecordingClient:
    def __init__(self, *args, **kwargs) -> None:
        self.args = args
        self.kwargs = kwargs


def test_client_processes_updates_in_arrival_order(monkeypatch) -> None:
    monkeypatch.setattr(session, "load_dotenv", lambda: None)
    monkeypatch.setattr(session, "TelegramClient", RecordingClient)
    monkeypatch.setenv("API_ID", "12345")
    monkeypatch.setenv("API_HASH", "abcdef")
    monkeypatch.setenv("SESSION_NAME", "test-session")

    client = session.build_client()

    assert client.args == ("test-session", 12345, "abcdef")
    assert client.kwargs == {"sequential_updates": True}


def test_missing_credentials_fail_fast(monkeypatch) -> None:
    monkeypatch.setattr(session, "load_dotenv", lambda: None)
    monkeypatch.delenv("API_ID", raising=False)
    monkeypatch.delenv("API_HASH", raising=False)

    with pytest.raises(RuntimeError, match="API_ID or API_HASH"):
        session.build_client()
