"""State container for the console's session status."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SessionState:
    ready: bool = False
    own_address: str | None = None
    error: str | None = None
