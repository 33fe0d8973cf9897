"""Deduplication helpers (core domain)."""

from __future__ import annotations

import logging

LOGGER = logging.getLogger(__name__)


class DedupCache:
    """Bounded set of recently seen transport event ids.

    The transport only redelivers recent events, so once the set reaches its
    threshold it is cleared in one step instead of tracking recency. A clear
    re-admits old ids as new; the unique index on ``message_id`` in storage
    still rejects them, so the cache only saves redundant work.
    """

    def __init__(self, threshold: int = 2000) -> None:
        if threshold < 1:
            raise ValueError("Dedup threshold must be positive")
        self._threshold = threshold
        self._ids: dict[str, None] = {}

    def seen(self, event_id: str) -> bool:
        """Report whether ``event_id`` was seen, recording it if not."""

        if len(self._ids) >= self._threshold:
            LOGGER.info("Dedup cache reached %s ids, clearing", len(self._ids))
            self._ids.clear()

        if event_id in self._ids:
            return True
        self._ids[event_id] = None
        return False

    def size(self) -> int:
        return len(self._ids)
