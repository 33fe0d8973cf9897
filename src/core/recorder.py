"""Persistence writer with broadcast-after-insert semantics."""

from __future__ import annotations

import logging

from core.broadcast import Broadcaster
from core.models import InsertResult, Message
from core.ports import StoragePort

LOGGER = logging.getLogger(__name__)


class MessageRecorder:
    """Records a canonical message once and announces it to subscribers.

    The broadcast only follows a new insert, so a duplicate that slipped
    past the in-memory cache (cleared cache, second instance) never reaches
    subscribers twice.
    """

    def __init__(self, storage: StoragePort, broadcaster: Broadcaster) -> None:
        self._storage = storage
        self._broadcaster = broadcaster

    def record(self, message: Message) -> InsertResult:
        result = self._storage.insert_message(message)
        if result is InsertResult.DUPLICATE_IGNORED:
            LOGGER.info("Duplicate message %s ignored", message.message_id)
            return result

        self._broadcaster.publish(message)
        LOGGER.info(
            "Recorded %s message %s (%s -> %s)",
            message.direction.name.lower(),
            message.message_id,
            message.sender,
            message.receiver,
        )
        return result
