"""SQLite storage adapter.

Implements the core StoragePort using a simple SQLite database. Several
processes may share one database file; the unique index on
``messages.message_id`` and the primary key on
``registrations.canonical_phone`` are what keep them from double-writing.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Optional

from core.errors import PersistenceError
from core.models import (
    Attachment,
    CreateResult,
    Direction,
    InsertResult,
    Message,
    RegistrationRecord,
)

LOGGER = logging.getLogger(__name__)


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the StoragePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._last_created_at: Optional[datetime] = None

    def _connect(self) -> sqlite3.Connection:
        # A generous timeout lets a second instance wait out a writer's lock.
        conn = sqlite3.connect(self._db_path, timeout=10)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - messages: append-only log of canonical messages
        - registrations: one row per registered phone
        """

        with self._connect() as conn:
            # messages keeps every recorded message exactly once.
            # Fields:
            # - id: auto-increment primary key, the insertion order for reads
            # - message_id: transport id, unique (idempotency key)
            # - direction: "I" inbound or "O" outbound
            # - sender/receiver: canonical addresses
            # - body: text or caption, nullable
            # - attachment_name/attachment_locator/attachment_type: media metadata
            # - created_at: insertion timestamp (UTC, ISO 8601)
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    message_id TEXT NOT NULL,
                    direction TEXT NOT NULL,
                    sender TEXT,
                    receiver TEXT,
                    body TEXT,
                    attachment_name TEXT,
                    attachment_locator TEXT,
                    attachment_type TEXT,
                    created_at TIMESTAMP NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS messages_message_id_key ON messages (message_id)"
            )
            conn.execute("CREATE INDEX IF NOT EXISTS messages_sender_idx ON messages (sender)")
            conn.execute("CREATE INDEX IF NOT EXISTS messages_receiver_idx ON messages (receiver)")
            # registrations is keyed on the canonical phone; the split parts
            # are kept for consumers that need country code and number apart.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS registrations (
                    canonical_phone TEXT PRIMARY KEY,
                    country_code TEXT NOT NULL,
                    subscriber_number TEXT NOT NULL,
                    display_name TEXT NOT NULL,
                    credential_plain TEXT NOT NULL,
                    credential_expires_at TIMESTAMP NOT NULL,
                    active INTEGER NOT NULL DEFAULT 1,
                    created_at TIMESTAMP NOT NULL
                )
                """
            )

    def _next_created_at(self, created_at: datetime) -> datetime:
        # Wall clocks can step backwards; keep insertion timestamps monotone.
        if self._last_created_at is not None and created_at < self._last_created_at:
            created_at = self._last_created_at
        self._last_created_at = created_at
        return created_at

    def insert_message(self, message: Message) -> InsertResult:
        """Insert a message once; a repeated message_id is a benign duplicate."""

        attachment = message.attachment
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO messages (
                        message_id,
                        direction,
                        sender,
                        receiver,
                        body,
                        attachment_name,
                        attachment_locator,
                        attachment_type,
                        created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        message.message_id,
                        message.direction.value,
                        message.sender,
                        message.receiver,
                        message.body,
                        attachment.stored_name if attachment else None,
                        attachment.stored_locator if attachment else None,
                        attachment.mime_type if attachment else None,
                        self._next_created_at(message.created_at).isoformat(),
                    ),
                )
        except sqlite3.IntegrityError:
            return InsertResult.DUPLICATE_IGNORED
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to insert message {message.message_id}: {exc}") from exc
        return InsertResult.INSERTED

    def fetch_messages(self, address: Optional[str] = None, limit: int = 100) -> list[Message]:
        """Return messages oldest-first, optionally those involving ``address``."""

        query = "SELECT * FROM messages"
        params: list = []
        if address:
            query += " WHERE sender = ? OR receiver = ?"
            params.extend([address, address])
        query += " ORDER BY id ASC LIMIT ?"
        params.append(int(limit))

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_message(row) for row in rows]

    def count_messages(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM messages").fetchone()
        return int(row["total"])

    def find_registration(self, canonical_phone: str) -> Optional[RegistrationRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM registrations WHERE canonical_phone = ?",
                (canonical_phone,),
            ).fetchone()
        return _row_to_registration(row) if row else None

    def create_registration(self, record: RegistrationRecord) -> CreateResult:
        """Insert a registration unless one exists for the phone already."""

        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO registrations (
                        canonical_phone,
                        country_code,
                        subscriber_number,
                        display_name,
                        credential_plain,
                        credential_expires_at,
                        active,
                        created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.canonical_phone,
                        record.country_code,
                        record.subscriber_number,
                        record.display_name,
                        record.credential_plain,
                        record.credential_expires_at.isoformat(),
                        1 if record.active else 0,
                        record.created_at.isoformat(),
                    ),
                )
        except sqlite3.IntegrityError:
            return CreateResult.ALREADY_EXISTS
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to create registration {record.canonical_phone}: {exc}") from exc
        return CreateResult.CREATED


def _row_to_message(row: sqlite3.Row) -> Message:
    attachment = None
    if row["attachment_name"]:
        attachment = Attachment(
            stored_name=row["attachment_name"],
            stored_locator=row["attachment_locator"],
            mime_type=row["attachment_type"],
        )
    return Message(
        message_id=row["message_id"],
        direction=Direction(row["direction"]),
        sender=row["sender"],
        receiver=row["receiver"],
        body=row["body"],
        attachment=attachment,
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_registration(row: sqlite3.Row) -> RegistrationRecord:
    return RegistrationRecord(
        canonical_phone=row["canonical_phone"],
        country_code=row["country_code"],
        subscriber_number=row["subscriber_number"],
        display_name=row["display_name"],
        credential_plain=row["credential_plain"],
        credential_expires_at=datetime.fromisoformat(row["credential_expires_at"]),
        active=bool(row["active"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )
