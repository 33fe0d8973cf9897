"""Error taxonomy shared by the core and its adapters."""

from __future__ import annotations


class ChatLedgerError(Exception):
    """Base class for all chatledger errors."""


class TransientTransportError(ChatLedgerError):
    """The transport failed to deliver (network drop, session loss).

    Surfaced to callers of send operations; never retried internally.
    """


class TransportNotReady(TransientTransportError):
    """The transport session is not established yet."""


class MediaIngestionFailure(ChatLedgerError):
    """Attachment bytes could not be fetched or stored."""


class InvalidPhoneNumber(ChatLedgerError, ValueError):
    """The input cannot be read as a phone number."""


class PersistenceError(ChatLedgerError):
    """Durable storage failed for a reason other than a duplicate key."""
