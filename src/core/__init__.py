"""Core domain package for chatledger.

Core contains classification, registration, deduplication and recording
logic without any Telegram or storage-specific code, keeping the message
handling portable across transports and backends.
"""
