"""Assembly of storage, transport, and service around a Telethon client."""

from __future__ import annotations

import settings
from adapters.file_blob_store import FileBlobStore
from adapters.sqlite_storage import SQLiteStorage
from adapters.telegram_transport import TelegramTransport
from core.service import MessagingService


def build_storage() -> SQLiteStorage:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    return storage


async def start_service(client) -> tuple[TelegramTransport, MessagingService]:
    """Wire storage, transport, and service around an authorized client."""

    transport = TelegramTransport(client, settings.PHONE)
    await transport.connect()
    service = MessagingService(
        transport=transport,
        storage=build_storage(),
        blob_store=FileBlobStore(settings.MEDIA.directory, settings.MEDIA.public_base_url),
        phone_config=settings.PHONE,
        dedup_config=settings.DEDUP,
        registration_config=settings.REGISTRATION,
    )
    await service.start()
    transport.attach(service)
    return transport, service


async def stop_service(transport: TelegramTransport, service: MessagingService) -> None:
    transport.detach()
    await service.stop()
