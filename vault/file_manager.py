# vault/file_manager.py
# Durable store for encrypted file records. Holds no key material; every
# record it sees is already encrypted.
import asyncio
import logging
from dataclasses import dataclass, asdict
from typing import List, Optional

from core import config
from core.db import DB

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VaultRecord:
    """One encrypted file as stored in the vault."""
    id: str
    name: str
    plain_size: int
    cipher_size: int
    mime_type: str
    uploaded_at: str
    cipher_payload: str
    format_version: int = config.RECORD_FORMAT_VERSION

    def to_row(self) -> dict:
        return asdict(self)

    @classmethod
    def from_row(cls, row: dict) -> 'VaultRecord':
        return cls(
            id=row['id'],
            name=row['name'],
            plain_size=int(row['plain_size']),
            cipher_size=int(row['cipher_size']),
            mime_type=row['mime_type'] or '',
            uploaded_at=row['uploaded_at'],
            cipher_payload=row['cipher_payload'],
            format_version=int(row.get('format_version') or config.RECORD_FORMAT_VERSION),
        )

    def summary(self) -> dict:
        """Record metadata without the cipher payload."""
        row = self.to_row()
        del row['cipher_payload']
        return row


class ObjectStore:
    """Async CRUD over the `files` table.

    Each call runs a single SQLite transaction on a worker thread with its own
    connection. Failures surface as StorageError and are never retried here.
    """

    def __init__(self, db: Optional[DB] = None):
        self.db = db or DB()

    async def put(self, record: VaultRecord) -> None:
        await asyncio.to_thread(self.db.store_file, record.to_row())
        logger.debug("Stored record %s (%d bytes)", record.id, record.plain_size)

    async def get(self, record_id: str) -> Optional[VaultRecord]:
        row = await asyncio.to_thread(self.db.get_file, record_id)
        return VaultRecord.from_row(row) if row else None

    async def list_all(self) -> List[VaultRecord]:
        rows = await asyncio.to_thread(self.db.list_files)
        return [VaultRecord.from_row(r) for r in rows]

    async def delete(self, record_id: str) -> None:
        await asyncio.to_thread(self.db.delete_file, record_id)

    async def total_plain_bytes(self) -> int:
        return await asyncio.to_thread(self.db.total_plain_size)

    async def clear(self) -> None:
        await asyncio.to_thread(self.db.delete_all_files)
        logger.info("Vault store cleared")
