# key_manager.py
# Handles the persisted password hash: creation at setup and verification on unlock.

import asyncio
import hmac
import logging
from typing import Optional

from core import config
from core.crypto_engine import hash_password
from core.db import DB
from core.errors import AlreadyInitialized

logger = logging.getLogger(__name__)


class KeyManager:
    """Owns the single durable slot holding the vault password hash.

    Only the SHA-256 digest of the password is stored. The slot is written
    once and never updated; there is no way to recover or replace the
    password through this class.
    """

    def __init__(self, db: DB, slot: Optional[str] = None):
        self.db = db
        self.slot = slot or config.PASSWORD_HASH_KEY

    def _stored_hash(self) -> Optional[str]:
        return self.db.get_meta(self.slot)

    def password_is_set_sync(self) -> bool:
        return bool(self._stored_hash())

    async def password_is_set(self) -> bool:
        return await asyncio.to_thread(self.password_is_set_sync)

    async def set_password(self, password: str) -> None:
        digest = hash_password(password)
        written = await asyncio.to_thread(self.db.insert_meta, self.slot, digest)
        if not written:
            raise AlreadyInitialized('Vault password has already been set')
        logger.info("Vault password hash stored")

    async def verify_password(self, password: str) -> bool:
        expected = await asyncio.to_thread(self._stored_hash)
        if not expected:
            return False
        return hmac.compare_digest(hash_password(password), expected)
