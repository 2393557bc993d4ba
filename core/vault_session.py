import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple, Union

from core import config, crypto_engine
from core.db import DB
from core.errors import (AccessDeniedError, AlreadyInitialized, AuthenticationError,
                         NotFoundError, QuotaExceededError, ValidationError, VaultError,
                         VaultStateError)
from core.key_manager import KeyManager
from core.quota import Role, can_access, format_size, limit_for
from vault.file_manager import ObjectStore, VaultRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Uninitialized:
    name = 'uninitialized'


@dataclass(frozen=True)
class Locked:
    name = 'locked'


@dataclass(frozen=True)
class Unlocked:
    name = 'unlocked'
    password: str = field(repr=False)
    unlocked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


VaultState = Union[Uninitialized, Locked, Unlocked]


@dataclass(frozen=True)
class VaultUsage:
    used: int
    limit: int
    percent: float
    remaining: int

    def describe(self) -> str:
        return f'{format_size(self.used)} of {format_size(self.limit)} used ({self.percent:.1f}%)'


@dataclass
class UploadResult:
    name: str
    record: Optional[VaultRecord] = None
    error: Optional[VaultError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def new_record_id() -> str:
    return f'vault-{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}'


class VaultSession:
    """Lifecycle controller for the local encrypted vault.

    The state is one of Uninitialized, Locked or Unlocked(password) and is
    never persisted; a new session starts Locked if a password hash exists and
    Uninitialized otherwise. The password lives only inside the Unlocked state
    and is dropped by lock(). There is no recovery path: a forgotten password
    means the stored files cannot be decrypted.

    The quota check in upload() re-reads the store's total before every file
    but is not atomic with the write, so concurrent upload() calls can overshoot
    the quota by the size of the files in flight. upload_many() processes its
    files one at a time and does not have this problem.
    """

    def __init__(self, db: Optional[DB] = None, store: Optional[ObjectStore] = None,
                 iterations: Optional[int] = None, auto_lock_seconds: Optional[int] = None):
        self.db = db or DB()
        self.db.init_db()
        self.key_manager = KeyManager(self.db)
        self.store = store or ObjectStore(self.db)
        self.iterations = iterations
        self.auto_lock_seconds = config.AUTO_LOCK_SECONDS if auto_lock_seconds is None else auto_lock_seconds
        self._auto_lock_timer = None
        self._state: VaultState = Locked() if self.key_manager.password_is_set_sync() else Uninitialized()

    @property
    def state(self) -> VaultState:
        return self._state

    @property
    def is_set_up(self) -> bool:
        return not isinstance(self._state, Uninitialized)

    @property
    def is_unlocked(self) -> bool:
        return isinstance(self._state, Unlocked)

    # Lifecycle

    async def setup(self, password: str, confirm: str) -> None:
        if self.is_set_up:
            raise AlreadyInitialized('Vault is already set up')
        if not crypto_engine.is_valid_password(password):
            raise ValidationError(
                f'Password must be {config.PASSWORD_MIN_LENGTH}-{config.PASSWORD_MAX_LENGTH} characters')
        if password != confirm:
            raise ValidationError('Passwords do not match')
        try:
            await self.key_manager.set_password(password)
        except AlreadyInitialized:
            # another session created the vault since this one started
            self._state = Locked()
            raise
        self._state = Unlocked(password)
        self._arm_auto_lock()
        logger.info("Vault created and unlocked")

    async def unlock(self, password: str) -> None:
        if isinstance(self._state, Uninitialized):
            raise VaultStateError('Vault has not been set up')
        if isinstance(self._state, Unlocked):
            raise VaultStateError('Vault is already unlocked')
        if not await self.key_manager.verify_password(password):
            logger.warning("Vault unlock failed: incorrect password")
            raise AuthenticationError('Incorrect vault password')
        self._state = Unlocked(password)
        self._arm_auto_lock()
        logger.info("Vault unlocked")

    def lock(self) -> None:
        if not isinstance(self._state, Unlocked):
            raise VaultStateError('Vault is not unlocked')
        self._cancel_auto_lock()
        self._state = Locked()
        logger.info("Vault locked")

    def _require_unlocked(self) -> str:
        state = self._state
        if not isinstance(state, Unlocked):
            raise VaultStateError(f'Vault is {state.name}')
        self._arm_auto_lock()
        return state.password

    # Auto-lock

    def _arm_auto_lock(self):
        if self.auto_lock_seconds <= 0:
            return
        self._cancel_auto_lock()
        loop = asyncio.get_running_loop()
        self._auto_lock_timer = loop.call_later(self.auto_lock_seconds, self._auto_lock)

    def _cancel_auto_lock(self):
        if self._auto_lock_timer:
            self._auto_lock_timer.cancel()
            self._auto_lock_timer = None

    def _auto_lock(self):
        self._auto_lock_timer = None
        state = self._state
        if isinstance(state, Unlocked):
            logger.info("Vault auto-locked after %ss of inactivity (unlocked since %s)",
                        self.auto_lock_seconds, state.unlocked_at.isoformat())
            self.lock()

    # File operations

    async def upload(self, role, name: str, mime_type: str, plaintext: bytes) -> VaultRecord:
        password = self._require_unlocked()
        data = bytes(plaintext)
        limit = limit_for(role)
        if limit <= 0:
            logger.warning("Upload of %r rejected: role %s has no vault storage", name, Role.parse(role).value)
            raise QuotaExceededError(f'Role has no vault storage; cannot upload {name}',
                                     used=0, limit=0, requested=len(data))
        # re-read on every call; a cached total goes stale as soon as anything is written
        used = await self.store.total_plain_bytes()
        if used + len(data) > limit:
            logger.warning("Upload of %r rejected: %d + %d bytes exceeds limit %d", name, used, len(data), limit)
            raise QuotaExceededError(
                f'Cannot upload {name}. You have {format_size(max(limit - used, 0))} remaining.',
                used=used, limit=limit, requested=len(data))

        cipher_payload = await asyncio.to_thread(crypto_engine.encrypt, data, password, self.iterations)
        record = VaultRecord(
            id=new_record_id(),
            name=name,
            plain_size=len(data),
            cipher_size=len(cipher_payload),
            mime_type=mime_type or '',
            uploaded_at=datetime.now(timezone.utc).isoformat(),
            cipher_payload=cipher_payload,
        )
        await self.store.put(record)
        logger.info("Encrypted and stored %r as %s", name, record.id)
        return record

    async def upload_many(self, role, files: Iterable[Tuple[str, str, bytes]]) -> List[UploadResult]:
        """Upload (name, mime_type, data) tuples one after another.

        A file that fails (over quota, storage or crypto error) is reported in
        its result and the remaining files are still attempted.
        """
        self._require_unlocked()
        results = []
        for name, mime_type, data in files:
            try:
                record = await self.upload(role, name, mime_type, data)
            except VaultStateError:
                raise
            except VaultError as e:
                results.append(UploadResult(name, error=e))
                continue
            results.append(UploadResult(name, record=record))
        return results

    def _check_access(self, role):
        if role is not None and not can_access(role):
            raise AccessDeniedError(f'Role {Role.parse(role).value} has no vault access')

    async def list_files(self, role=None) -> List[VaultRecord]:
        self._check_access(role)
        if isinstance(self._state, Uninitialized):
            raise VaultStateError('Vault has not been set up')
        if isinstance(self._state, Unlocked):
            self._arm_auto_lock()
        return await self.store.list_all()

    async def download(self, record_id: str, role=None) -> bytes:
        self._check_access(role)
        password = self._require_unlocked()
        record = await self.store.get(record_id)
        if record is None:
            raise NotFoundError(f'No vault file with id {record_id}')
        plaintext = await asyncio.to_thread(crypto_engine.decrypt, record.cipher_payload, password)
        logger.info("Decrypted %s", record_id)
        return plaintext

    async def delete(self, record_id: str, role=None) -> None:
        self._check_access(role)
        self._require_unlocked()
        await self.store.delete(record_id)
        logger.info("Deleted %s", record_id)

    async def usage(self, role) -> VaultUsage:
        used = await self.store.total_plain_bytes()
        limit = limit_for(role)
        percent = min(used / limit * 100, 100.0) if limit > 0 else 0.0
        return VaultUsage(used=used, limit=limit, percent=percent, remaining=max(limit - used, 0))
