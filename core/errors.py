# errors.py
# Exception types raised by the vault core.


class VaultError(Exception):
    """Base class for every error the vault reports to its caller."""


class ValidationError(VaultError):
    pass


class AlreadyInitialized(VaultError):
    pass


class AuthenticationError(VaultError):
    pass


class VaultStateError(VaultError):
    """Operation is not allowed in the vault's current lifecycle state."""


class QuotaExceededError(VaultError):
    def __init__(self, message, used=0, limit=0, requested=0):
        super().__init__(message)
        self.used = used
        self.limit = limit
        self.requested = requested

    @property
    def remaining(self):
        return max(self.limit - self.used, 0)


class AccessDeniedError(VaultError):
    pass


class NotFoundError(VaultError):
    pass


class DecryptionError(VaultError):
    pass


class StorageError(VaultError):
    pass
