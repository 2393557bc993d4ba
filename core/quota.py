# quota.py
# Per-role storage ceilings for the vault.
import enum

from core import config


class Role(enum.Enum):
    ADMIN = 'admin'
    FINANCE = 'finance'
    AUDITOR = 'auditor'
    UNKNOWN = 'unknown'

    @classmethod
    def parse(cls, value):
        """Map a role string from the identity layer onto a Role.

        Anything unrecognised becomes UNKNOWN, which has no storage at all.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN
        try:
            role = cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN
        return role


ROLE_LIMITS = {
    Role.ADMIN: config.PRIVILEGED_ROLE_LIMIT,
    Role.FINANCE: config.PRIVILEGED_ROLE_LIMIT,
    Role.AUDITOR: 0,  # read-only role, no vault access
    Role.UNKNOWN: 0,
}


def limit_for(role) -> int:
    return ROLE_LIMITS.get(Role.parse(role), 0)


def can_access(role) -> bool:
    return limit_for(role) > 0


def format_size(num_bytes: int) -> str:
    if num_bytes <= 0:
        return '0 B'
    units = ['B', 'KB', 'MB', 'GB']
    value = float(num_bytes)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f'{round(value, 2):g} {units[i]}'
