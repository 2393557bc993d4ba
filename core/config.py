# config.py
# Vault settings. Anything deployment specific is read from the environment.
import os

# Storage
DB_PATH = os.getenv('VAULT_DB_PATH') or os.getenv('SQLITE_DB_PATH', 'vault.db')
PASSWORD_HASH_KEY = 'vault_password_hash'
RECORD_FORMAT_VERSION = 1

# Crypto
PBKDF2_ITERATIONS = int(os.getenv('VAULT_PBKDF2_ITERATIONS', '200000'))
PBKDF2_MAX_ITERATIONS = max(10 * PBKDF2_ITERATIONS, 2_000_000)  # ceiling accepted when decrypting
SALT_SIZE = 16
NONCE_SIZE = 12
KEY_SIZE = 32  # AES-256
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 20

# Session
AUTO_LOCK_SECONDS = int(os.getenv('VAULT_AUTO_LOCK_SECONDS', '0'))  # 0 disables auto-lock

# Quota
MB = 1024 * 1024
PRIVILEGED_ROLE_LIMIT = 25 * MB

LOG_LEVEL = os.getenv('VAULT_LOG_LEVEL', 'WARNING')
