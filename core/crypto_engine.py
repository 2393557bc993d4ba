# crypto_engine.py
# AES-256-GCM encryption of file contents under a password-derived key,
# plus the one-way hash used to verify the vault password.

from Crypto.Cipher import AES
from Crypto.Random import get_random_bytes
from hashlib import pbkdf2_hmac, sha256
from typing import Optional
import base64
import binascii
import json

from core import config
from core.errors import DecryptionError

ENVELOPE_VERSION = 1
ALGORITHM = 'AES-256-GCM'
KDF = 'pbkdf2-sha256'


class CryptoEngine:
    def __init__(self, key: bytes, mode=AES.MODE_GCM):
        self.key = key
        self.mode = mode

    def encrypt(self, data: bytes, nonce: Optional[bytes] = None) -> dict:
        if nonce is None:
            nonce = get_random_bytes(config.NONCE_SIZE)
        cipher = AES.new(self.key, self.mode, nonce=nonce)
        ciphertext, tag = cipher.encrypt_and_digest(data)
        return {
            'ciphertext': ciphertext,
            'nonce': cipher.nonce,
            'tag': tag
        }

    def decrypt(self, enc_dict: dict) -> bytes:
        cipher = AES.new(self.key, self.mode, nonce=enc_dict['nonce'])
        return cipher.decrypt_and_verify(enc_dict['ciphertext'], enc_dict['tag'])


def derive_key(password: str, salt: bytes, iterations: int) -> bytes:
    return pbkdf2_hmac('sha256', password.encode('utf-8'), salt, iterations, dklen=config.KEY_SIZE)


def encrypt(plaintext: bytes, password: str, iterations: Optional[int] = None) -> str:
    """Encrypt `plaintext` and return a text envelope safe to store as a string.

    Every call uses a fresh salt and nonce, so encrypting the same bytes twice
    gives different envelopes. The iteration count is recorded in the envelope.
    """
    iterations = iterations or config.PBKDF2_ITERATIONS
    salt = get_random_bytes(config.SALT_SIZE)
    engine = CryptoEngine(derive_key(password, salt, iterations))
    enc = engine.encrypt(bytes(plaintext))
    envelope = {
        'v': ENVELOPE_VERSION,
        'alg': ALGORITHM,
        'kdf': KDF,
        'iter': iterations,
        'salt': salt.hex(),
        'nonce': enc['nonce'].hex(),
        'tag': enc['tag'].hex(),
        'ct': base64.b64encode(enc['ciphertext']).decode('ascii')
    }
    return json.dumps(envelope, separators=(',', ':'))


def _parse_envelope(cipher_text: str) -> dict:
    try:
        envelope = json.loads(cipher_text)
    except (TypeError, ValueError) as e:
        raise DecryptionError('Cipher payload is not a valid envelope') from e
    if not isinstance(envelope, dict):
        raise DecryptionError('Cipher payload is not a valid envelope')
    if envelope.get('v') != ENVELOPE_VERSION or envelope.get('alg') != ALGORITHM or envelope.get('kdf') != KDF:
        raise DecryptionError('Unsupported cipher payload format')
    try:
        iterations = int(envelope['iter'])
        if not 0 < iterations <= config.PBKDF2_MAX_ITERATIONS:
            raise ValueError('iteration count out of range')
        return {
            'iter': iterations,
            'salt': bytes.fromhex(envelope['salt']),
            'nonce': bytes.fromhex(envelope['nonce']),
            'tag': bytes.fromhex(envelope['tag']),
            'ciphertext': base64.b64decode(envelope['ct'], validate=True)
        }
    except (KeyError, TypeError, ValueError, binascii.Error) as e:
        raise DecryptionError('Cipher payload is corrupt') from e


def decrypt(cipher_text: str, password: str) -> bytes:
    """Decrypt an envelope produced by `encrypt`.

    Raises DecryptionError if the password is wrong or the payload has been
    truncated, tampered with, or is not a vault envelope at all.
    """
    parts = _parse_envelope(cipher_text)
    engine = CryptoEngine(derive_key(password, parts['salt'], parts['iter']))
    try:
        return engine.decrypt(parts)
    except (ValueError, KeyError) as e:
        # pycryptodome raises ValueError for a MAC mismatch and for bad nonce/tag lengths
        raise DecryptionError('Could not decrypt file. Password may be incorrect.') from e


def hash_password(password: str) -> str:
    return sha256(password.encode('utf-8')).hexdigest()


def is_valid_password(password: str) -> bool:
    if not isinstance(password, str):
        return False
    return config.PASSWORD_MIN_LENGTH <= len(password) <= config.PASSWORD_MAX_LENGTH
