import json
import os
import time

import pytest

import core.crypto_engine as crypto_engine
from core.errors import DecryptionError

ITERATIONS = 1000


def test_encrypt_decrypt_roundtrip():
    for size in (1, 15, 16, 17, 4096, 100_003):
        data = os.urandom(size)
        enc = crypto_engine.encrypt(data, 'correcthorse', ITERATIONS)
        assert isinstance(enc, str)
        assert crypto_engine.decrypt(enc, 'correcthorse') == data


def test_empty_buffer_roundtrip():
    enc = crypto_engine.encrypt(b'', 'correcthorse', ITERATIONS)
    assert crypto_engine.decrypt(enc, 'correcthorse') == b''


def test_same_input_gives_different_envelopes():
    a = crypto_engine.encrypt(b'same bytes', 'correcthorse', ITERATIONS)
    b = crypto_engine.encrypt(b'same bytes', 'correcthorse', ITERATIONS)
    assert a != b


def test_envelope_does_not_contain_plaintext():
    secret = b'quarterly-figures-DO-NOT-SHARE'
    enc = crypto_engine.encrypt(secret, 'correcthorse', ITERATIONS)
    assert secret.decode() not in enc
    assert 'correcthorse' not in enc
    assert json.loads(enc)['iter'] == ITERATIONS


def test_wrong_password_fails():
    enc = crypto_engine.encrypt(os.urandom(1000), 'correcthorse', ITERATIONS)
    with pytest.raises(DecryptionError):
        crypto_engine.decrypt(enc, 'wrongpass')


def test_tampered_ciphertext_fails():
    enc = json.loads(crypto_engine.encrypt(b'x' * 64, 'correcthorse', ITERATIONS))
    enc['tag'] = ('00' if enc['tag'][:2] != '00' else 'ff') + enc['tag'][2:]
    with pytest.raises(DecryptionError):
        crypto_engine.decrypt(json.dumps(enc), 'correcthorse')


@pytest.mark.parametrize('payload', [
    '',
    'not json',
    '[]',
    '{"v": 99}',
    '{"v": 1, "alg": "AES-256-GCM", "kdf": "pbkdf2-sha256"}',
])
def test_malformed_envelope_fails(payload):
    with pytest.raises(DecryptionError):
        crypto_engine.decrypt(payload, 'correcthorse')


def test_truncated_envelope_fails():
    enc = crypto_engine.encrypt(os.urandom(256), 'correcthorse', ITERATIONS)
    with pytest.raises(DecryptionError):
        crypto_engine.decrypt(enc[:len(enc) // 2], 'correcthorse')


def test_hash_password_is_deterministic():
    assert crypto_engine.hash_password('correcthorse') == crypto_engine.hash_password('correcthorse')
    assert crypto_engine.hash_password('correcthorse') != crypto_engine.hash_password('correcthorsf')
    digest = crypto_engine.hash_password('correcthorse')
    assert len(digest) == 64
    assert 'correcthorse' not in digest


def test_password_length_bounds():
    assert not crypto_engine.is_valid_password('a' * 7)
    assert crypto_engine.is_valid_password('a' * 8)
    assert crypto_engine.is_valid_password('a' * 20)
    assert not crypto_engine.is_valid_password('a' * 21)
    assert crypto_engine.is_valid_password('пароль🔒 с пробелом')
    assert not crypto_engine.is_valid_password(None)


@pytest.mark.parametrize('iterations', [0, -5, 20_000_000, 10 ** 12])
def test_out_of_range_iteration_count_is_rejected_quickly(iterations):
    enc = json.loads(crypto_engine.encrypt(b'y' * 32, 'correcthorse', ITERATIONS))
    enc['iter'] = iterations
    start = time.monotonic()
    with pytest.raises(DecryptionError):
        crypto_engine.decrypt(json.dumps(enc), 'correcthorse')
    assert time.monotonic() - start < 1.0
