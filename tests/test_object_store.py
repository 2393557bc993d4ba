import asyncio
import sqlite3

import pytest

from core.db import DB
from core.errors import StorageError
from vault.file_manager import ObjectStore, VaultRecord


def _record(record_id, size, name='a.txt'):
    return VaultRecord(
        id=record_id,
        name=name,
        plain_size=size,
        cipher_size=size * 2,
        mime_type='text/plain',
        uploaded_at='2026-01-01T00:00:00+00:00',
        cipher_payload='{"ct":"opaque"}',
    )


@pytest.fixture
def store(tmp_path):
    db = DB(db_path=str(tmp_path / 'vault.db'))
    db.init_db()
    return ObjectStore(db)


def test_put_get_roundtrip(store):
    rec = _record('vault-1', 10)
    asyncio.run(store.put(rec))
    assert asyncio.run(store.get('vault-1')) == rec
    assert asyncio.run(store.get('missing')) is None


def test_put_is_idempotent_and_replaces(store):
    asyncio.run(store.put(_record('vault-1', 10)))
    asyncio.run(store.put(_record('vault-1', 10)))
    asyncio.run(store.put(_record('vault-1', 30, name='b.txt')))
    records = asyncio.run(store.list_all())
    assert len(records) == 1
    assert records[0].name == 'b.txt'
    assert asyncio.run(store.total_plain_bytes()) == 30


def test_total_and_delete(store):
    assert asyncio.run(store.total_plain_bytes()) == 0
    asyncio.run(store.put(_record('vault-1', 10)))
    asyncio.run(store.put(_record('vault-2', 25)))
    assert asyncio.run(store.total_plain_bytes()) == 35
    asyncio.run(store.delete('vault-1'))
    asyncio.run(store.delete('vault-1'))
    assert asyncio.run(store.get('vault-1')) is None
    assert [r.id for r in asyncio.run(store.list_all())] == ['vault-2']
    assert asyncio.run(store.total_plain_bytes()) == 25


def test_clear(store):
    asyncio.run(store.put(_record('vault-1', 10)))
    asyncio.run(store.put(_record('vault-2', 10)))
    asyncio.run(store.clear())
    assert asyncio.run(store.list_all()) == []
    assert asyncio.run(store.total_plain_bytes()) == 0


def test_record_keeps_format_version(store):
    asyncio.run(store.put(_record('vault-1', 1)))
    assert asyncio.run(store.get('vault-1')).format_version == 1
    assert 'cipher_payload' not in asyncio.run(store.get('vault-1')).summary()


def test_io_failure_surfaces_as_storage_error(tmp_path):
    # a directory where the database file should be cannot be opened
    bad = tmp_path / 'is_a_dir'
    bad.mkdir()
    store = ObjectStore(DB(db_path=str(bad)))
    with pytest.raises(StorageError):
        asyncio.run(store.list_all())


def test_failed_put_leaves_nothing_visible(store, monkeypatch):
    asyncio.run(store.put(_record('vault-1', 10)))

    def broken_store_file(row):
        with store.db.connect() as conn:
            conn.execute("INSERT INTO files (id, name, plain_size, cipher_size, uploaded_at, cipher_payload) "
                         "VALUES (?,?,?,?,?,?)", (row['id'], row['name'], row['plain_size'],
                                                  row['cipher_size'], row['uploaded_at'], row['cipher_payload']))
            raise sqlite3.OperationalError('disk I/O error')

    monkeypatch.setattr(store.db, 'store_file', broken_store_file)
    with pytest.raises(StorageError):
        asyncio.run(store.put(_record('vault-2', 99)))
    assert asyncio.run(store.get('vault-2')) is None
    assert asyncio.run(store.total_plain_bytes()) == 10
