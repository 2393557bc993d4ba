# core/db.py
# SQLite helper for the vault: one small key/value table for the password hash
# slot and one table holding the encrypted file records.
import logging
import os
import sqlite3
from contextlib import contextmanager

from core import config
from core.errors import StorageError

logger = logging.getLogger(__name__)

FILE_COLUMNS = ('id', 'name', 'plain_size', 'cipher_size', 'mime_type',
                'uploaded_at', 'cipher_payload', 'format_version')


class DB:
    """SQLite-backed DB stored in a single file (default vault.db).

    Every helper opens its own connection and closes it before returning, so
    no handle outlives a call. Each write runs in its own transaction and is
    rolled back if anything fails part way.
    """

    def __init__(self, db_path=None):
        self.db_path = db_path or config.DB_PATH

    @contextmanager
    def connect(self):
        try:
            directory = os.path.dirname(os.path.abspath(self.db_path))
            os.makedirs(directory, exist_ok=True)
            conn = sqlite3.connect(self.db_path, timeout=30)
        except (sqlite3.Error, OSError) as e:
            logger.error("Could not open vault database %s", self.db_path, exc_info=True)
            raise StorageError(f'Could not open vault database: {e}') from e
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            logger.error("Vault database operation failed", exc_info=True)
            raise StorageError(f'Vault database operation failed: {e}') from e
        finally:
            conn.close()

    def init_db(self):
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute("""
            CREATE TABLE IF NOT EXISTS meta (
                key TEXT PRIMARY KEY,
                value TEXT
            );
            """)
            cur.execute("""
            CREATE TABLE IF NOT EXISTS files (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                plain_size INTEGER NOT NULL,
                cipher_size INTEGER NOT NULL,
                mime_type TEXT,
                uploaded_at TEXT NOT NULL,
                cipher_payload TEXT NOT NULL,
                format_version INTEGER NOT NULL DEFAULT 1
            );
            """)

    # Simple key/value metadata
    def insert_meta(self, key, value):
        """Insert `key` only if it is absent. Returns True if the row was written."""
        with self.connect() as conn:
            cur = conn.execute("INSERT OR IGNORE INTO meta (key, value) VALUES (?,?)", (key, value))
            return cur.rowcount == 1

    def get_meta(self, key):
        with self.connect() as conn:
            row = conn.execute("SELECT value FROM meta WHERE key=?", (key,)).fetchone()
            return row[0] if row else None

    # File record helpers
    def store_file(self, row):
        with self.connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO files ({}) VALUES ({})".format(
                    ', '.join(FILE_COLUMNS), ','.join('?' * len(FILE_COLUMNS))),
                tuple(row[c] for c in FILE_COLUMNS))

    def get_file(self, file_id):
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM files WHERE id=? LIMIT 1", (file_id,)).fetchone()
            return dict(row) if row else None

    def list_files(self):
        with self.connect() as conn:
            rows = conn.execute("SELECT * FROM files ORDER BY uploaded_at DESC").fetchall()
            return [dict(r) for r in rows]

    def delete_file(self, file_id):
        with self.connect() as conn:
            conn.execute("DELETE FROM files WHERE id=?", (file_id,))

    def delete_all_files(self):
        with self.connect() as conn:
            conn.execute("DELETE FROM files")

    def total_plain_size(self):
        with self.connect() as conn:
            row = conn.execute("SELECT COALESCE(SUM(plain_size), 0) FROM files").fetchone()
            return int(row[0])
