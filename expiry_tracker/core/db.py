"""
SQLite foundation for the persistent key-value store.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator

from . import config as config_module


@contextmanager
def get_db(db_path: str = None) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection.

    Autocommit mode; callers that need atomic read-modify-write open their
    own ``BEGIN IMMEDIATE`` transaction.
    """
    conn = sqlite3.connect(db_path or config_module.DB_PATH, timeout=30, isolation_level=None)
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: str = None):
    """Initialize the database with required tables."""
    config_module.ensure_db_directory(db_path)
    with get_db(db_path) as conn:
        cursor = conn.cursor()

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value BLOB NOT NULL,
                expires_at REAL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        # Expired rows are swept lazily; the index keeps the sweep cheap
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_kv_store_expires_at ON kv_store(expires_at)')


def health_check(db_path: str = None):
    """Check database health."""
    try:
        with get_db(db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
            table_names = [table[0] for table in cursor.fetchall()]
            return 'kv_store' in table_names
    except sqlite3.Error:
        return False
