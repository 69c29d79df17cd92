"""
Database setup - schema creation and connection helpers for SQLite.
Thin IO layer, idempotent and safe to call repeatedly.
"""

import sqlite3
from pathlib import Path


def init_database(conn: sqlite3.Connection) -> None:
    """
    Initialize database with required tables.
    Idempotent - safe to call multiple times.

    Args:
        conn: SQLite connection
    """
    # One row per symbol; a stale row is replaced wholesale
    conn.execute("""
        CREATE TABLE IF NOT EXISTS metrics_cache (
            symbol TEXT PRIMARY KEY,
            date_key TEXT NOT NULL,
            payload TEXT NOT NULL,
            stored_at TEXT NOT NULL,
            expires_at TEXT
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS runs (
            run_id INTEGER PRIMARY KEY AUTOINCREMENT,
            job_name TEXT NOT NULL,
            started_at TEXT NOT NULL,
            finished_at TEXT,
            status TEXT NOT NULL CHECK(status IN ('running', 'completed', 'failed')),
            items_in INTEGER,
            items_out INTEGER,
            error_message TEXT
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_metrics_cache_date ON metrics_cache(date_key)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_runs_status ON runs(status)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_runs_job ON runs(job_name)")

    conn.commit()


def get_connection(db_path: str = './data/metrics_cache.db') -> sqlite3.Connection:
    """
    Get SQLite connection with proper configuration.

    The connection may be used from worker threads; callers serialize
    access themselves.

    Args:
        db_path: Path to SQLite database file (':memory:' for tests)

    Returns:
        Configured SQLite connection with schema applied
    """
    if db_path != ':memory:':
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, check_same_thread=False)
    if db_path != ':memory:':
        conn.execute("PRAGMA journal_mode = WAL")  # Better concurrency
    init_database(conn)
    return conn
