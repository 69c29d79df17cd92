"""
Metrics cache stores - persistence for daily MetricsCacheEntry snapshots.
The engine only needs get/put; staleness is decided by the caller.
"""

import asyncio
import json
import logging
import sqlite3
import threading
import time
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Protocol, Tuple

from analysis.models import MetricsCacheEntry
from storage.loaders import get_connection

logger = logging.getLogger(__name__)


class CacheStoreError(Exception):
    """Base error for cache store failures."""
    pass


class CacheReadFailure(CacheStoreError):
    """Raised when a stored entry cannot be read back."""
    pass


class CacheWriteFailure(CacheStoreError):
    """Raised when an entry cannot be persisted."""
    pass


def seconds_until_next_midnight(now: datetime, buffer_seconds: float = 3600.0) -> float:
    """
    TTL hint for a daily entry: time left until the next local midnight,
    plus a buffer for clock and timezone skew.
    """
    tomorrow = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return (tomorrow - now).total_seconds() + buffer_seconds


class MetricsCacheStore(Protocol):
    """Storage contract used by the daily metrics engine."""

    async def get(self, symbol: str) -> Optional[MetricsCacheEntry]:
        ...

    async def put(
        self,
        symbol: str,
        entry: MetricsCacheEntry,
        ttl_seconds: Optional[float] = None
    ) -> None:
        ...


class InMemoryMetricsCache:
    """Process-local store. Entries past their TTL read as absent."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[MetricsCacheEntry, Optional[float]]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, symbol: str) -> Optional[MetricsCacheEntry]:
        item = self._entries.get(symbol)
        if item is None:
            return None

        entry, expires_at = item
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[symbol]
            return None
        return entry

    async def put(
        self,
        symbol: str,
        entry: MetricsCacheEntry,
        ttl_seconds: Optional[float] = None
    ) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        self._entries[symbol] = (entry, expires_at)

    def clear(self) -> None:
        self._entries.clear()


class SQLiteMetricsCache:
    """
    SQLite-backed store holding one JSON payload per symbol.

    Blocking sqlite calls run in a worker thread and are serialized by a
    lock, so one connection can serve concurrent tasks.
    """

    def __init__(self, conn: sqlite3.Connection, clock: Callable[[], datetime] = datetime.now):
        self._conn = conn
        self._clock = clock
        self._lock = threading.Lock()

    @classmethod
    def from_path(cls, db_path: str) -> 'SQLiteMetricsCache':
        return cls(get_connection(db_path))

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    async def get(self, symbol: str) -> Optional[MetricsCacheEntry]:
        return await asyncio.to_thread(self._get_sync, symbol)

    async def put(
        self,
        symbol: str,
        entry: MetricsCacheEntry,
        ttl_seconds: Optional[float] = None
    ) -> None:
        await asyncio.to_thread(self._put_sync, symbol, entry, ttl_seconds)

    async def purge_expired(self) -> int:
        """Delete rows past their expiry. Returns the number removed."""
        return await asyncio.to_thread(self._purge_sync)

    def _get_sync(self, symbol: str) -> Optional[MetricsCacheEntry]:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT payload, expires_at FROM metrics_cache WHERE symbol = ?",
                    (symbol,)
                ).fetchone()

            if row is None:
                return None

            payload, expires_at = row
            if expires_at and self._clock() >= datetime.fromisoformat(expires_at):
                return None

            return MetricsCacheEntry.from_dict(json.loads(payload))

        except (sqlite3.Error, ValueError, KeyError, TypeError) as e:
            raise CacheReadFailure(f"Failed to read cache entry for {symbol}: {e}") from e

    def _put_sync(
        self,
        symbol: str,
        entry: MetricsCacheEntry,
        ttl_seconds: Optional[float]
    ) -> None:
        now = self._clock()
        expires_at = (now + timedelta(seconds=ttl_seconds)).isoformat() if ttl_seconds is not None else None

        try:
            payload = json.dumps(entry.to_dict())
            with self._lock:
                self._conn.execute("""
                    INSERT INTO metrics_cache (symbol, date_key, payload, stored_at, expires_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(symbol) DO UPDATE SET
                        date_key = excluded.date_key,
                        payload = excluded.payload,
                        stored_at = excluded.stored_at,
                        expires_at = excluded.expires_at
                """, (symbol, entry.date, payload, now.isoformat(), expires_at))
                self._conn.commit()

        except (sqlite3.Error, TypeError, ValueError) as e:
            raise CacheWriteFailure(f"Failed to write cache entry for {symbol}: {e}") from e

    def _purge_sync(self) -> int:
        now = self._clock().isoformat()
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM metrics_cache WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (now,)
            )
            self._conn.commit()

        if cursor.rowcount:
            logger.info("Purged %d expired metrics cache entries", cursor.rowcount)
        return cursor.rowcount
