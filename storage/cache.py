"""
Time-bounded key/value cache backed by SQLite.
Entries expire after ttl_seconds; an optional background sweeper deletes expired rows every sweep_interval seconds.
"""

import json
import logging
import sqlite3
import threading
import time
from typing import Optional, Any, Callable, Dict

log = logging.getLogger(__name__)

# noinspection SqlResolve
SQL_CREATE = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    value TEXT,
    timestamp REAL
);
"""


class Cache:
    def __init__(
        self,
        path: Optional[str] = None,
        ttl_seconds: Optional[float] = None,
        sweep_interval: Optional[float] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Create a cache instance.

        :param path: SQLite file path or None for in-memory.
        :param ttl_seconds: optional TTL in seconds; older entries are never returned.
        :param sweep_interval: optional period in seconds of the background sweep that deletes expired entries.
        :param max_entries: optional maximum number of entries to keep; oldest entries are pruned when exceeded.
        :param clock: time source, seconds since the epoch.
        """
        self.path = path or ':memory:'
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self._lock = threading.RLock()
        self.ttl_seconds = float(ttl_seconds) if ttl_seconds is not None else None
        self.max_entries = int(max_entries) if max_entries is not None else None
        self.sweep_interval = float(sweep_interval) if sweep_interval else None
        self._clock = clock
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        self._init_db()
        if self.sweep_interval and self.ttl_seconds is not None:
            self._start_sweeper()

    def _init_db(self):
        with self._lock:
            cur = self.conn.cursor()
            cur.executescript(SQL_CREATE)
            self.conn.commit()

    def _start_sweeper(self):
        self._sweeper = threading.Thread(target=self._sweep_loop, name='cache-sweeper', daemon=True)
        self._sweeper.start()

    def _sweep_loop(self):
        while not self._stop.wait(self.sweep_interval):
            try:
                removed = self.sweep()
            except sqlite3.Error:
                log.exception("cache sweep failed")
                continue
            if removed:
                log.debug("cache sweep removed %d expired entr(ies)", removed)

    def close(self):
        self._stop.set()
        if self._sweeper is not None and self._sweeper is not threading.current_thread():
            self._sweeper.join(timeout=1.0)
        with self._lock:
            if self.conn is not None:
                try:
                    self.conn.close()
                finally:
                    self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _expired(self, timestamp: Optional[float]) -> bool:
        if self.ttl_seconds is None or timestamp is None:
            return False
        return self._clock() - float(timestamp) > self.ttl_seconds

    # noinspection SqlResolve
    def stats(self) -> Dict[str, Any]:
        """Return basic statistics about the cache: count, oldest timestamp, newest timestamp."""
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('SELECT COUNT(1), MIN(timestamp), MAX(timestamp) FROM cache_entries')
            count, oldest, newest = cur.fetchone()
        return {
            'count': int(count or 0),
            'oldest': float(oldest) if oldest is not None else None,
            'newest': float(newest) if newest is not None else None,
        }

    # noinspection SqlWithoutWhere
    def clear(self):
        """Clear all entries from the cache."""
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('DELETE FROM cache_entries')
            self.conn.commit()

    # noinspection SqlResolve
    def delete_key(self, key: str) -> int:
        """Delete a specific cache key. Returns number of rows deleted."""
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('DELETE FROM cache_entries WHERE key = ?', (key,))
            self.conn.commit()
            return cur.rowcount

    # noinspection SqlResolve
    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when missing or expired."""
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('SELECT value, timestamp FROM cache_entries WHERE key = ?', (key,))
            row = cur.fetchone()
        if not row:
            return None
        value, timestamp = row
        # TTL-based eviction on access
        if self._expired(timestamp):
            self.delete_key(key)
            return None
        return json.loads(value)

    # noinspection SqlResolve
    def set(self, key: str, value: Any):
        """Store a JSON-serializable value; last write wins."""
        payload = json.dumps(value)
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('REPLACE INTO cache_entries(key, value, timestamp) VALUES (?, ?, ?)', (key, payload, self._clock()))
            self.conn.commit()
            if self.max_entries is not None:
                self._prune_oldest()

    # noinspection SqlResolve
    def sweep(self) -> int:
        """Delete expired entries. Returns number of rows deleted."""
        if self.ttl_seconds is None:
            return 0
        cutoff = self._clock() - self.ttl_seconds
        with self._lock:
            if self.conn is None:
                return 0
            cur = self.conn.cursor()
            cur.execute('DELETE FROM cache_entries WHERE timestamp < ?', (cutoff,))
            self.conn.commit()
            return cur.rowcount

    # noinspection SqlResolve
    def _prune_oldest(self):
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('SELECT COUNT(1) FROM cache_entries')
            count = cur.fetchone()[0] or 0
            if count <= self.max_entries:
                return
            cur.execute('SELECT key FROM cache_entries ORDER BY timestamp ASC LIMIT ?', (int(count - self.max_entries),))
            keys = [r[0] for r in cur.fetchall() or []]
            cur.executemany('DELETE FROM cache_entries WHERE key = ?', [(k,) for k in keys])
            self.conn.commit()


__all__ = ["Cache"]
