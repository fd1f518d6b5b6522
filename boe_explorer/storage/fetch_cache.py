"""
SQLite-backed TTL cache for upstream text responses.

The BOE open-data API serves XML and JSON from the same URL depending on the
Accept header, so entries are keyed on (url, accept). Timestamps are epoch
seconds; an entry older than the TTL is treated as absent.
"""

import hashlib
import logging
import sqlite3
import time
from contextlib import closing
from pathlib import Path
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS responses (
        cache_key TEXT PRIMARY KEY,
        url TEXT NOT NULL,
        accept TEXT NOT NULL,
        body TEXT NOT NULL,
        stored_at REAL NOT NULL
    )
"""


class FetchCache:
    """Response cache shared by the summary and detail fetchers."""

    def __init__(self, db_path: Union[str, Path], ttl_minutes: int = 10):
        self.db_path = Path(db_path)
        self.ttl_seconds = ttl_minutes * 60
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as conn, conn:
            conn.execute(_SCHEMA)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_stored_at ON responses(stored_at)")

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path))

    @staticmethod
    def _key(url: str, accept: str) -> str:
        return hashlib.sha256(f"{accept} {url}".encode('utf-8')).hexdigest()

    def _cutoff(self) -> float:
        return time.time() - self.ttl_seconds

    def get_text(self, url: str, accept: str) -> Optional[str]:
        """Cached body for (url, accept), or None when missing or expired."""
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT body, stored_at FROM responses WHERE cache_key = ?",
                (self._key(url, accept),),
            ).fetchone()

        if row is None:
            return None
        body, stored_at = row
        if stored_at < self._cutoff():
            logger.debug(f"Cache expired: {url}")
            return None
        return body

    def put_text(self, url: str, accept: str, body: str) -> None:
        """Store a response body; a later put for the same key replaces it."""
        with closing(self._connect()) as conn, conn:
            conn.execute(
                "INSERT OR REPLACE INTO responses (cache_key, url, accept, body, stored_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (self._key(url, accept), url, accept, body, time.time()),
            )

    def invalidate(self, url: str, accept: Optional[str] = None) -> int:
        """Drop the entries of one URL (every representation unless `accept` is given)."""
        with closing(self._connect()) as conn, conn:
            if accept is None:
                cursor = conn.execute("DELETE FROM responses WHERE url = ?", (url,))
            else:
                cursor = conn.execute("DELETE FROM responses WHERE cache_key = ?", (self._key(url, accept),))
            return cursor.rowcount

    def purge_expired(self) -> int:
        """Delete entries past the TTL; returns how many were removed."""
        with closing(self._connect()) as conn, conn:
            deleted = conn.execute("DELETE FROM responses WHERE stored_at < ?", (self._cutoff(),)).rowcount
        if deleted:
            logger.info(f"Purged {deleted} expired cache entries")
        return deleted

    def stats(self) -> Dict[str, int]:
        """Entry counts for status output."""
        with closing(self._connect()) as conn:
            total, fresh = conn.execute(
                "SELECT COUNT(*), COALESCE(SUM(stored_at >= ?), 0) FROM responses",
                (self._cutoff(),),
            ).fetchone()
        return {'entries': total, 'fresh': fresh, 'expired': total - fresh}
