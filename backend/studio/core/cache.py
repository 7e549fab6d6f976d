"""
In-memory TTL cache for parsed uploads.

Parsing an Excel workbook or a large SQL dump is the slowest part of an
upload, so raw rows are kept for a while keyed by a hash of the file bytes.
Analyses are not cached: each ingestion produces a fresh DatasetAnalysis.
"""
import hashlib
import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    data: Any
    expires_at: float


class SimpleCache:
    """Thread-safe dictionary with per-entry expiry."""

    def __init__(self, default_ttl: float = 1800):
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = Lock()
        self.default_ttl = default_ttl

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if time.monotonic() >= entry.expires_at:
                del self._entries[key]
                logger.debug(f"Cache entry expired: {key[:24]}")
                return None
            return entry.data

    def set(self, key: str, value: Any, ttl: Optional[float] = None):
        ttl = ttl or self.default_ttl
        with self._lock:
            self._entries[key] = CacheEntry(data=value, expires_at=time.monotonic() + ttl)
        logger.debug(f"Cache set: {key[:24]} (TTL: {ttl}s)")

    def clear(self):
        with self._lock:
            self._entries.clear()
        logger.info("Cache cleared")

    def cleanup_expired(self) -> int:
        """Drop expired entries and return how many were removed."""
        now = time.monotonic()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Cleaned up {len(expired)} expired cache entries")
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        self.cleanup_expired()
        with self._lock:
            size = len(self._entries)
        return {"size": size, "default_ttl": self.default_ttl}


_rows_cache = SimpleCache(default_ttl=1800)


def get_rows_cache() -> SimpleCache:
    return _rows_cache


def generate_rows_cache_key(file_content: bytes, filename: str, sheet_index: int = 0) -> str:
    """Key parsed rows by content, extension-bearing filename and sheet."""
    content_hash = hashlib.sha256(file_content).hexdigest()
    name_hash = hashlib.sha256(filename.encode()).hexdigest()[:16]
    return f"rows:{content_hash}:{name_hash}:{sheet_index}"
