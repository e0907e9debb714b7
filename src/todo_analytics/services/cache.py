"""Time-to-live result cache owned by an AnalyticsEngine instance."""

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, Optional

from ..record import TaskRecord
from ..utils.datetime import now_utc

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    key: str
    value: Any
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class ResultCache:
    """Key -> (value, expiry) mapping with lazy expiry.

    Stale entries are evicted only when they are looked up; there is no
    background sweep. ``clock`` supplies the current time and can be replaced
    in tests.
    """

    def __init__(self, ttl: timedelta = timedelta(minutes=5),
                 clock: Callable[[], datetime] = now_utc):
        if ttl < timedelta(0):
            raise ValueError("Cache TTL must not be negative")
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on a miss or an expired entry."""
        entry = self._entries.get(key)
        if entry is None:
            logger.debug(f"Cache miss: {key[:16]}")
            return None

        if entry.is_expired(self.clock()):
            del self._entries[key]
            logger.debug(f"Cache entry expired and evicted: {key[:16]}")
            return None

        logger.debug(f"Cache hit: {key[:16]}")
        return entry.value

    def set(self, key: str, value: Any) -> CacheEntry:
        entry = CacheEntry(key=key, value=value, expires_at=self.clock() + self.ttl)
        self._entries[key] = entry
        return entry

    def clear(self) -> None:
        self._entries.clear()
        logger.debug("Analytics cache cleared")

    def __contains__(self, key: str) -> bool:
        # Membership does not evict; use get() for expiry-aware lookups
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def fingerprint(prefix: str, records: Iterable[TaskRecord], **extra: Any) -> str:
    """Content hash of a record collection plus any extra key material.

    Two record sets of the same length but different content never share a
    key.
    """
    digest = hashlib.sha256()
    digest.update(prefix.encode("utf-8"))
    for record in records:
        digest.update(json.dumps(record.to_dict(), sort_keys=True, ensure_ascii=False).encode("utf-8"))
        digest.update(b"\x1e")
    digest.update(json.dumps(extra, sort_keys=True, default=str).encode("utf-8"))
    return f"{prefix}:{digest.hexdigest()}"
