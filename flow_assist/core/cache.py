"""
TTL caching for expensive provider transformations.

Keys are derived from a content hash of the semantically relevant part of a
request; entries expire after a fixed time-to-live. Expired entries are swept
lazily after each write. Every cache is an ordinary instance owned by the
component that uses it, so sessions and tests never share state.
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSLATION_TTL = timedelta(hours=2)
PREVIEW_TTL = timedelta(minutes=15)
SYNTHESIS_TTL = timedelta(hours=1)


def content_hash(data: bytes, algorithm: str = "sha256") -> str:
    """
    Hash raw bytes.

    Args:
        data: Bytes to hash
        algorithm: Hash algorithm to use ('sha256', 'blake2b', 'md5')

    Returns:
        Hexadecimal hash string
    """
    if algorithm == "sha256":
        hasher = hashlib.sha256()
    elif algorithm == "blake2b":
        hasher = hashlib.blake2b(digest_size=32)
    elif algorithm == "md5":
        hasher = hashlib.md5()
    else:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")
    hasher.update(data)
    return hasher.hexdigest()


def derive_cache_key(namespace: str, payload: Dict[str, Any], algorithm: str = "sha256", length: int = 16) -> str:
    """
    Build a deterministic cache key: ``<namespace>_<truncated hash>``.

    The payload is serialized as canonical JSON (sorted keys, no extra
    whitespace, UTF-8), so equal payloads always give equal keys.
    """
    canonical = json.dumps(payload, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return f"{namespace}_{content_hash(canonical.encode('utf-8'), algorithm)[:length]}"


@dataclass
class CacheEntry(Generic[T]):
    """Cached payload with its creation time."""

    data: T
    created_at: datetime

    def is_valid(self, ttl: timedelta, now: datetime) -> bool:
        return now - self.created_at < ttl


class TTLCache(Generic[T]):
    """
    Key-value cache whose entries are valid for ``ttl`` after creation.

    Args:
        ttl: Time-to-live of each entry
        clock: Callable returning the current time (injectable for tests)
        name: Label used in log messages
    """

    def __init__(self, ttl: timedelta, clock: Optional[Callable[[], datetime]] = None, name: str = "cache"):
        self.ttl = ttl
        self.name = name
        self._clock = clock or datetime.now
        self._entries: Dict[str, CacheEntry[T]] = {}

    def get(self, key: str) -> Optional[T]:
        """Return the payload for ``key`` or None on a miss; an expired entry counts as a miss and is dropped."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_valid(self.ttl, self._clock()):
            del self._entries[key]
            return None
        logger.debug(f"{self.name} hit for {key}")
        return entry.data

    def set(self, key: str, data: T) -> None:
        self._entries[key] = CacheEntry(data=data, created_at=self._clock())
        self.purge_expired()

    def invalidate(self, key: str) -> bool:
        """Remove ``key``; returns whether it was present."""
        return self._entries.pop(key, None) is not None

    def purge_expired(self) -> int:
        """Remove every expired entry and return how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not entry.is_valid(self.ttl, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"{self.name}: purged {len(expired)} expired entries")
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        # Physical presence, regardless of expiry
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
