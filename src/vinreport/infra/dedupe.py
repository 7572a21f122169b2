"""Processed-order dedupe store.

The pipeline marks an order key once it reaches a terminal outcome and
consults the store before any side effect. The in-memory store is only
correct for a single-instance deployment: a second instance has its own
map, and a restart forgets everything. A shared backend (Redis
``SET key 1 NX EX ttl`` for instance) can implement the same protocol.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Protocol

from vinreport.observability.logging import get_logger
from vinreport.observability.redaction import prefix, safe_log_context

logger = get_logger(__name__)


class DedupeStore(Protocol):
    """Protocol for processed-order stores."""

    def has(self, key: str) -> bool:
        """Return True if key was processed and its entry has not expired."""
        ...

    def mark_processed(self, key: str, ttl_seconds: float) -> None:
        """Record key as processed for ttl_seconds."""
        ...


class InMemoryDedupeStore:
    """Expiring map of processed order keys, guarded by a lock.

    Expired entries are deleted lazily when observed by has(), in bulk by
    purge_expired(), and on every mark_processed() so the map stays bounded
    by the keys seen within one TTL.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, float] = {}
        self._lock = threading.Lock()

    def has(self, key: str) -> bool:
        with self._lock:
            expires_at = self._entries.get(key)
            if expires_at is None:
                return False
            if expires_at <= self._clock():
                del self._entries[key]
                logger.debug(
                    "dedupe entry expired",
                    extra={"extra_fields": safe_log_context(order_key_prefix=prefix(key))},
                )
                return False
            return True

    def mark_processed(self, key: str, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        with self._lock:
            now = self._clock()
            for expired in [k for k, expires_at in self._entries.items() if expires_at <= now]:
                del self._entries[expired]
            self._entries[key] = now + ttl_seconds

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, expires_at in self._entries.items() if expires_at <= now]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
