"""Per-key async locks (single-flight).

A platform retry can arrive while the first delivery for the same order
is still rendering. Holding the order key's lock across check, process
and mark makes the second delivery wait and then see the dedupe entry.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class _Slot:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class KeyedLock:
    """Map of asyncio locks keyed by string, created on demand.

    Slots are removed once no holder or waiter remains, so the map only
    holds keys that are currently in flight. Must be used from a single
    event loop.
    """

    def __init__(self) -> None:
        self._slots: dict[str, _Slot] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        slot = self._slots.get(key)
        if slot is None:
            slot = self._slots[key] = _Slot()
        slot.users += 1
        try:
            async with slot.lock:
                yield
        finally:
            slot.users -= 1
            if slot.users == 0:
                self._slots.pop(key, None)

    def in_flight(self) -> int:
        """Number of keys with a holder or waiter."""
        return len(self._slots)
