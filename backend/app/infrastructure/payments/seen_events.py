"""
Process-local cache of applied webhook events.

A fast path for Stripe redeliveries only. It is bounded, forgotten on
restart and not shared between workers; duplicate safety comes from the
repository's conflict-key upsert.
"""

from collections import OrderedDict
from typing import Optional


class SeenEventCache:
    """Bounded LRU set of idempotency keys."""

    def __init__(self, max_size: int = 10_000):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_size = max_size
        self._keys: OrderedDict[str, None] = OrderedDict()

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: str) -> bool:
        return key in self._keys

    def seen(self, key: Optional[str]) -> bool:
        """Check a key, refreshing its position when present."""
        if key is None or key not in self._keys:
            return False
        self._keys.move_to_end(key)
        return True

    def mark(self, key: Optional[str]) -> None:
        """Record a key, evicting the least recently seen when full."""
        if key is None:
            return
        self._keys[key] = None
        self._keys.move_to_end(key)
        while len(self._keys) > self._max_size:
            self._keys.popitem(last=False)

    def clear(self) -> None:
        self._keys.clear()
