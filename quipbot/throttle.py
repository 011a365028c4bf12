"""
Keyed cooldown gate.

Remembers when each key last fired and lets a key through at most once per
TTL window. State lives in memory for the lifetime of the process.
"""

from __future__ import annotations

import time
from typing import Callable

from loguru import logger


class KeyedThrottle:
    """Allow at most one pass per key per ``ttl`` seconds.

    Usage::

        throttle = KeyedThrottle(4 * HOURS)
        if throttle.attempt(user_id):
            ...
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._last_fire_at: dict[str, float] = {}

    def attempt(self, key: str) -> bool:
        """Return True and record the fire time if ``key`` is outside its window."""
        now = self._clock()
        last = self._last_fire_at.get(key)
        if last is not None and now - last < self.ttl:
            logger.debug(f"[throttle] {key!r} throttled ({now - last:.1f}s < {self.ttl}s)")
            return False

        self._last_fire_at[key] = now
        return True

    def reset(self, key: str | None = None) -> None:
        """Forget one key, or every key when ``key`` is None."""
        if key is None:
            self._last_fire_at.clear()
        else:
            self._last_fire_at.pop(key, None)

    def __repr__(self) -> str:
        return f"KeyedThrottle(ttl={self.ttl!r}, keys={len(self._last_fire_at)})"
