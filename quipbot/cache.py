"""
Single-flight TTL cache around an async fetch function.

Design:
- At most one call to ``fetch`` is outstanding at any time; concurrent callers share it
- Values expire ``ttl`` seconds after they were fetched
- Expiry policy is explicit (``stale_while_refresh``):
    False → callers wait for a fresh value once the cached one expires
    True  → callers get the stale value while a refresh runs in the background
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Generic, TypeVar

from loguru import logger

from quipbot.utils import MINUTES

T = TypeVar("T")


class CachedRemoteTable(Generic[T]):
    """Cache the result of ``fetch`` for ``ttl`` seconds.

    Usage::

        users = CachedRemoteTable(fetch_users, ttl=5 * MINUTES, name="users")
        await users.prime()
        everyone = await users.get()
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        *,
        ttl: float = 5 * MINUTES,
        stale_while_refresh: bool = False,
        clock: Callable[[], float] = time.monotonic,
        name: str = "table",
    ) -> None:
        self._fetch = fetch
        self.ttl = ttl
        self.stale_while_refresh = stale_while_refresh
        self.name = name
        self._clock = clock

        self._value: T | None = None
        self._fetched_at: float | None = None
        self._in_flight: asyncio.Future[T] | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def has_value(self) -> bool:
        return self._fetched_at is not None

    @property
    def is_expired(self) -> bool:
        if self._fetched_at is None:
            return True
        return self._clock() - self._fetched_at >= self.ttl

    @property
    def is_refreshing(self) -> bool:
        return self._in_flight is not None

    def invalidate(self) -> None:
        """Drop the cached value; the next ``get()`` fetches again."""
        self._value = None
        self._fetched_at = None

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    async def get(self) -> T:
        if not self.is_expired:
            return self._value  # type: ignore[return-value]

        if self.has_value and self.stale_while_refresh:
            self._start_refresh()
            return self._value  # type: ignore[return-value]

        return await self.refresh()

    async def refresh(self) -> T:
        """Fetch now, joining an outstanding fetch if there is one."""
        return await asyncio.shield(self._start_refresh())

    async def prime(self) -> T:
        """Warm the cache before it is needed."""
        return await self.refresh()

    def _start_refresh(self) -> asyncio.Future[T]:
        if self._in_flight is None:
            logger.debug(f"[cache] Refreshing {self.name!r}")
            self._in_flight = asyncio.ensure_future(self._run_fetch())
            self._in_flight.add_done_callback(self._on_refresh_done)
        return self._in_flight

    async def _run_fetch(self) -> T:
        value = await self._fetch()
        self._value = value
        self._fetched_at = self._clock()
        return value

    def _on_refresh_done(self, future: asyncio.Future[T]) -> None:
        self._in_flight = None
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.warning(f"[cache] Refresh of {self.name!r} failed: {exc}")

    def __repr__(self) -> str:
        return f"CachedRemoteTable(name={self.name!r}, ttl={self.ttl!r}, expired={self.is_expired})"
