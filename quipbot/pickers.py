"""
"Pick without immediate repeats" sequence generators.

Used to vary bot output (emoji selection, canned replies):
- BoundedRandomPicker: random draws from priority tiers, each item at most once per generation
- RoundRobinPicker: cycles through items, one cursor per key
"""

from __future__ import annotations

import random
from typing import Generic, Hashable, Iterable, TypeVar

T = TypeVar("T")


class BoundedRandomPicker(Generic[T]):
    """Draw items at random from ordered tiers without repeats.

    Tier 0 is exhausted before tier 1 is consulted, and so on. Once every
    tier is empty ``next()`` returns None until ``reset()``, unless
    ``auto_reset`` is set, in which case the picker re-seeds itself.

    Usage::

        picker = BoundedRandomPicker(["x", "heavy_multiplication_x"], ["negative_squared_cross_mark"])
        picker.next()   # "x" or "heavy_multiplication_x"
    """

    def __init__(
        self,
        *tiers: Iterable[T],
        auto_reset: bool = False,
        rng: random.Random | None = None,
    ) -> None:
        self._tiers: list[list[T]] = [list(tier) for tier in tiers]
        self._unused: list[list[T]] = self._copy_tiers()
        self._dirty = False
        self.auto_reset = auto_reset
        self._rng = rng or random.Random()

    def _copy_tiers(self) -> list[list[T]]:
        return [list(tier) for tier in self._tiers]

    @property
    def remaining(self) -> int:
        """Number of draws left in the current generation."""
        return sum(len(tier) for tier in self._unused)

    def reset(self) -> None:
        """Start a new generation with every seeded item available again."""
        if not self._dirty:
            return
        self._unused = self._copy_tiers()
        self._dirty = False

    def next(self) -> T | None:
        while self._unused and not self._unused[0]:
            self._unused.pop(0)

        if not self._unused and self.auto_reset:
            self.reset()
            while self._unused and not self._unused[0]:
                self._unused.pop(0)

        if not self._unused:
            return None

        tier = self._unused[0]
        item = tier.pop(self._rng.randrange(len(tier)))
        self._dirty = True
        return item

    def __repr__(self) -> str:
        return f"BoundedRandomPicker(tiers={len(self._tiers)}, remaining={self.remaining})"


class RoundRobinPicker(Generic[T]):
    """Cycle through items in order, keeping a separate cursor per key.

    Usage::

        greetings = RoundRobinPicker("hi", "hello", "hey")
        greetings.next(msg.sender_id)
    """

    def __init__(self, *items: T) -> None:
        self._items: list[T] = list(items)
        self._cursors: dict[Hashable, int] = {}

    def reset(self) -> None:
        self._cursors.clear()

    def next(self, key: Hashable | None = None) -> T | None:
        if not self._items:
            return None

        cursor = self._cursors.get(key, 0)
        item = self._items[cursor]
        self._cursors[key] = (cursor + 1) % len(self._items)
        return item

    def __len__(self) -> int:
        return len(self._items)
