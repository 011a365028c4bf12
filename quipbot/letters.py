"""
Letter-to-emoji map used to spell words with reactions.
"""

from __future__ import annotations

import json
from typing import Mapping, Sequence, Union

from quipbot.errors import ConfigurationError, ResolutionError
from quipbot.pickers import BoundedRandomPicker

# A letter maps to either one tier of emoji names or a list of tiers
LetterSpec = Union[Sequence[str], Sequence[Sequence[str]]]


def _tiers(spec: LetterSpec) -> list[list[str]]:
    if not spec:
        return []
    if isinstance(spec[0], str):
        return [list(spec)]  # type: ignore[arg-type]
    return [list(tier) for tier in spec]


class EmojiLetterMap:
    """Map single characters to emoji pickers.

    Usage::

        letters = EmojiLetterMap({
            "o": ["zero"],
            "x": [["x", "heavy_multiplication_x"], ["negative_squared_cross_mark"]],
        })
        letters.emojis_for_word("xox")
    """

    def __init__(self, mapping: Mapping[str, LetterSpec]) -> None:
        self.pickers: dict[str, BoundedRandomPicker[str]] = {}
        for key, spec in mapping.items():
            if len(key) != 1:
                raise ConfigurationError(
                    f"Key {json.dumps(key)} is invalid, must be single character"
                )
            self.pickers[key] = BoundedRandomPicker(*_tiers(spec))

    def emojis_for_word(self, word: str) -> list[str]:
        """Draw one emoji per character of ``word``.

        A repeated letter draws a different emoji each time. Pickers used by
        this call are reset afterwards so the next word starts fresh.
        """
        touched: set[str] = set()
        emojis: list[str] = []
        try:
            for char in word.lower():
                touched.add(char)
                picker = self.pickers.get(char)
                emoji = picker.next() if picker else None
                if emoji is None:
                    raise ResolutionError(f"no emoji found for `{char}` cannot build response")
                emojis.append(emoji)
        finally:
            for char in touched:
                if char in self.pickers:
                    self.pickers[char].reset()

        return emojis

    def __contains__(self, char: str) -> bool:
        return char in self.pickers
