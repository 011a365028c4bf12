"""
Small helpers shared across the package.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import SplitResult, urlsplit

# Durations are in seconds
SECONDS = 1
MINUTES = 60 * SECONDS
HOURS = 60 * MINUTES
DAYS = 24 * HOURS

_SKIN_TONE_MARKER = "::skin-tone"

# Slack wraps links as <http://url> or <http://url|label>
_LINK_RE = re.compile(r"<(https?://[^|>]+)(?:\|([^>]+))?>")


def normalize_emoji(code: str) -> tuple[str, str | None]:
    """Split an emoji code into ``(name, skin_tone)``.

    Accepts both inline form (``:wave::skin-tone-4:``) and the form used by
    reactions (``wave::skin-tone-4``).
    """
    if code.startswith(":") and code.endswith(":") and len(code) > 1:
        code = code[1:-1]

    idx = code.find(_SKIN_TONE_MARKER)
    if idx == -1:
        return code, None
    return code[:idx], code[idx + 2:]


@dataclass(frozen=True)
class Link:
    """A link found in message text."""

    url: str
    label: str | None = None

    @property
    def parts(self) -> SplitResult:
        return urlsplit(self.url)

    @property
    def host(self) -> str:
        return (self.parts.hostname or "").lower()

    @property
    def path(self) -> str:
        return self.parts.path or "/"


def slack_links(text: str | None) -> list[Link]:
    """Return every ``<url|label>`` link in the text, in order."""
    if not text:
        return []
    return [Link(url=m.group(1), label=m.group(2)) for m in _LINK_RE.finditer(text)]
