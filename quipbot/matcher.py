"""
Matcher — composable predicates and extractors over inbound messages.

A Matcher is an immutable chain of steps. Each chaining call returns a new
Matcher with one more step, so a partial chain can be shared as a prefix:

    mention = matcher.directed_at_bot
    bot.register_primary(mention.contains("hi"), say_hi)
    bot.register_primary(mention.starts_with("deploy"), deploy)

Evaluation is a short-circuiting, left-to-right AND over the steps. Every
step returns an explicit ``Outcome(matched, extracted)``; the values a step
extracts (the remainder after a prefix, a regex match, a list of URLs, ...)
are appended to the handler's arguments.

Order matters. Steps with side effects (``throttled_by``) record a fire as
soon as they pass, even if a later step then fails, so put them last.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, NamedTuple, Union

from quipbot.errors import ConfigurationError
from quipbot.throttle import KeyedThrottle
from quipbot.utils import HOURS, Link

if TYPE_CHECKING:
    from quipbot.message import InboundMessage

KeyFunc = Callable[["InboundMessage"], str]
PatternLike = Union[str, "re.Pattern[str]"]

THROTTLE_TTL = 4 * HOURS


class Outcome(NamedTuple):
    matched: bool
    extracted: tuple[Any, ...] = ()


PASS = Outcome(True)
FAIL = Outcome(False)


def _check(value: bool) -> Outcome:
    return PASS if value else FAIL


def _require(kind: str, values: tuple[Any, ...]) -> tuple[Any, ...]:
    if not values:
        raise ConfigurationError(f"{kind}() needs at least one argument")
    return values


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------

class Step(ABC):
    """One predicate/extractor in a Matcher chain."""

    @abstractmethod
    def evaluate(self, message: "InboundMessage") -> Outcome:
        ...


@dataclass(frozen=True)
class StartsWith(Step):
    prefixes: tuple[str, ...]

    def evaluate(self, message: "InboundMessage") -> Outcome:
        text = message.resolved_text
        for prefix in self.prefixes:
            if text.startswith(prefix):
                return Outcome(True, (text[len(prefix):].lstrip(),))
        return FAIL


@dataclass(frozen=True)
class Contains(Step):
    substrings: tuple[str, ...]

    def evaluate(self, message: "InboundMessage") -> Outcome:
        text = message.resolved_text
        return _check(any(s in text for s in self.substrings))


@dataclass(frozen=True)
class Regex(Step):
    patterns: tuple["re.Pattern[str]", ...]

    def evaluate(self, message: "InboundMessage") -> Outcome:
        text = message.resolved_text
        for pattern in self.patterns:
            match = pattern.search(text)
            if match:
                return Outcome(True, (match,))
        return FAIL


@dataclass(frozen=True)
class MessageIs(Step):
    candidates: tuple[str, ...]

    def evaluate(self, message: "InboundMessage") -> Outcome:
        return _check(message.resolved_text in self.candidates)


@dataclass(frozen=True)
class Flag(Step):
    """A boolean attribute of the message, e.g. ``directed_at_bot``."""

    attribute: str

    def evaluate(self, message: "InboundMessage") -> Outcome:
        return _check(bool(getattr(message, self.attribute)))


@dataclass(frozen=True)
class InChannel(Step):
    names: tuple[str, ...]

    def evaluate(self, message: "InboundMessage") -> Outcome:
        return _check(message.channel_name is not None and message.channel_name in self.names)


@dataclass(frozen=True)
class ByUser(Step):
    names: tuple[str, ...]

    def evaluate(self, message: "InboundMessage") -> Outcome:
        return _check(message.sender_name is not None and message.sender_name in self.names)


@dataclass(frozen=True)
class UrlMatch:
    """A link that passed a ``url()`` filter, with the ``path_like`` match if any."""

    link: Link
    path_match: "re.Match[str] | None" = None

    @property
    def url(self) -> str:
        return self.link.url


@dataclass(frozen=True)
class Url(Step):
    host: str
    pathname: str | None = None
    path_like: "re.Pattern[str] | None" = None
    path_contains: str | None = None
    path_starts_with: str | None = None

    def _filter(self, link: Link) -> UrlMatch | None:
        if link.host not in (self.host, f"www.{self.host}"):
            return None
        path = link.path
        if self.pathname is not None and path != self.pathname:
            return None
        if self.path_contains is not None and self.path_contains not in path:
            return None
        if self.path_starts_with is not None and not path.startswith(self.path_starts_with):
            return None

        path_match = None
        if self.path_like is not None:
            path_match = self.path_like.search(path)
            if path_match is None:
                return None
        return UrlMatch(link, path_match)

    def evaluate(self, message: "InboundMessage") -> Outcome:
        found = [m for m in map(self._filter, message.extracted_links) if m is not None]
        if not found:
            return FAIL
        return Outcome(True, (found,))


@dataclass(frozen=True)
class Throttle(Step):
    throttle: KeyedThrottle
    key: KeyFunc

    def evaluate(self, message: "InboundMessage") -> Outcome:
        return _check(self.throttle.attempt(self.key(message)))


@dataclass(frozen=True)
class And(Step):
    """Every sub-matcher must match the same message."""

    matchers: tuple["Matcher", ...]

    def evaluate(self, message: "InboundMessage") -> Outcome:
        extracted: list[Any] = []
        for m in self.matchers:
            outcome = m.evaluate(message)
            extracted.extend(outcome.extracted)
            if not outcome.matched:
                return Outcome(False, tuple(extracted))
        return Outcome(True, tuple(extracted))


@dataclass(frozen=True)
class Or(Step):
    """The first sub-matcher that matches wins; later ones are not evaluated."""

    matchers: tuple["Matcher", ...]

    def evaluate(self, message: "InboundMessage") -> Outcome:
        partial: list[Any] = []
        for m in self.matchers:
            outcome = m.evaluate(message)
            if outcome.matched:
                return outcome
            partial.extend(outcome.extracted)
        return Outcome(False, tuple(partial))


@dataclass(frozen=True)
class Not(Step):
    matcher: "Matcher"

    def evaluate(self, message: "InboundMessage") -> Outcome:
        return _check(not self.matcher.evaluate(message).matched)


# ---------------------------------------------------------------------------
# Matcher
# ---------------------------------------------------------------------------

class Matcher:
    """Immutable chain of steps. Start from the empty ``matcher`` and chain."""

    def __init__(self, *steps: Step) -> None:
        self._steps: tuple[Step, ...] = steps

    @property
    def steps(self) -> tuple[Step, ...]:
        return self._steps

    def _append(self, step: Step) -> "Matcher":
        return Matcher(*self._steps, step)

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def starts_with(self, *prefixes: str) -> "Matcher":
        """Text starts with any prefix; passes on the left-trimmed remainder."""
        return self._append(StartsWith(_require("starts_with", prefixes)))

    def contains(self, *substrings: str) -> "Matcher":
        return self._append(Contains(_require("contains", substrings)))

    def matches(self, *patterns: PatternLike) -> "Matcher":
        """Text matches any pattern (``re.search``); passes on the ``re.Match``."""
        compiled = tuple(re.compile(p) for p in _require("matches", patterns))
        return self._append(Regex(compiled))

    def message_is(self, *candidates: str) -> "Matcher":
        return self._append(MessageIs(_require("message_is", candidates)))

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    @property
    def directed_at_bot(self) -> "Matcher":
        """The bot is @mentioned at the start of the message, or it's a DM."""
        return self._append(Flag("directed_at_bot"))

    @property
    def mentions_bot(self) -> "Matcher":
        return self._append(Flag("mentions_bot"))

    @property
    def is_im(self) -> "Matcher":
        return self._append(Flag("is_direct_message"))

    def in_channel(self, *names: str) -> "Matcher":
        """Sent in any of the channels; ``#general`` and ``general`` are the same."""
        normalized = tuple(n[1:] if n.startswith("#") else n for n in _require("in_channel", names))
        return self._append(InChannel(normalized))

    in_channels = in_channel

    def by_user(self, *names: str) -> "Matcher":
        normalized = tuple(n[1:] if n.startswith("@") else n for n in _require("by_user", names))
        return self._append(ByUser(normalized))

    def url(
        self,
        host: str,
        *,
        pathname: str | None = None,
        path_like: PatternLike | None = None,
        path_contains: str | None = None,
        path_starts_with: str | None = None,
    ) -> "Matcher":
        """Message links to ``host`` (or ``www.`` + host), narrowed by any path filter.

        Passes on the list of matching ``UrlMatch`` entries.
        """
        return self._append(
            Url(
                host=host.lower(),
                pathname=pathname,
                path_like=re.compile(path_like) if path_like is not None else None,
                path_contains=path_contains,
                path_starts_with=path_starts_with,
            )
        )

    # ------------------------------------------------------------------
    # Throttling
    # ------------------------------------------------------------------

    def throttled_by(self, ttl_or_throttle: float | KeyedThrottle, key: KeyFunc) -> "Matcher":
        """Pass at most once per ``key(message)`` per TTL.

        Pass a ``KeyedThrottle`` to share one window between several rules.
        """
        if isinstance(ttl_or_throttle, KeyedThrottle):
            throttle = ttl_or_throttle
        else:
            throttle = KeyedThrottle(ttl_or_throttle)
        return self._append(Throttle(throttle, key))

    @property
    def throttled_by_user(self) -> "Matcher":
        return self.throttled_by(THROTTLE_TTL, lambda msg: msg.sender_id)

    @property
    def throttled_by_conversation(self) -> "Matcher":
        return self.throttled_by(THROTTLE_TTL, lambda msg: msg.conversation_id)

    # ------------------------------------------------------------------
    # Combinators
    # ------------------------------------------------------------------

    def and_(self, *matchers: "Matcher") -> "Matcher":
        return self._append(And(_require("and_", matchers)))

    def or_(self, *matchers: "Matcher") -> "Matcher":
        return self._append(Or(_require("or_", matchers)))

    def not_(self, matcher: "Matcher") -> "Matcher":
        return self._append(Not(matcher))

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate(self, message: "InboundMessage") -> Outcome:
        extracted: list[Any] = []
        for step in self._steps:
            outcome = step.evaluate(message)
            if not outcome.matched:
                return Outcome(False, tuple(extracted))
            extracted.extend(outcome.extracted)
        return Outcome(True, tuple(extracted))

    def __repr__(self) -> str:
        kinds = ", ".join(type(s).__name__ for s in self._steps)
        return f"Matcher({kinds})"


# Empty root matcher; matches every message
matcher = Matcher()
