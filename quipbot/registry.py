"""
Handler registry — rule lists and the dispatch algorithm.

Design:
- Three append-only lists: primary, fallthrough (only when no primary matched), reaction
- Every matching handler fires, not just the first
- Handlers may be sync or async and run concurrently; results keep registration order
- Handler results normalize to outbound actions (str → Reply, lists flatten, None → nothing)
- Actions execute one at a time; a failure becomes an ephemeral error reply to the sender
"""

from __future__ import annotations

import asyncio
import inspect
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Collection, Union

from loguru import logger

from quipbot.actions import EphemeralReply, ExecutionContext, MessagePayload, OutboundAction
from quipbot.errors import ConfigurationError, format_error
from quipbot.matcher import FAIL, PASS, Matcher, Outcome
from quipbot.message import InboundMessage, ReactionEvent

# What a handler may return (or resolve to)
HandlerResult = Union[OutboundAction, str, dict[str, Any], MessagePayload, None, list[Any], tuple[Any, ...]]

# (message, *extracted) -> result
MessageHandler = Callable[..., Union[HandlerResult, Awaitable[HandlerResult]]]
# (target_message, reaction, *extracted) -> result
ReactionHandler = Callable[..., Union[HandlerResult, Awaitable[HandlerResult]]]

ReactionPattern = Union[str, Collection[str], "re.Pattern[str]"]


@dataclass
class HandlerEntry:
    matcher: Matcher
    handler: MessageHandler

    @property
    def name(self) -> str:
        return getattr(self.handler, "__name__", repr(self.handler))


@dataclass
class ReactionEntry(HandlerEntry):
    pattern: ReactionPattern = ""


def match_reaction(pattern: ReactionPattern, emoji: str) -> Outcome:
    """Match an emoji name against a string, a collection or a regex.

    A regex passes on its ``re.Match``.
    """
    if isinstance(pattern, re.Pattern):
        match = pattern.search(emoji)
        return Outcome(True, (match,)) if match else FAIL
    if isinstance(pattern, str):
        return PASS if pattern == emoji else FAIL
    return PASS if emoji in pattern else FAIL


def normalize_result(message: InboundMessage, result: Any) -> list[OutboundAction]:
    """Turn a handler's return value into zero or more actions."""
    if result is None:
        return []
    if isinstance(result, OutboundAction):
        return [result]
    if isinstance(result, str):
        return [message.reply(result)] if result else []
    if isinstance(result, (dict, MessagePayload)):
        return [message.reply(result)]
    if isinstance(result, (list, tuple)):
        actions: list[OutboundAction] = []
        for item in result:
            actions.extend(normalize_result(message, item))
        return actions
    raise TypeError(f"Handler returned unsupported value of type {type(result).__name__}")


class HandlerRegistry:
    """Registered rules and their dispatch."""

    def __init__(self) -> None:
        self.primary: list[HandlerEntry] = []
        self.fallthrough: list[HandlerEntry] = []
        self.reaction: list[ReactionEntry] = []

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_primary(self, matcher: Matcher, handler: MessageHandler) -> None:
        entry = HandlerEntry(matcher, handler)
        self.primary.append(entry)
        logger.debug(f"[registry] Registered handler {entry.name!r}")

    def register_fallthrough(self, matcher: Matcher, handler: MessageHandler) -> None:
        entry = HandlerEntry(matcher, handler)
        self.fallthrough.append(entry)
        logger.debug(f"[registry] Registered fallthrough {entry.name!r}")

    def register_reaction(
        self,
        pattern: ReactionPattern,
        matcher: Matcher,
        handler: ReactionHandler,
    ) -> None:
        if isinstance(pattern, (set, frozenset, list, tuple)):
            pattern = frozenset(pattern)
        entry = ReactionEntry(matcher, handler, pattern)
        self.reaction.append(entry)
        logger.debug(f"[registry] Registered reaction handler {entry.name!r}")

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch_message(
        self,
        message: InboundMessage,
        context: ExecutionContext,
    ) -> list[OutboundAction]:
        """Run every matching handler and execute what they return.

        Returns the actions that were sent: successful ones, plus an ephemeral
        error reply in place of each failed handler or action.
        """
        calls = self._match(self.primary, message)
        if not calls:
            calls = self._match(self.fallthrough, message)
            if calls:
                logger.debug(f"[registry] No primary match, {len(calls)} fallthrough handler(s)")
        if not calls:
            return []

        actions = await self._collect(message, calls)
        return await self._execute(message, actions, context)

    async def dispatch_reaction(
        self,
        event: ReactionEvent,
        context: ExecutionContext,
    ) -> list[OutboundAction]:
        """Run reaction handlers whose pattern and matcher both match.

        Needs the reacted-to message; without it nothing happens.
        """
        message = event.target_message
        if message is None:
            logger.debug(f"[registry] Reaction {event.emoji_name!r} has no target message, skipping")
            return []

        calls: list[tuple[HandlerEntry, tuple[Any, ...]]] = []
        for entry in self.reaction:
            by_pattern = match_reaction(entry.pattern, event.emoji_name)
            if not by_pattern.matched:
                continue
            outcome = entry.matcher.evaluate(message)
            if not outcome.matched:
                continue
            calls.append((entry, (message, event, *by_pattern.extracted, *outcome.extracted)))

        if not calls:
            return []

        actions = await self._collect(message, calls)
        return await self._execute(message, actions, context)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _match(
        entries: list[HandlerEntry],
        message: InboundMessage,
    ) -> list[tuple[HandlerEntry, tuple[Any, ...]]]:
        calls = []
        for entry in entries:
            outcome = entry.matcher.evaluate(message)
            if outcome.matched:
                calls.append((entry, (message, *outcome.extracted)))
        return calls

    @staticmethod
    async def _invoke(handler: Callable[..., Any], args: tuple[Any, ...]) -> Any:
        result = handler(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _collect(
        self,
        message: InboundMessage,
        calls: list[tuple[HandlerEntry, tuple[Any, ...]]],
    ) -> list[OutboundAction]:
        results = await asyncio.gather(
            *(self._invoke(entry.handler, args) for entry, args in calls),
            return_exceptions=True,
        )

        actions: list[OutboundAction] = []
        for (entry, _), result in zip(calls, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(f"[registry] Handler {entry.name!r} error: {result}")
                actions.extend(self._error_reply(message, result))
                continue
            try:
                actions.extend(normalize_result(message, result))
            except TypeError as exc:
                logger.error(f"[registry] Handler {entry.name!r} result error: {exc}")
                actions.extend(self._error_reply(message, exc))
        return actions

    async def _execute(
        self,
        message: InboundMessage,
        actions: list[OutboundAction],
        context: ExecutionContext,
    ) -> list[OutboundAction]:
        sent: list[OutboundAction] = []
        for action in actions:
            try:
                await action.execute(context)
                sent.append(action)
            except Exception as exc:
                logger.error(f"[registry] {action!r} failed: {exc}")
                for reply in self._error_reply(message, exc):
                    try:
                        await reply.execute(context)
                        sent.append(reply)
                    except Exception as report_exc:
                        logger.error(f"[registry] Could not report error to sender: {report_exc}")
        return sent

    @staticmethod
    def _error_reply(message: InboundMessage, error: BaseException) -> list[OutboundAction]:
        try:
            return [EphemeralReply.for_message(message, format_error(error))]
        except ConfigurationError as exc:
            logger.warning(f"[registry] Cannot report error: {exc}")
            return []

    def __repr__(self) -> str:
        return (
            f"HandlerRegistry(primary={len(self.primary)}, "
            f"fallthrough={len(self.fallthrough)}, reaction={len(self.reaction)})"
        )
