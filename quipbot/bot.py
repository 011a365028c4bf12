"""
Bot — connects a channel binding to the handler registry.

- Primes the workspace directory, then opens the event stream
- Routes ``message`` events → InboundMessage → registry.dispatch_message
- Routes ``reaction_added`` events → ReactionEvent → registry.dispatch_reaction
- Skips the bot's own messages and noise subtypes (edits, deletions, bot posts)
- Exposes the rule registration surface
"""

from __future__ import annotations

import inspect
import os
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from loguru import logger

from quipbot.actions import ExecutionContext, OutboundAction
from quipbot.channels.base import (
    MESSAGE_EVENT,
    REACTION_ADDED_EVENT,
    ChatApi,
    SessionInfo,
    Transport,
)
from quipbot.directory import WorkspaceDirectory
from quipbot.errors import ConfigurationError
from quipbot.letters import EmojiLetterMap, LetterSpec
from quipbot.matcher import Matcher, matcher as match_all
from quipbot.message import InboundMessage, ReactionEvent
from quipbot.registry import HandlerRegistry, MessageHandler, ReactionHandler, ReactionPattern
from quipbot.utils import MINUTES


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

def _env_bool(key: str, default: bool = False) -> bool:
    value = os.getenv(key, "").strip().lower()
    if not value:
        return default
    return value in ("1", "true", "yes", "on")


def _require_matcher(method: str, matcher: Any) -> None:
    # A handler passed positionally lands in the matcher slot
    if not isinstance(matcher, Matcher):
        raise ConfigurationError(
            f"{method}() needs a Matcher, got {type(matcher).__name__}; pass the handler as handler="
        )


@dataclass
class BotConfig:
    """Bot configuration."""

    # Slack credentials
    bot_token: str = ""             # xoxb-...
    app_token: str = ""             # xapp-... (Socket Mode)

    # Workspace directory cache
    cache_ttl: float = 5 * MINUTES
    stale_while_refresh: bool = False

    # Message subtypes that never reach handlers
    ignored_subtypes: tuple[str, ...] = (
        "bot_message",
        "message_changed",
        "message_deleted",
        "message_replied",
    )

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "BotConfig":
        """Read settings from the environment (call ``load_dotenv()`` first)."""
        ttl = os.getenv("QUIPBOT_CACHE_TTL", "").strip()
        try:
            cache_ttl = float(ttl) if ttl else 5 * MINUTES
        except ValueError as exc:
            raise ConfigurationError(f"QUIPBOT_CACHE_TTL must be a number, got {ttl!r}") from exc

        return cls(
            bot_token=os.getenv("SLACK_BOT_TOKEN", "").strip(),
            app_token=os.getenv("SLACK_APP_TOKEN", "").strip(),
            cache_ttl=cache_ttl,
            stale_while_refresh=_env_bool("QUIPBOT_STALE_WHILE_REFRESH"),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )


# ---------------------------------------------------------------------------
# Bot
# ---------------------------------------------------------------------------

class Bot:
    """Rule-based bot runtime.

    Usage::

        bot = Bot.for_slack(BotConfig.from_env())

        @bot.register_primary(matcher.directed_at_bot.contains("hi"))
        def say_hi(msg):
            return f"hi to you too {msg.sender_name}"

        await bot.start()
    """

    def __init__(
        self,
        transport: Transport,
        api: ChatApi,
        config: BotConfig | None = None,
        directory: WorkspaceDirectory | None = None,
        registry: HandlerRegistry | None = None,
    ) -> None:
        self.transport = transport
        self.api = api
        self.config = config or BotConfig()
        self.directory = directory or WorkspaceDirectory.from_api(
            api,
            ttl=self.config.cache_ttl,
            stale_while_refresh=self.config.stale_while_refresh,
        )
        self.registry = registry or HandlerRegistry()
        self.letters: EmojiLetterMap | None = None
        self.session: SessionInfo | None = None

        self.transport.on(MESSAGE_EVENT, self.handle_message)
        self.transport.on(REACTION_ADDED_EVENT, self.handle_reaction)

    @classmethod
    def for_slack(cls, config: BotConfig) -> "Bot":
        """Bot connected to Slack over Socket Mode."""
        from quipbot.channels.slack import SlackApi, SlackTransport

        transport = SlackTransport(config.bot_token, config.app_token)
        return cls(transport, SlackApi(client=transport.app.client), config)

    @classmethod
    def for_console(cls, config: BotConfig | None = None) -> "Bot":
        """Bot talking to a local console; no credentials needed."""
        from quipbot.channels.cli import CLIApi, CLITransport

        api = CLIApi()
        return cls(CLITransport(api), api, config)

    @property
    def context(self) -> ExecutionContext:
        return ExecutionContext(api=self.api, letters=self.letters)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_primary(self, matcher: Matcher, handler: MessageHandler | None = None) -> Any:
        """Run ``handler`` for every message ``matcher`` matches.

        Without a handler, returns a decorator.
        """
        _require_matcher("register_primary", matcher)
        if handler is None:
            return lambda fn: self.register_primary(matcher, fn) or fn
        self.registry.register_primary(matcher, handler)
        return None

    def register_fallthrough(self, matcher: Matcher, handler: MessageHandler | None = None) -> Any:
        """Like ``register_primary``, but only when no primary handler matched."""
        _require_matcher("register_fallthrough", matcher)
        if handler is None:
            return lambda fn: self.register_fallthrough(matcher, fn) or fn
        self.registry.register_fallthrough(matcher, handler)
        return None

    def register_reaction(
        self,
        pattern: ReactionPattern,
        matcher: Matcher = match_all,
        handler: ReactionHandler | None = None,
    ) -> Any:
        """Run ``handler`` when a reaction matching ``pattern`` lands on a matching message."""
        _require_matcher("register_reaction", matcher)
        if handler is None:
            return lambda fn: self.register_reaction(pattern, matcher, fn) or fn
        self.registry.register_reaction(pattern, matcher, handler)
        return None

    def configure_letter_map(self, mapping: Mapping[str, LetterSpec]) -> None:
        self.letters = EmojiLetterMap(mapping)
        logger.info(f"[bot] Letter map configured for {len(self.letters.pickers)} character(s)")

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def start(self, on_ready: Callable[[], Any] | None = None) -> None:
        """Prime caches, open a session and deliver events until stopped.

        A failure while priming or authenticating propagates.
        """
        logger.info(f"[bot] Starting on {self.transport.name!r} ({self.registry!r})")
        await self.directory.prime()
        self.session = await self.transport.start_session()

        if on_ready is not None:
            result = on_ready()
            if inspect.isawaitable(result):
                await result

        session = self.session
        logger.info(
            f"[bot] Connected as {session.user_name or session.user_id} to workspace "
            f"{session.team_name} ({session.team_domain})"
        )
        await self.transport.connect()

    async def stop(self) -> None:
        try:
            await self.transport.stop()
        except Exception as exc:
            logger.warning(f"[bot] Error stopping transport {self.transport.name!r}: {exc}")

    # ------------------------------------------------------------------
    # Event routing
    # ------------------------------------------------------------------

    def _should_skip(self, payload: dict[str, Any]) -> bool:
        subtype = payload.get("subtype")
        if subtype and subtype in self.config.ignored_subtypes:
            logger.debug(f"[bot] Skipping message with subtype {subtype!r}")
            return True
        if payload.get("user") and payload.get("user") == self.transport.self_user_id:
            return True
        return False

    async def handle_message(self, payload: dict[str, Any]) -> list[OutboundAction]:
        """Dispatch one raw ``message`` event. Returns the actions sent."""
        if self._should_skip(payload):
            return []

        try:
            message = await InboundMessage.build(payload, self.directory, self.transport.self_user_id)
        except Exception as exc:
            logger.error(f"[bot] Could not build message: {exc}")
            return []

        logger.info(
            f"[bot] {message.channel_name or message.conversation_id} "
            f"[{message.sender_name or message.sender_id}]: {message.text[:80]!r}"
        )
        return await self.registry.dispatch_message(message, self.context)

    async def handle_reaction(self, payload: dict[str, Any]) -> list[OutboundAction]:
        """Dispatch one raw ``reaction_added`` event. Returns the actions sent."""
        try:
            event = await ReactionEvent.build(
                payload, self.directory, self.api, self.transport.self_user_id
            )
        except Exception as exc:
            logger.error(f"[bot] Could not build reaction: {exc}")
            return []

        logger.info(f"[bot] Reaction :{event.emoji_name}: by {event.reacting_user_id}")
        return await self.registry.dispatch_reaction(event, self.context)
