"""
Outbound actions — deferred units of bot output.

Handlers return these (or strings, which become replies). The registry
executes them one at a time against an ``ExecutionContext``:
- Reply: post a message, optionally in a thread
- ReplyWithThread: post a message, then thread follow-ups under it
- EphemeralReply: post a message visible to one user only
- EmojisReaction: add reactions to a message
- EmojiWordReaction: spell a word with reactions via the letter map
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Sequence, Union

from loguru import logger

from quipbot.channels.base import ChatApi
from quipbot.errors import ActionError, ConfigurationError
from quipbot.letters import EmojiLetterMap

if TYPE_CHECKING:
    from quipbot.message import InboundMessage

# Pause between consecutive reactions so the API isn't spammed
REACTION_DELAY = 0.05


# ---------------------------------------------------------------------------
# Targets and payloads
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReplyTarget:
    """The message an action responds to.

    Either the inbound message itself or, for a message shared into a direct
    conversation, the shared message. Decided once when the message is built.
    """

    conversation_id: str
    timestamp: str
    is_share: bool = False

    @classmethod
    def from_attachment(cls, attachment: dict[str, Any]) -> "ReplyTarget":
        return cls(
            conversation_id=attachment.get("channel_id", ""),
            timestamp=attachment.get("ts", ""),
            is_share=True,
        )


@dataclass
class MessagePayload:
    """Message body: text plus optional attachments / blocks, passed through as-is."""

    text: str = ""
    attachments: list[dict[str, Any]] | None = None
    blocks: list[dict[str, Any]] | None = None

    @classmethod
    def coerce(cls, value: "PayloadLike") -> "MessagePayload":
        if isinstance(value, MessagePayload):
            return value
        if isinstance(value, str):
            return cls(text=value)
        if isinstance(value, dict):
            return cls(attachments=[value])
        if isinstance(value, (list, tuple)):
            return cls(attachments=list(value))
        raise TypeError(f"Cannot build a message from {type(value).__name__}")


PayloadLike = Union[str, dict[str, Any], Sequence[dict[str, Any]], MessagePayload]


@dataclass
class ExecutionContext:
    """What actions run against."""

    api: ChatApi
    letters: EmojiLetterMap | None = None


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

class OutboundAction(ABC):
    """Base class for bot output."""

    def __init__(self, conversation_id: str, thread_timestamp: str | None = None) -> None:
        self.conversation_id = conversation_id
        self.thread_timestamp = thread_timestamp

    @abstractmethod
    async def execute(self, context: ExecutionContext) -> Any:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(conversation_id={self.conversation_id!r})"


class Reply(OutboundAction):
    def __init__(
        self,
        target: ReplyTarget,
        payload: PayloadLike,
        thread_timestamp: str | None = None,
    ) -> None:
        super().__init__(target.conversation_id, thread_timestamp)
        self.target = target
        self.payload = MessagePayload.coerce(payload)

    @property
    def text(self) -> str:
        return self.payload.text

    async def execute(self, context: ExecutionContext) -> dict[str, Any]:
        logger.debug(f"[action] Reply to {self.conversation_id} (thread={self.thread_timestamp})")
        return await context.api.post_message(
            self.conversation_id,
            text=self.payload.text,
            attachments=self.payload.attachments,
            blocks=self.payload.blocks,
            thread_ts=self.thread_timestamp,
        )

    def __repr__(self) -> str:
        return f"Reply(conversation_id={self.conversation_id!r}, text={self.text[:40]!r})"


class ReplyWithThread(OutboundAction):
    """Post a new message, then reply to it in a thread with the follow-ups."""

    def __init__(
        self,
        target: ReplyTarget,
        primary: PayloadLike,
        thread: Sequence[PayloadLike],
    ) -> None:
        super().__init__(target.conversation_id)
        self.target = target
        self.primary = primary
        self.thread = list(thread)

    async def execute(self, context: ExecutionContext) -> list[dict[str, Any]]:
        response = await Reply(self.target, self.primary).execute(context)
        thread_ts = response.get("ts") if response.get("ok") else None
        if not thread_ts:
            raise ActionError("couldn't post first message")

        responses = [response]
        for follow_up in self.thread:
            responses.append(await Reply(self.target, follow_up, thread_ts).execute(context))
        return responses


class EphemeralReply(OutboundAction):
    """A message only ``user_id`` can see."""

    def __init__(self, conversation_id: str, user_id: str | None, text: str) -> None:
        if not user_id:
            raise ConfigurationError("user on message is required to send ephemeral reply")
        super().__init__(conversation_id)
        self.user_id = user_id
        self.text = text

    @classmethod
    def for_message(cls, message: "InboundMessage", text: str) -> "EphemeralReply":
        user_id = message.sender.id if message.sender else None
        return cls(message.conversation_id, user_id, text)

    async def execute(self, context: ExecutionContext) -> dict[str, Any]:
        logger.debug(f"[action] Ephemeral reply to {self.user_id} in {self.conversation_id}")
        return await context.api.post_ephemeral(self.conversation_id, self.user_id, self.text)

    def __repr__(self) -> str:
        return f"EphemeralReply(user_id={self.user_id!r}, text={self.text[:40]!r})"


EmojiSource = Union[Sequence[str], Callable[[ExecutionContext], Sequence[str]]]


class EmojisReaction(OutboundAction):
    """Add reactions to the target message, in order."""

    def __init__(self, target: ReplyTarget, emojis: EmojiSource, delay: float = REACTION_DELAY) -> None:
        super().__init__(target.conversation_id)
        self.target = target
        self.timestamp = target.timestamp
        self.emojis = emojis
        self.delay = delay

    def resolve(self, context: ExecutionContext) -> list[str]:
        if callable(self.emojis):
            return list(self.emojis(context))
        return list(self.emojis)

    async def execute(self, context: ExecutionContext) -> list[str]:
        names = self.resolve(context)
        for i, name in enumerate(names):
            if i:
                await asyncio.sleep(self.delay)
            try:
                await context.api.add_reaction(self.conversation_id, self.timestamp, name)
            except Exception as exc:
                raise ActionError(f"error making reaction for `{name}`") from exc
        return names


class EmojiWordReaction(EmojisReaction):
    """Spell ``word`` as reactions using the configured letter map."""

    def __init__(self, target: ReplyTarget, word: str, delay: float = REACTION_DELAY) -> None:
        super().__init__(target, self._letters_for_word, delay)
        self.word = word

    def _letters_for_word(self, context: ExecutionContext) -> list[str]:
        if context.letters is None:
            raise ConfigurationError("Add emoji letters to bot to have emoji word reaction")
        return context.letters.emojis_for_word(self.word)
