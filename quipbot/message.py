"""
Inbound events, normalized.

InboundMessage and ReactionEvent are read-only views over a raw event plus
the directory entities it refers to (sender, channel, direct conversation).
Both are built by async factories that resolve those entities first.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import cached_property
from typing import TYPE_CHECKING, Any, Sequence

from quipbot.actions import (
    EmojisReaction,
    EmojiWordReaction,
    EphemeralReply,
    PayloadLike,
    Reply,
    ReplyTarget,
    ReplyWithThread,
)
from quipbot.directory import Channel, DirectConversation, User, WorkspaceDirectory
from quipbot.utils import Link, normalize_emoji, slack_links

if TYPE_CHECKING:
    from quipbot.channels.base import ChatApi

# A mention of a user at the very start of the text: "<@U123>: rest"
_MENTION_RE = re.compile(r"^<@(\w+)>:?\s*(.*)", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class InboundMessage:
    """A message received from the event stream."""

    timestamp: str
    sender_id: str
    conversation_id: str
    text: str = ""
    attachments: tuple[dict[str, Any], ...] = ()
    subtype: str | None = None
    thread_timestamp: str | None = None
    bot_user_id: str = ""

    sender: User | None = None
    channel: Channel | None = None
    direct_conversation: DirectConversation | None = None

    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    async def build(
        cls,
        payload: dict[str, Any],
        directory: WorkspaceDirectory,
        bot_user_id: str = "",
    ) -> "InboundMessage":
        """Build a message from a raw event, resolving its entities."""
        sender_id = payload.get("user", "")
        conversation_id = payload.get("channel", "")

        sender = await directory.user(sender_id) if sender_id else None
        channel = await directory.channel(conversation_id)
        direct = await directory.direct_conversation(conversation_id)

        return cls(
            timestamp=payload.get("ts", ""),
            sender_id=sender_id,
            conversation_id=conversation_id,
            text=payload.get("text") or "",
            attachments=tuple(payload.get("attachments") or ()),
            subtype=payload.get("subtype"),
            thread_timestamp=payload.get("thread_ts"),
            bot_user_id=bot_user_id,
            sender=sender,
            channel=channel,
            direct_conversation=direct,
            raw=payload,
        )

    # ------------------------------------------------------------------
    # Derived fields
    # ------------------------------------------------------------------

    @property
    def _mention(self) -> re.Match[str] | None:
        return _MENTION_RE.match(self.text) if self.text else None

    @property
    def resolved_text(self) -> str:
        """The text, minus a leading @mention if there is one."""
        match = self._mention
        if match:
            return match.group(2)
        return self.text

    @property
    def mentions_bot(self) -> bool:
        match = self._mention
        return bool(match and self.bot_user_id and match.group(1) == self.bot_user_id)

    @property
    def is_direct_message(self) -> bool:
        return self.direct_conversation is not None

    @property
    def directed_at_bot(self) -> bool:
        return self.is_direct_message or self.mentions_bot

    @property
    def channel_name(self) -> str | None:
        """Channel name without the leading ``#``, if sent in a named channel."""
        if self.channel and self.channel.name:
            return self.channel.name
        return None

    @property
    def sender_name(self) -> str | None:
        if self.sender:
            return self.sender.name
        return None

    @cached_property
    def extracted_links(self) -> list[Link]:
        return slack_links(self.text)

    @property
    def shared_message(self) -> dict[str, Any] | None:
        """The message shared into a direct conversation, if this is a share."""
        if self.is_direct_message and self.attachments:
            first = self.attachments[0]
            if first.get("is_share"):
                return first
        return None

    @cached_property
    def reply_target(self) -> ReplyTarget:
        shared = self.shared_message
        if shared is not None:
            return ReplyTarget.from_attachment(shared)
        return ReplyTarget(self.conversation_id, self.timestamp)

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def reply(self, payload: PayloadLike) -> Reply:
        return Reply(self.reply_target, payload)

    def reply_thread(self, payload: PayloadLike) -> Reply:
        """Reply in a thread under the message instead of in the channel."""
        target = self.reply_target
        return Reply(target, payload, thread_timestamp=target.timestamp)

    def reply_with_thread(self, primary: PayloadLike, thread: Sequence[PayloadLike]) -> ReplyWithThread:
        return ReplyWithThread(self.reply_target, primary, thread)

    def ephemeral(self, text: str) -> EphemeralReply:
        """Reply visible only to the sender."""
        return EphemeralReply.for_message(self, text)

    def emoji_reaction(self, *emojis: str) -> EmojisReaction:
        return EmojisReaction(self.reply_target, list(emojis))

    def emoji_word_reaction(self, word: str) -> EmojiWordReaction:
        return EmojiWordReaction(self.reply_target, word)


@dataclass(frozen=True)
class ReactionEvent:
    """A reaction added to a message."""

    emoji_name: str
    reacting_user_id: str
    timestamp: str
    item_conversation_id: str = ""
    item_timestamp: str = ""
    skin_tone: str | None = None
    reacting_user: User | None = None
    target_message: InboundMessage | None = None

    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    async def build(
        cls,
        payload: dict[str, Any],
        directory: WorkspaceDirectory,
        api: "ChatApi",
        bot_user_id: str = "",
    ) -> "ReactionEvent":
        """Build a reaction event, fetching the message it was added to.

        The event only references the item, so the message itself comes from
        ``api.fetch_message``. Reactions on non-messages have no target.
        """
        emoji, skin_tone = normalize_emoji(payload.get("reaction", ""))
        user_id = payload.get("user", "")
        item = payload.get("item") or {}
        item_channel = item.get("channel", "")
        item_ts = item.get("ts", "")

        reacting_user = await directory.user(user_id) if user_id else None

        target: InboundMessage | None = None
        if item.get("type", "message") == "message" and item_channel and item_ts:
            data = await api.fetch_message(item_channel, item_ts)
            if data:
                target = await InboundMessage.build(
                    {**data, "channel": item_channel}, directory, bot_user_id
                )

        return cls(
            emoji_name=emoji,
            skin_tone=skin_tone,
            reacting_user_id=user_id,
            reacting_user=reacting_user,
            timestamp=payload.get("event_ts") or payload.get("ts", ""),
            item_conversation_id=item_channel,
            item_timestamp=item_ts,
            target_message=target,
            raw=payload,
        )
