"""quipbot — A rule-based Slack bot framework."""

from quipbot.actions import (
    EmojisReaction,
    EmojiWordReaction,
    EphemeralReply,
    ExecutionContext,
    MessagePayload,
    OutboundAction,
    Reply,
    ReplyTarget,
    ReplyWithThread,
)
from quipbot.bot import Bot, BotConfig
from quipbot.cache import CachedRemoteTable
from quipbot.channels.base import ChatApi, SessionInfo, Transport
from quipbot.channels.cli import CLIApi, CLITransport
from quipbot.directory import Channel, DirectConversation, User, WorkspaceDirectory
from quipbot.errors import ActionError, ApiError, ConfigurationError, QuipbotError, ResolutionError, format_error
from quipbot.letters import EmojiLetterMap
from quipbot.matcher import Matcher, Outcome, UrlMatch, matcher
from quipbot.message import InboundMessage, ReactionEvent
from quipbot.pickers import BoundedRandomPicker, RoundRobinPicker
from quipbot.registry import HandlerRegistry
from quipbot.throttle import KeyedThrottle
from quipbot.utils import DAYS, HOURS, MINUTES, SECONDS, Link, normalize_emoji, slack_links

__version__ = "0.1.0"
__all__ = [
    # Core
    "Bot", "BotConfig", "HandlerRegistry",
    # Matching
    "Matcher", "Outcome", "UrlMatch", "matcher", "KeyedThrottle",
    # Events
    "InboundMessage", "ReactionEvent",
    # Actions
    "OutboundAction", "Reply", "ReplyWithThread", "EphemeralReply",
    "EmojisReaction", "EmojiWordReaction", "ExecutionContext", "MessagePayload", "ReplyTarget",
    # Workspace
    "WorkspaceDirectory", "CachedRemoteTable", "User", "Channel", "DirectConversation",
    # Emoji
    "EmojiLetterMap", "BoundedRandomPicker", "RoundRobinPicker", "normalize_emoji",
    # Channels
    "ChatApi", "Transport", "SessionInfo", "CLIApi", "CLITransport",
    # Errors
    "QuipbotError", "ConfigurationError", "ResolutionError", "ActionError", "ApiError", "format_error",
    # Utils
    "Link", "slack_links", "SECONDS", "MINUTES", "HOURS", "DAYS",
]
