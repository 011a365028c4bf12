"""
Channel bindings.
"""

from quipbot.channels.base import ChatApi, SessionInfo, Transport, MESSAGE_EVENT, REACTION_ADDED_EVENT
from quipbot.channels.cli import CLIApi, CLITransport, LocalWorkspace
from quipbot.channels.slack import SlackApi, SlackTransport

__all__ = [
    "ChatApi",
    "SessionInfo",
    "Transport",
    "MESSAGE_EVENT",
    "REACTION_ADDED_EVENT",
    "CLIApi",
    "CLITransport",
    "LocalWorkspace",
    "SlackApi",
    "SlackTransport",
]
