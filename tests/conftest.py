"""
Pytest configuration and shared fixtures for quipbot tests.
"""

import sys
from pathlib import Path
from typing import Any

import pytest

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from quipbot.actions import ExecutionContext  # noqa: E402
from quipbot.channels.base import ChatApi  # noqa: E402
from quipbot.directory import Channel, DirectConversation, User, WorkspaceDirectory  # noqa: E402
from quipbot.message import InboundMessage  # noqa: E402

BOT_ID = "UBOT"

USERS = [
    {"id": "U1", "name": "alice", "real_name": "Alice A"},
    {"id": "U2", "name": "bob"},
    {"id": BOT_ID, "name": "quipbot", "is_bot": True},
]
CHANNELS = [
    {"id": "C1", "name": "general", "is_member": True},
    {"id": "C2", "name": "ops"},
    {"id": "C3", "name": "incidents"},
]
DIRECT = [
    {"id": "D1", "user": "U1"},
]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeApi(ChatApi):
    """ChatApi that records every call and serves a small fixed workspace."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.messages: dict[tuple[str, str], dict[str, Any]] = {}
        self.users = list(USERS)
        self.channels = list(CHANNELS)
        self.direct = list(DIRECT)
        self.fail_reactions: set[str] = set()
        self.post_ok = True
        self._ts = 0

    def _next_ts(self) -> str:
        self._ts += 1
        return f"2000.{self._ts:06d}"

    def calls_to(self, method: str) -> list[dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == method]

    async def post_message(self, channel, *, text="", attachments=None, blocks=None, thread_ts=None):
        self.calls.append(
            (
                "post_message",
                {"channel": channel, "text": text, "attachments": attachments, "blocks": blocks, "thread_ts": thread_ts},
            )
        )
        if not self.post_ok:
            return {"ok": False, "error": "channel_not_found"}
        return {"ok": True, "channel": channel, "ts": self._next_ts()}

    async def post_ephemeral(self, channel, user, text):
        self.calls.append(("post_ephemeral", {"channel": channel, "user": user, "text": text}))
        return {"ok": True}

    async def add_reaction(self, channel, timestamp, name):
        self.calls.append(("add_reaction", {"channel": channel, "timestamp": timestamp, "name": name}))
        if name in self.fail_reactions:
            raise RuntimeError("invalid_name")
        return {"ok": True}

    async def fetch_message(self, channel, timestamp):
        self.calls.append(("fetch_message", {"channel": channel, "timestamp": timestamp}))
        return self.messages.get((channel, timestamp))

    async def list_channels(self, cursor=None):
        self.calls.append(("list_channels", {"cursor": cursor}))
        return {"ok": True, "channels": self.channels}

    async def list_direct_conversations(self, cursor=None):
        self.calls.append(("list_direct_conversations", {"cursor": cursor}))
        return {"ok": True, "channels": self.direct}

    async def list_users(self, cursor=None):
        self.calls.append(("list_users", {"cursor": cursor}))
        return {"ok": True, "members": self.users}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def api():
    return FakeApi()


@pytest.fixture
def directory(api, clock):
    return WorkspaceDirectory.from_api(api, ttl=300, clock=clock)


@pytest.fixture
def context(api):
    return ExecutionContext(api=api)


def make_message(
    text: str = "",
    *,
    conversation_id: str = "C1",
    sender_id: str = "U1",
    timestamp: str = "1000.000001",
    attachments: tuple = (),
    bot_user_id: str = BOT_ID,
) -> InboundMessage:
    """Build a message against the fixed workspace without going through the API."""
    users = {u["id"]: User.from_dict(u) for u in USERS}
    channels = {c["id"]: Channel.from_dict(c) for c in CHANNELS}
    direct = {d["id"]: DirectConversation.from_dict(d) for d in DIRECT}
    return InboundMessage(
        timestamp=timestamp,
        sender_id=sender_id,
        conversation_id=conversation_id,
        text=text,
        attachments=tuple(attachments),
        bot_user_id=bot_user_id,
        sender=users.get(sender_id),
        channel=channels.get(conversation_id),
        direct_conversation=direct.get(conversation_id),
    )


@pytest.fixture
def message_factory():
    return make_message
