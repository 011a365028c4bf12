"""
Console binding for local testing.

Reads lines from stdin and prints whatever the bot sends. The workspace is a
single user talking to the bot in one direct conversation, plus one channel:

    hello               direct message to the bot
    #general hello      message in the channel
    +thumbsup           react to your previous message
"""

from __future__ import annotations

import asyncio
import sys
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator

from loguru import logger

from quipbot.channels.base import (
    MESSAGE_EVENT,
    REACTION_ADDED_EVENT,
    ChatApi,
    SessionInfo,
    Transport,
)


@dataclass
class LocalWorkspace:
    user_id: str = "U_LOCAL"
    user_name: str = "you"
    bot_user_id: str = "U_BOT"
    bot_name: str = "Bot"
    direct_id: str = "D_LOCAL"
    channel_id: str = "C_LOCAL"
    channel_name: str = "general"


class CLIApi(ChatApi):
    """Prints outbound actions to stdout and keeps a message history for lookups."""

    def __init__(self, workspace: LocalWorkspace | None = None) -> None:
        self.workspace = workspace or LocalWorkspace()
        self.history: dict[tuple[str, str], dict[str, Any]] = {}
        self._counter = 0

    def next_ts(self) -> str:
        self._counter += 1
        return f"{int(time.time())}.{self._counter:06d}"

    def record(self, channel: str, message: dict[str, Any]) -> None:
        self.history[(channel, message["ts"])] = message

    def _where(self, channel: str) -> str:
        if channel == self.workspace.channel_id:
            return f"#{self.workspace.channel_name} "
        return ""

    async def post_message(
        self,
        channel: str,
        *,
        text: str = "",
        attachments: list[dict[str, Any]] | None = None,
        blocks: list[dict[str, Any]] | None = None,
        thread_ts: str | None = None,
    ) -> dict[str, Any]:
        ts = self.next_ts()
        thread = " (thread)" if thread_ts else ""
        if text:
            print(f"\n{self._where(channel)}{self.workspace.bot_name}{thread}: {text}\n")
        for attachment in attachments or []:
            body = attachment.get("text") or attachment.get("fallback") or attachment.get("title", "")
            print(f"\n{self.workspace.bot_name}{thread}: [Attachment: {body}]\n")
        if blocks:
            print(f"\n{self.workspace.bot_name}{thread}: [{len(blocks)} block(s)]\n")

        message = {"ts": ts, "user": self.workspace.bot_user_id, "text": text, "thread_ts": thread_ts}
        self.record(channel, message)
        return {"ok": True, "channel": channel, "ts": ts, "message": message}

    async def post_ephemeral(self, channel: str, user: str, text: str) -> dict[str, Any]:
        print(f"\n{self._where(channel)}{self.workspace.bot_name} (only visible to you): {text}\n")
        return {"ok": True, "message_ts": self.next_ts()}

    async def add_reaction(self, channel: str, timestamp: str, name: str) -> dict[str, Any]:
        print(f"[reaction +{name} on {timestamp}]")
        return {"ok": True}

    async def fetch_message(self, channel: str, timestamp: str) -> dict[str, Any] | None:
        return self.history.get((channel, timestamp))

    async def list_channels(self, cursor: str | None = None) -> dict[str, Any]:
        ws = self.workspace
        return {"ok": True, "channels": [{"id": ws.channel_id, "name": ws.channel_name, "is_member": True}]}

    async def list_direct_conversations(self, cursor: str | None = None) -> dict[str, Any]:
        ws = self.workspace
        return {"ok": True, "channels": [{"id": ws.direct_id, "user": ws.user_id, "is_im": True}]}

    async def list_users(self, cursor: str | None = None) -> dict[str, Any]:
        ws = self.workspace
        return {
            "ok": True,
            "members": [
                {"id": ws.user_id, "name": ws.user_name},
                {"id": ws.bot_user_id, "name": ws.bot_name.lower(), "is_bot": True},
            ],
        }


class CLITransport(Transport):
    """
    Console event stream.

    Usage::

        api = CLIApi()
        bot = Bot(CLITransport(api), api)
        await bot.start()
    """

    name = "cli"

    def __init__(self, api: CLIApi, prompt: str = "You: ") -> None:
        super().__init__()
        self.api = api
        self.workspace = api.workspace
        self.prompt = prompt
        self._running = False
        self._last: tuple[str, str] | None = None

    async def start_session(self) -> SessionInfo:
        ws = self.workspace
        self.self_user_id = ws.bot_user_id
        return SessionInfo(
            user_id=ws.bot_user_id,
            user_name=ws.bot_name,
            team_id="T_LOCAL",
            team_name="local",
            team_domain="localhost",
        )

    def parse_line(self, line: str) -> tuple[str, dict[str, Any]] | None:
        """Turn one input line into an ``(event_type, payload)`` pair."""
        text = line.strip()
        if not text:
            return None

        ws = self.workspace
        if text.startswith("+"):
            if self._last is None:
                print("[quipbot CLI] Nothing to react to yet.")
                return None
            channel, ts = self._last
            return REACTION_ADDED_EVENT, {
                "type": REACTION_ADDED_EVENT,
                "user": ws.user_id,
                "reaction": text[1:].strip(":"),
                "item": {"type": "message", "channel": channel, "ts": ts},
                "event_ts": self.api.next_ts(),
            }

        channel = ws.direct_id
        prefix = f"#{ws.channel_name}"
        if text == prefix or text.startswith(prefix + " "):
            channel = ws.channel_id
            text = text[len(prefix):].strip()

        payload = {
            "type": MESSAGE_EVENT,
            "user": ws.user_id,
            "channel": channel,
            "text": text,
            "ts": self.api.next_ts(),
        }
        self.api.record(channel, payload)
        self._last = (channel, payload["ts"])
        return MESSAGE_EVENT, payload

    async def lines(self) -> AsyncIterator[str]:
        """Yield input lines until EOF or ``stop()``; blocking reads run off the event loop."""
        while self._running:
            line = await asyncio.to_thread(self._read_line)
            if not line:
                return
            yield line

    async def connect(self) -> None:
        """Turn each console line into an event until EOF, Ctrl+C or ``stop()``."""
        ws = self.workspace
        print(
            f"[quipbot CLI] Talking to {ws.bot_name} as @{ws.user_name}. "
            f"'#{ws.channel_name} ...' posts in the channel, '+emoji' reacts. Ctrl+C to quit.\n"
        )

        self._running = True
        try:
            async for line in self.lines():
                event = self.parse_line(line)
                if event is not None:
                    await self._deliver(*event)
        except KeyboardInterrupt:
            print("\n[quipbot CLI] Bye!")
        finally:
            self._running = False

    async def _deliver(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            await self._emit(event_type, payload)
        except Exception as exc:
            logger.error(f"[cli] {event_type} from console failed: {exc}")
            print(f"\n[Error] {exc}\n")

    def _read_line(self) -> str:
        sys.stdout.write(self.prompt)
        sys.stdout.flush()
        return sys.stdin.readline()

    async def stop(self) -> None:
        self._running = False
        logger.debug("[cli] Console transport stopped")
