"""
Slack binding.

Uses Slack Bolt over Socket Mode for the event stream and the async Web API
client for everything else:
- SlackTransport: auth.test for the session, ``message`` / ``reaction_added`` events
- SlackApi: chat.postMessage, chat.postEphemeral, reactions.add,
  conversations.history, conversations.replies, conversations.list, users.list

Web API failures surface as ``ApiError``.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit

from loguru import logger
from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_bolt.async_app import AsyncApp
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from quipbot.channels.base import (
    MESSAGE_EVENT,
    REACTION_ADDED_EVENT,
    ChatApi,
    SessionInfo,
    Transport,
)
from quipbot.errors import ApiError, ConfigurationError

# Largest page Slack's list methods accept
PAGE_LIMIT = 999


async def _call(client: AsyncWebClient, method: str, **kwargs: Any) -> dict[str, Any]:
    """Call a Web API method by its dotted name, e.g. ``chat.postMessage``."""
    params = {k: v for k, v in kwargs.items() if v is not None}
    try:
        response = await getattr(client, method.replace(".", "_"))(**params)
    except SlackApiError as exc:
        error = exc.response.get("error", str(exc)) if exc.response is not None else str(exc)
        data = exc.response.data if exc.response is not None else None
        raise ApiError(method, error, data if isinstance(data, dict) else None) from exc
    return dict(response.data) if isinstance(response.data, dict) else {"ok": True}


class SlackApi(ChatApi):
    """Slack Web API.

    Pass either a bot token or an existing client (e.g. ``SlackTransport.app.client``).
    """

    def __init__(self, token: str = "", client: AsyncWebClient | None = None) -> None:
        if client is None:
            if not token:
                raise ConfigurationError("Slack bot token (xoxb-...) is required")
            client = AsyncWebClient(token=token)
        self.client = client

    async def post_message(
        self,
        channel: str,
        *,
        text: str = "",
        attachments: list[dict[str, Any]] | None = None,
        blocks: list[dict[str, Any]] | None = None,
        thread_ts: str | None = None,
    ) -> dict[str, Any]:
        return await _call(
            self.client,
            "chat.postMessage",
            channel=channel,
            text=text,
            attachments=attachments,
            blocks=blocks,
            thread_ts=thread_ts,
        )

    async def post_ephemeral(self, channel: str, user: str, text: str) -> dict[str, Any]:
        return await _call(self.client, "chat.postEphemeral", channel=channel, user=user, text=text)

    async def add_reaction(self, channel: str, timestamp: str, name: str) -> dict[str, Any]:
        return await _call(self.client, "reactions.add", channel=channel, timestamp=timestamp, name=name)

    async def fetch_message(self, channel: str, timestamp: str) -> dict[str, Any] | None:
        response = await _call(
            self.client,
            "conversations.history",
            channel=channel,
            latest=timestamp,
            inclusive=True,
            limit=1,
        )
        for message in response.get("messages") or []:
            if message.get("ts") == timestamp:
                return message

        # Thread replies never appear in history; history returned an earlier top-level message
        try:
            response = await _call(
                self.client,
                "conversations.replies",
                channel=channel,
                ts=timestamp,
                latest=timestamp,
                inclusive=True,
                limit=1,
            )
        except ApiError as exc:
            if exc.error == "thread_not_found":
                return None
            raise
        for message in response.get("messages") or []:
            if message.get("ts") == timestamp:
                return message
        return None

    async def list_channels(self, cursor: str | None = None) -> dict[str, Any]:
        return await _call(
            self.client,
            "conversations.list",
            types="public_channel,private_channel",
            exclude_archived=True,
            limit=PAGE_LIMIT,
            cursor=cursor,
        )

    async def list_direct_conversations(self, cursor: str | None = None) -> dict[str, Any]:
        return await _call(self.client, "conversations.list", types="im", limit=PAGE_LIMIT, cursor=cursor)

    async def list_users(self, cursor: str | None = None) -> dict[str, Any]:
        return await _call(self.client, "users.list", limit=PAGE_LIMIT, cursor=cursor)


class SlackTransport(Transport):
    """
    Slack event stream over Socket Mode.

    Needs a bot token (xoxb-...) and an app-level token (xapp-...) with
    ``connections:write``.
    """

    name = "slack"

    def __init__(self, bot_token: str, app_token: str, app: AsyncApp | None = None) -> None:
        super().__init__()
        if not bot_token:
            raise ConfigurationError("Slack bot token (xoxb-...) is required")
        if not app_token:
            raise ConfigurationError("Slack app-level token (xapp-...) is required for Socket Mode")

        self.app_token = app_token
        self.app = app or AsyncApp(token=bot_token)
        self._handler: AsyncSocketModeHandler | None = None

        self._setup_handlers()

    def _setup_handlers(self) -> None:
        @self.app.event(MESSAGE_EVENT)
        async def handle_message(event: dict[str, Any]) -> None:
            await self._emit(MESSAGE_EVENT, event)

        @self.app.event(REACTION_ADDED_EVENT)
        async def handle_reaction(event: dict[str, Any]) -> None:
            await self._emit(REACTION_ADDED_EVENT, event)

    async def start_session(self) -> SessionInfo:
        response = await _call(self.app.client, "auth.test")
        self.self_user_id = response.get("user_id", "")
        domain = urlsplit(response.get("url", "")).hostname or ""
        logger.info(f"[slack] Authenticated as {response.get('user', 'unknown')} ({self.self_user_id})")
        return SessionInfo(
            user_id=self.self_user_id,
            user_name=response.get("user", ""),
            team_id=response.get("team_id", ""),
            team_name=response.get("team", ""),
            team_domain=domain,
            raw=response,
        )

    async def connect(self) -> None:
        logger.info("[slack] Opening Socket Mode connection")
        self._handler = AsyncSocketModeHandler(self.app, self.app_token)
        await self._handler.start_async()

    async def stop(self) -> None:
        logger.info("[slack] Closing Socket Mode connection")
        if self._handler:
            await self._handler.close_async()
            self._handler = None
