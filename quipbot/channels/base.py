"""
Abstract base classes for channels.

A channel binding supplies two collaborators:
- Transport: the persistent event stream (``message`` / ``reaction_added`` events)
- ChatApi: the request/response API used to post, react and list workspace entities

API methods return the platform's response as a plain dict and raise
``ApiError`` when the platform reports ``ok: false``.
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from loguru import logger

# Callback type: receives the raw event payload
EventCallback = Callable[[dict[str, Any]], Awaitable[None]]

MESSAGE_EVENT = "message"
REACTION_ADDED_EVENT = "reaction_added"


@dataclass
class SessionInfo:
    """Identity of the bot and workspace for a connected session."""

    user_id: str
    user_name: str = ""
    team_id: str = ""
    team_name: str = ""
    team_domain: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


class Transport(ABC):
    """Abstract event-stream connection."""

    name: str = "base"

    def __init__(self) -> None:
        self._callbacks: dict[str, list[EventCallback]] = {}
        self.self_user_id: str = ""

    def on(self, event_type: str, callback: EventCallback) -> None:
        """Subscribe ``callback`` to events of ``event_type``."""
        self._callbacks.setdefault(event_type, []).append(callback)

    async def _emit(self, event_type: str, payload: dict[str, Any]) -> None:
        """Deliver an event to its subscribers, in subscription order."""
        for callback in self._callbacks.get(event_type, []):
            result = callback(payload)
            if inspect.isawaitable(result):
                await result

    @abstractmethod
    async def start_session(self) -> SessionInfo:
        """Authenticate and return the bot's identity. Sets ``self_user_id``."""
        ...

    @abstractmethod
    async def connect(self) -> None:
        """Open the event stream and deliver events until stopped."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Close the event stream."""
        ...


class ChatApi(ABC):
    """Abstract request/response API."""

    @abstractmethod
    async def post_message(
        self,
        channel: str,
        *,
        text: str = "",
        attachments: list[dict[str, Any]] | None = None,
        blocks: list[dict[str, Any]] | None = None,
        thread_ts: str | None = None,
    ) -> dict[str, Any]:
        """Post a message; the response carries the new message's ``ts``."""
        ...

    @abstractmethod
    async def post_ephemeral(self, channel: str, user: str, text: str) -> dict[str, Any]:
        """Post a message only ``user`` can see."""
        ...

    @abstractmethod
    async def add_reaction(self, channel: str, timestamp: str, name: str) -> dict[str, Any]:
        ...

    @abstractmethod
    async def fetch_message(self, channel: str, timestamp: str) -> dict[str, Any] | None:
        """Return the raw message at ``timestamp`` in ``channel``, if any."""
        ...

    @abstractmethod
    async def list_channels(self, cursor: str | None = None) -> dict[str, Any]:
        """One page of named channels under ``channels``."""
        ...

    @abstractmethod
    async def list_direct_conversations(self, cursor: str | None = None) -> dict[str, Any]:
        """One page of direct-message conversations under ``channels``."""
        ...

    @abstractmethod
    async def list_users(self, cursor: str | None = None) -> dict[str, Any]:
        """One page of users under ``members``."""
        ...


def next_cursor(response: dict[str, Any]) -> str | None:
    """Return the pagination cursor of a response, or None on the last page."""
    metadata = response.get("response_metadata") or {}
    cursor = metadata.get("next_cursor")
    if not cursor:
        return None
    logger.debug(f"[api] Following cursor {cursor[:12]}...")
    return cursor
