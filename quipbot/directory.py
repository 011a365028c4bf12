"""
Workspace directory — cached lookups of channels, direct conversations and users.

Each entity list is a ``CachedRemoteTable`` filled by following the API's
cursor pagination. Tables are passed in explicitly; ``from_api`` builds the
default set. ``prime()`` warms every table before the bot goes live.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from loguru import logger

from quipbot.cache import CachedRemoteTable
from quipbot.channels.base import ChatApi, next_cursor
from quipbot.errors import ApiError, ResolutionError
from quipbot.utils import MINUTES


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class User:
    id: str
    name: str = ""
    real_name: str = ""
    display_name: str = ""
    is_bot: bool = False
    deleted: bool = False
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        profile = data.get("profile") or {}
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            real_name=data.get("real_name") or profile.get("real_name", ""),
            display_name=profile.get("display_name", ""),
            is_bot=bool(data.get("is_bot", False)),
            deleted=bool(data.get("deleted", False)),
            raw=data,
        )


@dataclass(frozen=True)
class Channel:
    id: str
    name: str = ""
    is_private: bool = False
    is_archived: bool = False
    is_member: bool = False
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Channel":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            is_private=bool(data.get("is_private", False)),
            is_archived=bool(data.get("is_archived", False)),
            is_member=bool(data.get("is_member", False)),
            raw=data,
        )


@dataclass(frozen=True)
class DirectConversation:
    """A direct-message conversation between the bot and one user."""

    id: str
    user: str = ""
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DirectConversation":
        return cls(id=data["id"], user=data.get("user", ""), raw=data)


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

async def paginate(
    fetch_page: Callable[[str | None], Awaitable[dict[str, Any]]],
    key: str,
    method: str = "list",
) -> list[dict[str, Any]]:
    """Collect ``response[key]`` across pages until no ``next_cursor`` is left."""
    items: list[dict[str, Any]] = []
    cursor: str | None = None
    pages = 0

    while True:
        response = await fetch_page(cursor)
        if not response.get("ok"):
            raise ApiError(method, response.get("error", "unknown_error"), response)

        items.extend(response.get(key) or [])
        pages += 1

        cursor = next_cursor(response)
        if cursor is None:
            break

    logger.debug(f"[directory] {method}: {len(items)} item(s) over {pages} page(s)")
    return items


# ---------------------------------------------------------------------------
# Directory
# ---------------------------------------------------------------------------

class WorkspaceDirectory:
    """Cached read layer over workspace channels, direct conversations and users.

    Usage::

        directory = WorkspaceDirectory.from_api(api)
        await directory.prime()
        general = await directory.channel_named("general")
    """

    def __init__(
        self,
        channels: CachedRemoteTable[list[Channel]],
        direct_conversations: CachedRemoteTable[list[DirectConversation]],
        users: CachedRemoteTable[list[User]],
    ) -> None:
        self._channels = channels
        self._direct_conversations = direct_conversations
        self._users = users

    @classmethod
    def from_api(
        cls,
        api: ChatApi,
        *,
        ttl: float = 5 * MINUTES,
        stale_while_refresh: bool = False,
        clock: Callable[[], float] | None = None,
    ) -> "WorkspaceDirectory":
        """Build the default tables, each paginating through ``api``."""

        async def fetch_channels() -> list[Channel]:
            data = await paginate(api.list_channels, "channels", "conversations.list")
            return [Channel.from_dict(d) for d in data]

        async def fetch_direct_conversations() -> list[DirectConversation]:
            data = await paginate(api.list_direct_conversations, "channels", "conversations.list(im)")
            return [DirectConversation.from_dict(d) for d in data]

        async def fetch_users() -> list[User]:
            data = await paginate(api.list_users, "members", "users.list")
            return [User.from_dict(d) for d in data]

        options: dict[str, Any] = {"ttl": ttl, "stale_while_refresh": stale_while_refresh}
        if clock is not None:
            options["clock"] = clock

        return cls(
            channels=CachedRemoteTable(fetch_channels, name="channels", **options),
            direct_conversations=CachedRemoteTable(
                fetch_direct_conversations, name="direct_conversations", **options
            ),
            users=CachedRemoteTable(fetch_users, name="users", **options),
        )

    @property
    def tables(self) -> list[CachedRemoteTable[Any]]:
        return [self._channels, self._direct_conversations, self._users]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def prime(self) -> None:
        """Fetch every table. Any failure propagates."""
        await asyncio.gather(*(table.prime() for table in self.tables))
        logger.info(
            f"[directory] Primed: {len(await self.channels())} channel(s), "
            f"{len(await self.direct_conversations())} direct conversation(s), "
            f"{len(await self.users())} user(s)"
        )

    async def refresh_all(self) -> None:
        await asyncio.gather(*(table.refresh() for table in self.tables))

    def invalidate(self) -> None:
        for table in self.tables:
            table.invalidate()

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    async def channels(self) -> list[Channel]:
        return await self._channels.get()

    async def direct_conversations(self) -> list[DirectConversation]:
        return await self._direct_conversations.get()

    async def users(self) -> list[User]:
        return await self._users.get()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def channel(self, channel_id: str) -> Channel | None:
        return next((c for c in await self.channels() if c.id == channel_id), None)

    async def channel_named(self, name: str) -> Channel | None:
        name = name[1:] if name.startswith("#") else name
        return next((c for c in await self.channels() if c.name == name), None)

    async def require_channel_named(self, name: str) -> Channel:
        channel = await self.channel_named(name)
        if channel is None:
            raise ResolutionError(f"No channel named `{name}` found")
        return channel

    async def direct_conversation(self, conversation_id: str) -> DirectConversation | None:
        return next(
            (d for d in await self.direct_conversations() if d.id == conversation_id),
            None,
        )

    async def user(self, user_id: str) -> User | None:
        return next((u for u in await self.users() if u.id == user_id), None)

    async def user_named(self, name: str) -> User | None:
        return next((u for u in await self.users() if u.name == name), None)
