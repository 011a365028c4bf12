"""
Tests for the workspace directory and pagination.
"""

import pytest

from quipbot.directory import WorkspaceDirectory, paginate
from quipbot.errors import ApiError, ResolutionError


class PagedApi:
    """Serves ``users.list`` over several cursor pages."""

    def __init__(self, pages):
        self.pages = pages
        self.cursors = []

    async def list_users(self, cursor=None):
        self.cursors.append(cursor)
        index = int(cursor) if cursor else 0
        response = {"ok": True, "members": self.pages[index]}
        if index + 1 < len(self.pages):
            response["response_metadata"] = {"next_cursor": str(index + 1)}
        else:
            response["response_metadata"] = {"next_cursor": ""}
        return response


class TestPaginate:
    @pytest.mark.asyncio
    async def test_follows_cursor_until_absent(self):
        api = PagedApi([[{"id": "U1"}], [{"id": "U2"}], [{"id": "U3"}]])
        items = await paginate(api.list_users, "members", "users.list")
        assert [i["id"] for i in items] == ["U1", "U2", "U3"]
        assert api.cursors == [None, "1", "2"]

    @pytest.mark.asyncio
    async def test_not_ok_raises(self):
        async def fetch(cursor=None):
            return {"ok": False, "error": "invalid_auth"}

        with pytest.raises(ApiError, match="invalid_auth") as excinfo:
            await paginate(fetch, "members", "users.list")
        assert excinfo.value.method == "users.list"


class TestWorkspaceDirectory:
    @pytest.mark.asyncio
    async def test_prime_fetches_every_table(self, api, directory):
        await directory.prime()
        assert len(api.calls_to("list_channels")) == 1
        assert len(api.calls_to("list_direct_conversations")) == 1
        assert len(api.calls_to("list_users")) == 1

        # Served from cache afterwards
        await directory.user("U1")
        await directory.channel("C1")
        assert len(api.calls_to("list_users")) == 1
        assert len(api.calls_to("list_channels")) == 1

    @pytest.mark.asyncio
    async def test_lookups(self, directory):
        assert (await directory.user("U1")).name == "alice"
        assert (await directory.user_named("bob")).id == "U2"
        assert (await directory.channel("C2")).name == "ops"
        assert (await directory.direct_conversation("D1")).user == "U1"
        assert await directory.user("U404") is None
        assert await directory.direct_conversation("C1") is None

    @pytest.mark.asyncio
    async def test_channel_named_accepts_hash(self, directory):
        assert (await directory.channel_named("#general")).id == "C1"
        assert (await directory.channel_named("general")).id == "C1"

    @pytest.mark.asyncio
    async def test_require_channel_named(self, directory):
        with pytest.raises(ResolutionError, match="nope"):
            await directory.require_channel_named("nope")

    @pytest.mark.asyncio
    async def test_expired_tables_refetch(self, api, directory, clock):
        await directory.prime()
        clock.advance(300)
        await directory.users()
        assert len(api.calls_to("list_users")) == 2

    @pytest.mark.asyncio
    async def test_refresh_all_and_invalidate(self, api, directory):
        await directory.prime()
        await directory.refresh_all()
        assert len(api.calls_to("list_users")) == 2

        directory.invalidate()
        assert all(table.is_expired for table in directory.tables)

    @pytest.mark.asyncio
    async def test_prime_failure_propagates(self, api):
        async def broken(cursor=None):
            return {"ok": False, "error": "not_authed"}

        api.list_channels = broken
        directory = WorkspaceDirectory.from_api(api)
        with pytest.raises(ApiError, match="not_authed"):
            await directory.prime()
