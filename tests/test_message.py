"""
Tests for InboundMessage / ReactionEvent construction and derived fields.
"""

import pytest

from quipbot.actions import EmojisReaction, EmojiWordReaction, EphemeralReply, Reply, ReplyWithThread
from quipbot.message import InboundMessage, ReactionEvent
from quipbot.utils import normalize_emoji, slack_links


class TestInboundMessage:
    @pytest.mark.asyncio
    async def test_build_resolves_entities(self, directory):
        payload = {"type": "message", "user": "U1", "channel": "C1", "text": "hello", "ts": "1.000001"}
        message = await InboundMessage.build(payload, directory, "UBOT")

        assert message.sender.name == "alice"
        assert message.sender_name == "alice"
        assert message.channel_name == "general"
        assert message.is_direct_message is False
        assert message.raw is payload

    @pytest.mark.asyncio
    async def test_build_direct_message(self, directory):
        payload = {"user": "U1", "channel": "D1", "text": "hi", "ts": "1.000001"}
        message = await InboundMessage.build(payload, directory, "UBOT")

        assert message.is_direct_message is True
        assert message.directed_at_bot is True
        assert message.channel_name is None

    def test_bot_mention(self, message_factory):
        message = message_factory("<@UBOT>: deploy   prod")
        assert message.mentions_bot is True
        assert message.directed_at_bot is True
        assert message.resolved_text == "deploy   prod"
        assert message.text == "<@UBOT>: deploy   prod"

    def test_other_user_mention(self, message_factory):
        message = message_factory("<@U2> look at this")
        assert message.mentions_bot is False
        assert message.directed_at_bot is False
        assert message.resolved_text == "look at this"

    def test_mention_not_at_start(self, message_factory):
        message = message_factory("hey <@UBOT>")
        assert message.mentions_bot is False
        assert message.resolved_text == "hey <@UBOT>"

    def test_empty_text(self, message_factory):
        message = message_factory("")
        assert message.resolved_text == ""
        assert message.mentions_bot is False
        assert message.extracted_links == []

    def test_extracted_links_memoized(self, message_factory):
        message = message_factory("see <https://github.com/a/b|repo> and <http://example.com>")
        links = message.extracted_links
        assert [link.url for link in links] == ["https://github.com/a/b", "http://example.com"]
        assert links[0].label == "repo"
        assert message.extracted_links is links

    def test_reply_target_is_message(self, message_factory):
        message = message_factory("hi", conversation_id="C1", timestamp="5.5")
        target = message.reply_target
        assert (target.conversation_id, target.timestamp, target.is_share) == ("C1", "5.5", False)

    def test_reply_target_shared_message(self, message_factory):
        shared = {"is_share": True, "channel_id": "C2", "ts": "9.9", "text": "shared text"}
        message = message_factory("", conversation_id="D1", attachments=(shared,))
        assert message.shared_message is shared
        target = message.reply_target
        assert (target.conversation_id, target.timestamp, target.is_share) == ("C2", "9.9", True)

    def test_share_outside_dm_is_ignored(self, message_factory):
        shared = {"is_share": True, "channel_id": "C2", "ts": "9.9"}
        message = message_factory("", conversation_id="C1", attachments=(shared,))
        assert message.shared_message is None
        assert message.reply_target.conversation_id == "C1"

    def test_response_helpers(self, message_factory):
        message = message_factory("hi", conversation_id="C1", timestamp="5.5")

        reply = message.reply("yo")
        assert isinstance(reply, Reply)
        assert reply.text == "yo"
        assert reply.thread_timestamp is None

        threaded = message.reply_thread("in thread")
        assert threaded.thread_timestamp == "5.5"

        assert isinstance(message.reply_with_thread("a", ["b"]), ReplyWithThread)

        ephemeral = message.ephemeral("psst")
        assert isinstance(ephemeral, EphemeralReply)
        assert ephemeral.user_id == "U1"

        reaction = message.emoji_reaction("zero", "x")
        assert isinstance(reaction, EmojisReaction)
        assert reaction.emojis == ["zero", "x"]
        assert isinstance(message.emoji_word_reaction("ox"), EmojiWordReaction)


class TestReactionEvent:
    @pytest.mark.asyncio
    async def test_build_fetches_target(self, api, directory):
        api.messages[("C1", "7.7")] = {"user": "U2", "text": "ship it", "ts": "7.7"}
        payload = {
            "type": "reaction_added",
            "user": "U1",
            "reaction": "thumbsup::skin-tone-3",
            "item": {"type": "message", "channel": "C1", "ts": "7.7"},
            "event_ts": "8.8",
        }
        event = await ReactionEvent.build(payload, directory, api, "UBOT")

        assert event.emoji_name == "thumbsup"
        assert event.skin_tone == "skin-tone-3"
        assert event.reacting_user.name == "alice"
        assert event.timestamp == "8.8"
        assert event.target_message.text == "ship it"
        assert event.target_message.conversation_id == "C1"
        assert event.target_message.sender_name == "bob"

    @pytest.mark.asyncio
    async def test_missing_target(self, api, directory):
        payload = {"user": "U1", "reaction": "eyes", "item": {"type": "message", "channel": "C1", "ts": "0.1"}}
        event = await ReactionEvent.build(payload, directory, api)
        assert event.target_message is None

    @pytest.mark.asyncio
    async def test_non_message_item(self, api, directory):
        payload = {"user": "U1", "reaction": "eyes", "item": {"type": "file", "file": "F1"}}
        event = await ReactionEvent.build(payload, directory, api)
        assert event.target_message is None
        assert api.calls_to("fetch_message") == []


class TestEmojiHelpers:
    def test_normalize_emoji(self):
        assert normalize_emoji("wave") == ("wave", None)
        assert normalize_emoji(":wave:") == ("wave", None)
        assert normalize_emoji("wave::skin-tone-4") == ("wave", "skin-tone-4")
        assert normalize_emoji(":wave::skin-tone-4:") == ("wave", "skin-tone-4")

    def test_slack_links(self):
        links = slack_links("<https://WWW.Example.com/a?b=1|x> <mailto:a@b.c>")
        assert len(links) == 1
        assert links[0].host == "www.example.com"
        assert links[0].path == "/a"
        assert slack_links(None) == []
