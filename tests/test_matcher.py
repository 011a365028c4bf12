"""
Tests for Matcher chains and combinators.
"""

import re

import pytest

from quipbot.errors import ConfigurationError
from quipbot.matcher import Matcher, Outcome, Step, UrlMatch, matcher
from quipbot.throttle import KeyedThrottle


class Recording(Step):
    """Step with a fixed outcome that counts its evaluations."""

    def __init__(self, outcome: Outcome) -> None:
        self.outcome = outcome
        self.calls = 0

    def evaluate(self, message):
        self.calls += 1
        return self.outcome


def recording(matched: bool, *extracted):
    step = Recording(Outcome(matched, tuple(extracted)))
    return Matcher(step), step


class TestTextSteps:
    def test_starts_with_extracts_remainder(self, message_factory):
        m = matcher.starts_with("foo")
        assert m.evaluate(message_factory("foo bar")) == Outcome(True, ("bar",))
        assert m.evaluate(message_factory("food")) == Outcome(True, ("d",))
        assert m.evaluate(message_factory("baz")).matched is False

    def test_starts_with_exact_prefix(self, message_factory):
        assert matcher.starts_with("foo").evaluate(message_factory("foo")) == Outcome(True, ("",))

    def test_starts_with_uses_resolved_text(self, message_factory):
        outcome = matcher.starts_with("deploy").evaluate(message_factory("<@UBOT> deploy prod"))
        assert outcome == Outcome(True, ("prod",))

    def test_contains(self, message_factory):
        m = matcher.contains("xox", "opx")
        assert m.evaluate(message_factory("an opx here")) == Outcome(True, ())
        assert m.evaluate(message_factory("nothing")).matched is False

    def test_matches_emits_first_match(self, message_factory):
        m = matcher.matches(r"nope", re.compile(r"(\d{1,2}):(\d{2})"))
        outcome = m.evaluate(message_factory("meet at 10:30"))
        assert outcome.matched
        (match,) = outcome.extracted
        assert match.group(0) == "10:30"
        assert match.group(1) == "10"

    def test_message_is(self, message_factory):
        m = matcher.message_is("ping", "pong")
        assert m.evaluate(message_factory("ping")).matched
        assert not m.evaluate(message_factory("ping!")).matched

    def test_needs_arguments(self):
        with pytest.raises(ConfigurationError):
            matcher.contains()


class TestContextSteps:
    def test_directed_at_bot(self, message_factory):
        assert matcher.directed_at_bot.evaluate(message_factory("hi", conversation_id="D1")).matched
        assert matcher.directed_at_bot.evaluate(message_factory("<@UBOT> hi")).matched
        assert not matcher.directed_at_bot.evaluate(message_factory("hi")).matched

    def test_mentions_bot_and_is_im(self, message_factory):
        assert not matcher.mentions_bot.evaluate(message_factory("hi", conversation_id="D1")).matched
        assert matcher.is_im.evaluate(message_factory("hi", conversation_id="D1")).matched
        assert not matcher.is_im.evaluate(message_factory("hi")).matched

    def test_in_channel_normalizes_hash(self, message_factory):
        msg = message_factory("hi", conversation_id="C2")
        assert matcher.in_channel("#ops").evaluate(msg).matched
        assert matcher.in_channels("general", "ops").evaluate(msg).matched
        assert not matcher.in_channel("general").evaluate(msg).matched
        assert not matcher.in_channel("ops").evaluate(message_factory("hi", conversation_id="D1")).matched

    def test_by_user(self, message_factory):
        assert matcher.by_user("@alice").evaluate(message_factory("hi")).matched
        assert not matcher.by_user("bob").evaluate(message_factory("hi")).matched


class TestUrl:
    TEXT = (
        "<https://github.com/quipbot/quipbot/pull/12> "
        "<https://www.github.com/quipbot/quipbot/issues/3|issue> "
        "<https://gitlab.com/x/pull/1>"
    )

    def test_host_filter(self, message_factory):
        outcome = matcher.url("GitHub.com").evaluate(message_factory(self.TEXT))
        assert outcome.matched
        (found,) = outcome.extracted
        assert all(isinstance(m, UrlMatch) for m in found)
        assert [m.url for m in found] == [
            "https://github.com/quipbot/quipbot/pull/12",
            "https://www.github.com/quipbot/quipbot/issues/3",
        ]

    def test_path_filters(self, message_factory):
        msg = message_factory(self.TEXT)
        (found,) = matcher.url("github.com", path_contains="/pull/").evaluate(msg).extracted
        assert len(found) == 1

        (found,) = matcher.url("github.com", path_starts_with="/quipbot/").evaluate(msg).extracted
        assert len(found) == 2

        (found,) = matcher.url("github.com", pathname="/quipbot/quipbot/issues/3").evaluate(msg).extracted
        assert found[0].link.label == "issue"

    def test_path_like_attaches_match(self, message_factory):
        outcome = matcher.url("github.com", path_like=r"/pull/(\d+)").evaluate(message_factory(self.TEXT))
        (found,) = outcome.extracted
        assert len(found) == 1
        assert found[0].path_match.group(1) == "12"

    def test_no_match(self, message_factory):
        assert not matcher.url("bitbucket.org").evaluate(message_factory(self.TEXT)).matched
        assert not matcher.url("github.com").evaluate(message_factory("no links")).matched


class TestThrottle:
    def test_throttled_by(self, message_factory, clock):
        throttle = KeyedThrottle(60, clock=clock)
        m = matcher.contains("you guys").throttled_by(throttle, lambda msg: msg.sender_id)

        assert m.evaluate(message_factory("hey you guys")).matched
        assert not m.evaluate(message_factory("you guys again")).matched
        assert m.evaluate(message_factory("you guys", sender_id="U2")).matched

        clock.advance(60)
        assert m.evaluate(message_factory("you guys")).matched

    def test_shared_throttle(self, message_factory, clock):
        throttle = KeyedThrottle(60, clock=clock)
        first = matcher.contains("a").throttled_by(throttle, lambda msg: msg.conversation_id)
        second = matcher.contains("b").throttled_by(throttle, lambda msg: msg.conversation_id)

        assert first.evaluate(message_factory("a")).matched
        assert not second.evaluate(message_factory("b")).matched

    def test_order_matters(self, message_factory, clock):
        throttle = KeyedThrottle(60, clock=clock)
        early = matcher.throttled_by(throttle, lambda msg: "k").contains("never")
        assert not early.evaluate(message_factory("text")).matched
        # The failed chain still consumed the fire
        assert not throttle.attempt("k")

    def test_presets(self, message_factory):
        m = matcher.throttled_by_user
        assert m.evaluate(message_factory("x")).matched
        assert not m.evaluate(message_factory("x")).matched


class TestImmutability:
    def test_chaining_returns_new_matcher(self, message_factory):
        base = matcher.directed_at_bot
        hi = base.contains("hi")
        bye = base.contains("bye")

        assert len(matcher.steps) == 0
        assert len(base.steps) == 1
        assert len(hi.steps) == len(bye.steps) == 2

        msg = message_factory("bye", conversation_id="D1")
        assert bye.evaluate(msg).matched
        assert not hi.evaluate(msg).matched

    def test_root_matches_everything(self, message_factory):
        assert matcher.evaluate(message_factory("")) == Outcome(True, ())


class TestCombinators:
    def test_and_concatenates(self, message_factory):
        m1, _ = recording(True, "a")
        m2, _ = recording(True, "b", "c")
        outcome = matcher.and_(m1, m2).evaluate(message_factory("x"))
        assert outcome == Outcome(True, ("a", "b", "c"))

    @pytest.mark.parametrize("first,second", [(True, False), (False, True), (False, False)])
    def test_and_fails_if_any_fails(self, message_factory, first, second):
        m1, _ = recording(first)
        m2, _ = recording(second)
        assert not matcher.and_(m1, m2).evaluate(message_factory("x")).matched

    def test_and_stops_at_first_failure(self, message_factory):
        m1, _ = recording(False)
        m2, step = recording(True)
        matcher.and_(m1, m2).evaluate(message_factory("x"))
        assert step.calls == 0

    def test_or_short_circuits(self, message_factory):
        m1, _ = recording(True, "first")
        m2, step = recording(True, "second")
        outcome = matcher.or_(m1, m2).evaluate(message_factory("x"))
        assert outcome == Outcome(True, ("first",))
        assert step.calls == 0

    def test_or_falls_through(self, message_factory):
        m1, _ = recording(False)
        m2, step = recording(True, "second")
        outcome = matcher.or_(m1, m2).evaluate(message_factory("x"))
        assert outcome == Outcome(True, ("second",))
        assert step.calls == 1

    def test_or_fails_if_all_fail(self, message_factory):
        m1, _ = recording(False)
        m2, _ = recording(False)
        assert not matcher.or_(m1, m2).evaluate(message_factory("x")).matched

    @pytest.mark.parametrize("inner", [True, False])
    def test_not(self, message_factory, inner):
        m, _ = recording(inner, "ignored")
        outcome = matcher.not_(m).evaluate(message_factory("x"))
        assert outcome == Outcome(not inner, ())

    def test_composite_results_splice_into_chain(self, message_factory):
        m = matcher.starts_with("deploy").or_(matcher.matches(r"nope"), matcher.contains("prod"))
        assert m.evaluate(message_factory("deploy prod")) == Outcome(True, ("prod",))

    def test_chain_failure_aborts(self, message_factory):
        m2, step = recording(True)
        m = matcher.contains("absent").and_(m2)
        assert not m.evaluate(message_factory("x")).matched
        assert step.calls == 0

    def test_real_world_rule(self, message_factory, clock):
        m = matcher.in_channel("ops").or_(matcher.contains("<!channel>"), matcher.contains("<!here>"))
        assert m.evaluate(message_factory("<!here> anyone?", conversation_id="C2")).matched
        assert not m.evaluate(message_factory("<!here> anyone?", conversation_id="C1")).matched
        assert not m.evaluate(message_factory("anyone?", conversation_id="C2")).matched
