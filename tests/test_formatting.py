"""Tests for search result rendering."""

from flashback.formatting import format_timestamp, render_results, substitute_user_ids
from flashback.schemas import Message

USER_MAP = {"UALICE001": "alice", "UBOB00001": "bob"}


class TestSubstituteUserIds:
    def test_known_mentions(self):
        assert substitute_user_ids(USER_MAP, "ask <@UBOB00001> and <@UALICE001>") == "ask @bob and @alice"

    def test_unknown_mention_uses_placeholder(self):
        assert substitute_user_ids(USER_MAP, "ping <@UNOBODY01>") == "ping @user"

    def test_text_without_mentions(self):
        assert substitute_user_ids(USER_MAP, "no mentions here") == "no mentions here"


class TestFormatTimestamp:
    def test_unix_date_layout(self):
        assert format_timestamp("1512085950.000216") == "Thu Nov 30 23:52:30 UTC 2017"

    def test_single_digit_day_is_padded(self):
        assert format_timestamp("1512086400.000100") == "Fri Dec  1 00:00:00 UTC 2017"

    def test_malformed_timestamps(self):
        assert format_timestamp("1512085950") == ""
        assert format_timestamp("a.b") == ""
        assert format_timestamp("1.2.3") == ""
        assert format_timestamp("") == ""


class TestRenderResults:
    def test_lines_are_chronological(self):
        results = [
            Message(sender="UBOB00001", channel="C1", send_time="1512086400.000100", body="later"),
            Message(sender="UALICE001", channel="C1", send_time="1512085950.000216", body="hi <@UBOB00001>"),
        ]
        assert render_results(results, USER_MAP) == (
            "*alice posted on Thu Nov 30 23:52:30 UTC 2017:* hi @bob\n"
            "*bob posted on Fri Dec  1 00:00:00 UTC 2017:* later"
        )

    def test_degraded_fields(self):
        results = [Message(sender="UGONE0001", channel="C1", send_time="garbage", body="text")]
        assert render_results(results, USER_MAP) == "*user posted on :* text"

    def test_no_results(self):
        assert render_results([], USER_MAP) == ""
