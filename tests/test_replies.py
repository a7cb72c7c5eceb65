"""Tests for reply splitting and localized notices."""

import pytest

from core.replies import DISCORD_MESSAGE_LIMIT, Notices, split_message


class TestSplitMessage:
    def test_short_reply_is_one_part(self):
        assert split_message("hello") == ["hello"]

    def test_exact_limit_is_one_part(self):
        text = "x" * DISCORD_MESSAGE_LIMIT
        assert split_message(text) == [text]

    def test_cuts_after_last_newline(self):
        text = "a" * 1800 + "\n" + "b" * 2699
        assert len(text) == 4500
        parts = split_message(text, 2000)
        assert parts[0] == "a" * 1800 + "\n"
        assert all(len(part) <= 2000 for part in parts)
        assert "".join(parts) == text

    def test_hard_cut_without_newline(self):
        text = "z" * 4500
        assert split_message(text, 2000) == ["z" * 2000, "z" * 2000, "z" * 500]

    def test_leading_newline_is_not_a_cut_point(self):
        text = "\n" + "y" * 30
        parts = split_message(text, 10)
        assert parts[0] == "\n" + "y" * 9
        assert "".join(parts) == text

    def test_prefers_latest_newline(self):
        text = "ab\ncd\nefghij"
        assert split_message(text, 8) == ["ab\ncd\n", "efghij"]

    def test_non_positive_limit_is_rejected(self):
        with pytest.raises(ValueError):
            split_message("hello", 0)
        with pytest.raises(ValueError):
            split_message("hello", -5)


class TestNotices:
    def test_japanese_is_default(self):
        notices = Notices()
        assert notices.language == "ja"
        assert notices.empty_reply == "(応答なし)"

    def test_english(self):
        notices = Notices("en")
        assert notices.empty_reply == "(no response)"
        assert notices.engine_error

    def test_unknown_language_falls_back(self):
        assert Notices("xx").language == "ja"
