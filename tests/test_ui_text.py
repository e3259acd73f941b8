"""Tests for text helpers."""
from datetime import datetime, timedelta, timezone

import pytest

import ui_text as text


NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def ago(**delta):
    return (NOW - timedelta(**delta)).isoformat()


class TestFormatAgo:
    """Tests for relative timestamps."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (ago(seconds=5), "just now"),
            (ago(minutes=1), "1 minute ago"),
            (ago(minutes=5), "5 minutes ago"),
            (ago(hours=3), "3 hours ago"),
            (ago(days=1), "1 day ago"),
            (ago(days=15), "2 weeks ago"),
            (ago(days=65), "2 months ago"),
            (ago(days=800), "2 years ago"),
        ],
    )
    def test_spans(self, raw, expected):
        assert text.format_ago(raw, now=NOW) == expected

    def test_future_and_unknown(self):
        assert text.format_ago((NOW + timedelta(hours=1)).isoformat(), now=NOW) == "in the future"
        assert text.format_ago("", now=NOW) == "unknown"
        assert text.format_ago("yesterday", now=NOW) == "unknown"

    def test_ollama_nanoseconds(self):
        """Ollama sends nanosecond fractions with a Z suffix."""
        parsed = text.parse_timestamp("2024-05-01T10:00:00.123456789Z")
        assert parsed == datetime(2024, 5, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)

    def test_offset_timestamps(self):
        parsed = text.parse_timestamp("2024-05-01T12:00:00.500+02:00")
        assert parsed.astimezone(timezone.utc).hour == 10


class TestSummary:
    """Tests for the chat title builder."""

    def test_appends_words_until_limit(self):
        assert text.extend_summary("", "one two", limit=24) == "one two "
        assert text.extend_summary("", "a fairly long prompt about nothing", limit=10) == "a fairly long…"

    def test_full_summary_is_unchanged(self):
        full = "x" * 30
        assert text.extend_summary(full, "more words", limit=24) == full

    def test_later_prompts_extend_short_titles(self):
        assert text.extend_summary("hi ", "there friend", limit=8) == "hi there…"


def test_format_bytes():
    assert text.format_bytes(512) == "512 B"
    assert text.format_bytes(4661224676) == "4.3 GB"
    assert text.format_bytes(None) == "--"


def test_preview_line():
    assert text.preview_line("  a\n\nb  ") == "a b"
    assert text.preview_line("word " * 40, limit=12).endswith("…")
    assert len(text.preview_line("word " * 40, limit=12)) <= 12


def test_sanitize_speech_text():
    md = "# Title\n\nSome **bold** and `code`.\n\n```python\nprint(1)\n```\n- item\n[link](http://x)"
    spoken = text.sanitize_speech_text(md)

    assert "print" not in spoken
    assert "#" not in spoken and "*" not in spoken
    assert "Title" in spoken and "bold" in spoken and "link" in spoken
