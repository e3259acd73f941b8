"""Tests for chat history payloads and chat export."""
import json

import pytest

from chat_session import ChatSession, Message
from ui_sessions_io import build_history_payload, export_session_text, parse_history_payload, safe_filename


def sample_chat():
    chat = ChatSession(model="llama3", summary="Greeting ")
    chat.messages = [
        Message(role="user", content="Hello", images=["/tmp/cat.png"], timestamp=1_700_000_000),
        Message(role="assistant", content="Hi there!", timestamp=1_700_000_005),
        Message(role="user", content="Again", timestamp=1_700_000_010),
        Message(role="assistant", content="", is_error=True, error="refused", timestamp=1_700_000_011),
    ]
    return chat


class TestHistoryPayload:
    """Tests for the history.json layout."""

    def test_round_trip_keeps_selection(self):
        chats = [ChatSession(model="a"), ChatSession(model="b")]
        payload = json.loads(json.dumps(build_history_payload(chats, chats[1].id)))

        restored, selected = parse_history_payload(payload)

        assert [c.id for c in restored] == [c.id for c in chats]
        assert selected == chats[1].id

    def test_unknown_selection_falls_back_to_first(self):
        chats = [ChatSession(model="a")]
        restored, selected = parse_history_payload(build_history_payload(chats, "missing"))
        assert selected == chats[0].id

    def test_skips_garbage_and_duplicates(self):
        chat = ChatSession(model="a")
        payload = {"chats": [chat.to_dict(), "junk", chat.to_dict()], "selected": None}

        restored, _ = parse_history_payload(payload)
        assert len(restored) == 1

    @pytest.mark.parametrize("selected", [[], {"id": "x"}, 7, None])
    def test_unusable_selection_falls_back_to_first(self, selected):
        payload = {"chats": [{"id": "a"}, {"id": "b"}], "selected": selected}

        _, chosen = parse_history_payload(payload)

        assert chosen == "a"

    def test_empty_payload(self):
        assert parse_history_payload({}) == ([], None)


class TestExport:
    """Tests for Markdown, text and JSON export."""

    def test_markdown(self):
        ext, body = export_session_text(sample_chat(), "md", assistant_name="llama3")

        assert ext == "md"
        assert body.startswith("# Greeting")
        assert "## You" in body and "## llama3" in body
        assert "![image](/tmp/cat.png)" in body
        assert "Hi there!" in body
        assert "refused" not in body

    def test_plain_text(self):
        ext, body = export_session_text(sample_chat(), "TXT", assistant_name="llama3")

        assert ext == "txt"
        assert "YOU [" in body and "LLAMA3 [" in body
        assert "[image: /tmp/cat.png]" in body

    def test_json_and_unknown_formats(self):
        chat = sample_chat()
        ext, body = export_session_text(chat, "json")
        assert ext == "json"
        assert json.loads(body)["id"] == chat.id
        assert export_session_text(chat, "docx")[0] == "json"


def test_safe_filename():
    assert safe_filename("What is 2+2?") == "What_is_2_2_"
    assert safe_filename("   ") == "chat"
