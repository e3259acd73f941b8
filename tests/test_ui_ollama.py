"""Tests for the Ollama HTTP adapter with mocked requests."""
import base64
import json
import threading
from unittest.mock import MagicMock, patch

import pytest
import requests

from ui_ollama import (
    ChatError,
    ChatRequest,
    EndpointError,
    ErrorKind,
    OllamaClient,
    StreamHandle,
    parse_endpoint,
)


@pytest.fixture
def client():
    return OllamaClient("http://localhost:11434", connect_timeout_s=1, read_timeout_s=5, request_timeout_s=2)


def collect(client, request, handle=None):
    fragments = []
    client.stream_chat(request, handle or StreamHandle(), fragments.append)
    return fragments


class TestParseEndpoint:
    """Tests for endpoint validation."""

    def test_valid_endpoint(self):
        assert parse_endpoint(" http://127.0.0.1:11434/ ") == "http://127.0.0.1:11434"
        assert parse_endpoint("https://ollama.example.com") == "https://ollama.example.com"

    @pytest.mark.parametrize("raw", ["", "localhost:11434", "ftp://host", "http://", "http://host:99999", "http://[::1"])
    def test_invalid_endpoint(self, raw):
        with pytest.raises(EndpointError):
            parse_endpoint(raw)

    def test_client_falls_back_to_default(self):
        """An unusable endpoint still yields a client for the default host."""
        assert OllamaClient.from_endpoint("nonsense").base_url == "http://127.0.0.1:11434"
        assert OllamaClient.from_endpoint("http://[::1").base_url == "http://127.0.0.1:11434"


class TestStreamChat:
    """Tests for the streamed /api/chat request."""

    def test_fragments_and_payload(self, client, make_stream):
        response = make_stream(
            [
                {"message": {"role": "assistant", "content": "Hi"}, "done": False},
                {"message": {"role": "assistant", "content": " there"}, "done": False},
                {"message": {"role": "assistant", "content": "!"}, "done": False},
                {"message": {"role": "assistant", "content": ""}, "done": True},
            ]
        )
        request = ChatRequest(
            model="llama3",
            messages=[{"role": "user", "content": "Hello", "images": []}],
            options={"temperature": 0.2},
        )
        with patch("ui_ollama.requests.post", return_value=response) as post:
            fragments = collect(client, request)

        assert fragments == ["Hi", " there", "!"]
        args, kwargs = post.call_args
        assert args[0] == "http://localhost:11434/api/chat"
        assert kwargs["stream"] is True
        assert kwargs["timeout"] == (1, 5)
        assert kwargs["json"] == {
            "model": "llama3",
            "messages": [{"role": "user", "content": "Hello"}],
            "stream": True,
            "options": {"temperature": 0.2},
        }
        response.close.assert_called()

    def test_leading_whitespace_is_skipped(self, client, make_stream):
        response = make_stream(
            [
                {"message": {"content": "\n"}},
                {"message": {"content": "  Hello"}},
                {"message": {"content": " world"}},
                {"done": True},
            ]
        )
        with patch("ui_ollama.requests.post", return_value=response):
            assert collect(client, ChatRequest(model="m")) == ["Hello", " world"]

    def test_stops_at_done(self, client, make_stream):
        response = make_stream([{"message": {"content": "a"}, "done": True}, {"message": {"content": "b"}}])
        with patch("ui_ollama.requests.post", return_value=response):
            assert collect(client, ChatRequest(model="m")) == ["a"]

    def test_unknown_model(self, client, make_stream):
        response = make_stream([], status_code=404)
        response.json.return_value = {"error": "model 'nope' not found, try pulling it first"}
        with patch("ui_ollama.requests.post", return_value=response):
            with pytest.raises(ChatError) as info:
                collect(client, ChatRequest(model="nope"))
        assert info.value.kind == ErrorKind.MODEL_NOT_FOUND

    def test_malformed_line(self, client, make_stream):
        response = make_stream([{"message": {"content": "ok"}}, b"{not json"])
        with patch("ui_ollama.requests.post", return_value=response):
            with pytest.raises(ChatError) as info:
                collect(client, ChatRequest(model="m"))
        assert info.value.kind == ErrorKind.MALFORMED_RESPONSE

    def test_error_field_in_stream(self, client, make_stream):
        response = make_stream([{"error": "out of memory"}])
        with patch("ui_ollama.requests.post", return_value=response):
            with pytest.raises(ChatError) as info:
                collect(client, ChatRequest(model="m"))
        assert info.value.kind == ErrorKind.SERVER
        assert "out of memory" in str(info.value)

    def test_connection_refused(self, client):
        with patch("ui_ollama.requests.post", side_effect=requests.exceptions.ConnectionError("refused")):
            with pytest.raises(ChatError) as info:
                collect(client, ChatRequest(model="m"))
        assert info.value.kind == ErrorKind.CONNECTION

    def test_cancelled_before_first_line(self, client, make_stream):
        response = make_stream([{"message": {"content": "never"}}])
        handle = StreamHandle()
        handle.cancel()
        with patch("ui_ollama.requests.post", return_value=response):
            assert collect(client, ChatRequest(model="m"), handle) == []
        response.close.assert_called()

    def test_images_are_encoded(self, client, make_stream, png_file):
        response = make_stream([{"done": True}])
        request = ChatRequest(model="llava", messages=[{"role": "user", "content": "what", "images": [str(png_file)]}])
        with patch("ui_ollama.requests.post", return_value=response) as post:
            collect(client, request)

        sent = post.call_args.kwargs["json"]["messages"][0]["images"]
        assert base64.b64decode(sent[0]) == png_file.read_bytes()

    def test_missing_image(self, client, tmp_path):
        request = ChatRequest(model="llava", messages=[{"role": "user", "content": "x", "images": [str(tmp_path / "gone.png")]}])
        with patch("ui_ollama.requests.post") as post:
            with pytest.raises(ChatError) as info:
                collect(client, request)
        assert info.value.kind == ErrorKind.ATTACHMENT
        post.assert_not_called()


class TestSendChat:
    """Tests for the background worker wrapper."""

    def test_completes_once(self, client, make_stream):
        response = make_stream([{"message": {"content": "yo"}}, {"done": True}])
        fragments, completed, errors = [], [], []
        with patch("ui_ollama.requests.post", return_value=response):
            handle = client.send_chat(ChatRequest(model="m"), fragments.append, lambda: completed.append(True), errors.append)
            handle.join(timeout=5)

        assert fragments == ["yo"]
        assert completed == [True]
        assert errors == []

    def test_cancel_mid_stream(self, client, make_stream):
        """Cancelling from a fragment callback stops delivery and reports one cancellation."""
        response = make_stream(
            [
                {"message": {"content": "one"}},
                {"message": {"content": " two"}},
                {"message": {"content": " three"}},
                {"done": True},
            ]
        )
        handle_ready = threading.Event()
        holder = {}
        fragments, completed, errors = [], [], []

        def on_fragment(fragment):
            fragments.append(fragment)
            handle_ready.wait(timeout=5)
            holder["handle"].cancel()

        with patch("ui_ollama.requests.post", return_value=response):
            holder["handle"] = client.send_chat(
                ChatRequest(model="m"), on_fragment, lambda: completed.append(True), errors.append
            )
            handle_ready.set()
            holder["handle"].join(timeout=5)

        assert fragments == ["one"]
        assert completed == []
        assert [e.kind for e in errors] == [ErrorKind.CANCELLED]
        response.close.assert_called()

    def test_reports_error(self, client):
        completed, errors = [], []
        with patch("ui_ollama.requests.post", side_effect=requests.exceptions.ConnectTimeout("slow")):
            handle = client.send_chat(ChatRequest(model="m"), lambda _f: None, lambda: completed.append(True), errors.append)
            handle.join(timeout=5)

        assert completed == []
        assert [e.kind for e in errors] == [ErrorKind.CONNECTION]


class TestModels:
    """Tests for /api/tags, /api/show and the status check."""

    def test_list_models(self, client, make_json):
        payload = {
            "models": [
                {"name": "llama3:latest", "size": 4661224676, "modified_at": "2024-05-01T10:00:00.123456789Z", "digest": "abc"},
                {"name": "llava:7b", "size": 4733363377},
            ]
        }
        with patch("ui_ollama.requests.request", return_value=make_json(payload)) as req:
            models = client.list_models()

        assert req.call_args.args == ("GET", "http://localhost:11434/api/tags")
        assert [m.name for m in models] == ["llama3:latest", "llava:7b"]
        assert models[0].size == 4661224676
        assert models[1].modified_at == ""

    def test_list_models_without_server(self, client):
        with patch("ui_ollama.requests.request", side_effect=requests.exceptions.ConnectionError("down")):
            with pytest.raises(ChatError) as info:
                client.list_models()
        assert info.value.kind == ErrorKind.CONNECTION

    def test_list_models_malformed(self, client, make_json):
        with patch("ui_ollama.requests.request", return_value=make_json({"models": [{"size": 1}]})):
            with pytest.raises(ChatError) as info:
                client.list_models()
        assert info.value.kind == ErrorKind.MALFORMED_RESPONSE

    def test_show_model_info(self, client, make_json):
        payload = {"license": "MIT", "modelfile": "FROM x", "parameters": "stop <eos>", "template": "{{ .Prompt }}"}
        with patch("ui_ollama.requests.request", return_value=make_json(payload)) as req:
            info = client.show_model_info("llama3")

        assert req.call_args.kwargs["json"] == {"model": "llama3"}
        assert [title for title, _ in info.sections()] == ["License", "Modelfile", "Parameters", "Template"]

    def test_show_unknown_model(self, client, make_json):
        with patch("ui_ollama.requests.request", return_value=make_json({"error": "model 'x' not found"}, 404)):
            with pytest.raises(ChatError) as info:
                client.show_model_info("x")
        assert info.value.kind == ErrorKind.MODEL_NOT_FOUND

    def test_server_status(self, client):
        ok = MagicMock(status_code=200)
        with patch("ui_ollama.requests.get", return_value=ok):
            assert client.server_status()
        with patch("ui_ollama.requests.get", side_effect=requests.exceptions.ConnectionError()):
            assert not client.server_status()


def test_chat_error_message():
    error = ChatError(ErrorKind.SERVER, "bad")
    assert str(error) == "bad"
    assert json.dumps(error.kind.value) == '"server"'
