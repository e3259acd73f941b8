"""Pytest configuration and shared fixtures."""
import json
from unittest.mock import MagicMock

import pytest

from ui_flet import UiLoop
from ui_ollama import StreamHandle


class FakeClient:
    """Records chat requests instead of talking to Ollama; tests drive the callbacks."""

    def __init__(self, models=None, info=None, list_error=None):
        self.calls = []
        self.models = list(models or [])
        self.info = info
        self.list_error = list_error

    def send_chat(self, request, on_fragment, on_complete, on_error):
        handle = StreamHandle()
        self.calls.append(
            {
                "request": request,
                "on_fragment": on_fragment,
                "on_complete": on_complete,
                "on_error": on_error,
                "handle": handle,
            }
        )
        return handle

    @property
    def last(self):
        return self.calls[-1]

    def list_models(self):
        if self.list_error is not None:
            raise self.list_error
        return list(self.models)

    def show_model_info(self, name):
        return self.info

    def server_status(self):
        return self.list_error is None


@pytest.fixture
def fake_client():
    """Return a recording client."""
    return FakeClient()


@pytest.fixture
def loop():
    """Return a UI loop that tests drain by hand."""
    return UiLoop()


def ndjson_response(chunks, status_code=200):
    """Build a mocked streaming response yielding `chunks` as NDJSON lines."""
    response = MagicMock()
    response.ok = 200 <= status_code < 300
    response.status_code = status_code
    response.iter_lines.return_value = [
        c if isinstance(c, bytes) else json.dumps(c).encode("utf-8") for c in chunks
    ]
    return response


def json_response(payload, status_code=200):
    """Build a mocked non-streaming response."""
    response = MagicMock()
    response.ok = 200 <= status_code < 300
    response.status_code = status_code
    response.reason = "Not Found" if status_code == 404 else "OK"
    response.text = json.dumps(payload)
    response.json.return_value = payload
    return response


@pytest.fixture
def png_file(tmp_path):
    """Write a tiny PNG and return its path."""
    from PIL import Image

    path = tmp_path / "pixel.png"
    Image.new("RGB", (2, 2), (255, 0, 0)).save(path)
    return path


@pytest.fixture
def bmp_file(tmp_path):
    """Write a tiny BMP and return its path."""
    from PIL import Image

    path = tmp_path / "pixel.bmp"
    Image.new("RGB", (3, 3), (0, 128, 255)).save(path)
    return path


@pytest.fixture
def make_stream():
    """Factory for mocked NDJSON streaming responses."""
    return ndjson_response


@pytest.fixture
def make_json():
    """Factory for mocked JSON responses."""
    return json_response
