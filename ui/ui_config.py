import os
from pathlib import Path


APP_TITLE = "Ellama"


DEFAULT_HOST = "http://127.0.0.1:11434"
OLLAMA_HOST = os.getenv("OLLAMA_HOST", DEFAULT_HOST).rstrip("/")

DATA_DIR = Path(os.getenv("ELLAMA_DATA_DIR") or (Path.home() / ".ellama"))


STREAM_CONNECT_TIMEOUT_S = float(os.getenv("ELLAMA_STREAM_CONNECT_TIMEOUT_S", "10"))
_stream_read_timeout_raw = os.getenv("ELLAMA_STREAM_READ_TIMEOUT_S", "300").strip().lower()
STREAM_READ_TIMEOUT_S = None if _stream_read_timeout_raw in ("", "none", "null") else float(_stream_read_timeout_raw)
REQUEST_TIMEOUT_S = float(os.getenv("ELLAMA_REQUEST_TIMEOUT_S", "10"))

MODEL_REFRESH_S = float(os.getenv("ELLAMA_MODEL_REFRESH_S", "10"))
FLUSH_INTERVAL_S = int(os.getenv("ELLAMA_FLUSH_INTERVAL_MS", "50")) / 1000.0
TTS_POLL_INTERVAL_S = 0.5
TTS_INIT_TIMEOUT_S = float(os.getenv("ELLAMA_TTS_INIT_TIMEOUT_S", "5"))

LOG_LEVEL = os.getenv("ELLAMA_LOG_LEVEL", "INFO").upper()


CHAT_MAX_WIDTH = 760
CHAT_MIN_WIDTH = 320
SIDEBAR_WIDTH = 290
MAX_IMAGE_HEIGHT = 128

SUMMARY_MAX_CHARS = 24
