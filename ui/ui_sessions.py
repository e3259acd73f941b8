import logging
from pathlib import Path

import ui_config as cfg
import ui_prefs_io
import ui_sessions_io
from chat_session import ChatSession
from ui_settings import Settings


logger = logging.getLogger(__name__)


DATA_DIR = cfg.DATA_DIR
SETTINGS_FILE = DATA_DIR / "settings.json"
HISTORY_FILE = DATA_DIR / "history.json"


def ensure_data_dir(data_dir: Path = DATA_DIR) -> None:
    data_dir.mkdir(parents=True, exist_ok=True)


def load_settings(path: Path = SETTINGS_FILE) -> Settings:
    return Settings.from_dict(ui_prefs_io.load_json(path))


def save_settings(settings: Settings, path: Path = SETTINGS_FILE) -> None:
    ui_prefs_io.save_json(path, settings.to_dict())


def load_history(path: Path = HISTORY_FILE) -> tuple[list[ChatSession], str | None]:
    chats, selected = ui_sessions_io.parse_history_payload(ui_prefs_io.load_json(path))
    logger.debug("restored %d chat(s) from %s", len(chats), path)
    return chats, selected


def save_history(chats: list[ChatSession], selected: str | None, path: Path = HISTORY_FILE) -> None:
    ui_prefs_io.save_json(path, ui_sessions_io.build_history_payload(chats, selected))
