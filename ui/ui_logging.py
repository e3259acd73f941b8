"""Logging setup for the desktop client."""

import logging
import sys

import ui_config as cfg


LOG_FORMAT = "[%(asctime)s][%(levelname)s] %(name)s: %(message)s"

# chatty third-party loggers
_QUIET_LOGGERS = ("urllib3", "flet", "flet_core", "flet_runtime", "PIL", "comtypes")


def configure_logging(level: str | None = None) -> None:
    """Install a single console handler on the root logger."""
    level_name = (level or cfg.LOG_LEVEL or "INFO").upper()
    resolved = logging.getLevelName(level_name)
    if not isinstance(resolved, int):
        resolved = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(resolved)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(console_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
