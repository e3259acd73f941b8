import json
import logging
import os
import tempfile
from pathlib import Path


logger = logging.getLogger(__name__)


def load_json(path: str | Path) -> dict:
    """Read a JSON object from `path`; a missing or unreadable file yields {}."""
    p = Path(path)
    if not p.exists():
        return {}
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("failed to read %s, using defaults: %s", p, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("ignoring %s: expected a JSON object, got %s", p, type(data).__name__)
        return {}
    return data


def save_json(path: str | Path, payload: dict) -> None:
    """Atomically replace `path` with `payload` serialized as JSON."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=".ellama-tmp-", dir=str(p.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(json.dumps(payload, indent=2))
        os.replace(tmp_name, str(p))
    finally:
        if os.path.exists(tmp_name):
            try:
                os.remove(tmp_name)
            except OSError as exc:
                logger.debug("could not remove temp file %s: %s", tmp_name, exc)
