import json
import logging
from datetime import datetime

from chat_session import ChatSession


logger = logging.getLogger(__name__)


HISTORY_VERSION = 1


def build_history_payload(chats: list[ChatSession], selected: str | None) -> dict:
    return {
        "version": HISTORY_VERSION,
        "selected": selected,
        "chats": [chat.to_dict() for chat in (chats or [])],
    }


def parse_history_payload(data: dict) -> tuple[list[ChatSession], str | None]:
    chats: list[ChatSession] = []
    seen: set[str] = set()
    for raw in (data.get("chats") or []):
        if not isinstance(raw, dict):
            continue
        try:
            chat = ChatSession.from_dict(raw)
        except (TypeError, ValueError, AttributeError) as exc:
            logger.warning("skipping unreadable chat in history: %s", exc)
            continue
        if chat.id in seen:
            continue
        seen.add(chat.id)
        chats.append(chat)
    selected = data.get("selected")
    if not isinstance(selected, str) or selected not in seen:
        selected = chats[0].id if chats else None
    return chats, selected


def safe_filename(raw_name: str) -> str:
    raw = (raw_name or "").strip() or "chat"
    return "".join(ch if ch.isalnum() or ch in ("-", "_") else "_" for ch in raw)


def _format_ts(ts: float) -> str:
    try:
        return datetime.fromtimestamp(float(ts)).strftime("%Y-%m-%d %H:%M")
    except (TypeError, ValueError, OverflowError, OSError):
        return ""


def export_session_text(chat: ChatSession, fmt: str, assistant_name: str = "Llama") -> tuple[str, str]:
    """Render a chat for export. Returns (extension, text); unknown formats fall back to JSON."""
    fmt = (fmt or "json").strip().lower()
    if fmt not in ("json", "md", "txt"):
        fmt = "json"

    if fmt == "json":
        return "json", json.dumps(chat.to_dict(), indent=2)

    title = chat.title()

    def iter_msgs():
        for m in chat.messages:
            if m.is_error:
                continue
            yield m.role, _format_ts(m.timestamp), m.content, m.images

    if fmt == "txt":
        lines = [title, ""]
        for role, ts, content, images in iter_msgs():
            hdr = "YOU" if role == "user" else (assistant_name.upper() if role == "assistant" else role.upper())
            if ts:
                hdr = f"{hdr} [{ts}]"
            lines.append(hdr)
            for img in images:
                lines.append(f"[image: {img}]")
            lines.append(str(content).rstrip())
            lines.append("")
        return "txt", "\n".join(lines).rstrip() + "\n"

    lines = [f"# {title}", ""]
    for role, ts, content, images in iter_msgs():
        hdr = "You" if role == "user" else (assistant_name if role == "assistant" else role.title())
        lines.append(f"## {hdr} ({ts})" if ts else f"## {hdr}")
        lines.append("")
        for img in images:
            lines.append(f"![image]({img})")
        if images:
            lines.append("")
        lines.append(str(content).rstrip())
        lines.append("")
    return "md", "\n".join(lines).rstrip() + "\n"
