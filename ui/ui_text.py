import re
from datetime import datetime, timezone


def format_bytes(value) -> str:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return "--"
    units = ["B", "KB", "MB", "GB", "TB"]
    idx = 0
    while value >= 1024 and idx < len(units) - 1:
        value /= 1024
        idx += 1
    return f"{value:.0f} {units[idx]}" if idx == 0 else f"{value:.1f} {units[idx]}"


_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def parse_timestamp(raw: str | None) -> datetime | None:
    """
    Parse an RFC 3339 timestamp as returned by Ollama.
    Nanosecond fractions and a trailing `Z` are normalized before parsing.
    """
    text = (raw or "").strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(r"\1", text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_ago(raw: str | None, now: datetime | None = None) -> str:
    then = parse_timestamp(raw)
    if then is None:
        return "unknown"
    now = now or datetime.now(timezone.utc)
    seconds = int((now - then).total_seconds())
    if seconds < 0:
        return "in the future"
    if seconds < 60:
        return "just now"
    for span, unit in ((31536000, "year"), (2592000, "month"), (604800, "week"), (86400, "day"), (3600, "hour"), (60, "minute")):
        if seconds >= span:
            count = seconds // span
            return f"{count} {unit}{'' if count == 1 else 's'} ago"
    return "just now"


def extend_summary(summary: str, prompt: str, limit: int = 24) -> str:
    """
    Grow a chat title from the words of `prompt` until it reaches `limit` characters.
    Titles that are already long enough are returned unchanged.
    """
    out = summary or ""
    if len(out) >= limit:
        return out
    for word in (prompt or "").split():
        out += word
        if len(out) >= limit:
            return out + "…"
        out += " "
    return out


def preview_line(text: str | None, limit: int = 80) -> str:
    flat = " ".join((text or "").split())
    if len(flat) <= limit:
        return flat
    return flat[: max(0, limit - 1)].rstrip() + "…"


def sanitize_speech_text(text: str | None) -> str:
    """Drop Markdown syntax so the speech engine reads prose only."""
    if not text:
        return ""

    cleaned = text
    cleaned = re.sub(r"```.*?```", " ", cleaned, flags=re.DOTALL)
    cleaned = re.sub(r"`([^`]*)`", r"\1", cleaned)
    cleaned = re.sub(r"!\[([^\]]*)\]\([^)]+\)", r"\1", cleaned)
    cleaned = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", cleaned)
    cleaned = re.sub(r"<[^>]+>", " ", cleaned)
    cleaned = re.sub(r"^>+\s?", "", cleaned, flags=re.MULTILINE)
    cleaned = re.sub(r"^\s*#{1,6}\s*", "", cleaned, flags=re.MULTILINE)
    cleaned = re.sub(r"^\s*[-*+]\s+", "", cleaned, flags=re.MULTILINE)
    cleaned = re.sub(r"^\s*\d+\.\s+", "", cleaned, flags=re.MULTILINE)
    cleaned = cleaned.replace("|", " ")
    cleaned = re.sub(r"[*_~]", "", cleaned)
    cleaned = re.sub(r"[ \t]+", " ", cleaned)
    cleaned = re.sub(r"\s*\n\s*", "\n", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()
