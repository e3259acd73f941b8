TEXT_PRIMARY = "#E6EDF3"
TEXT_MUTED = "#9AA6B2"


BG = "#0F1115"
SIDEBAR_BG = "#0B0D10"
SURFACE = "#151A22"
SURFACE_ALT = "#11151B"
BORDER = "#2A3342"

ACCENT = "#10A37F"
ACCENT_SOFT = "#0D2F28"
SUCCESS = "#22C55E"
WARNING = "#F59E0B"
DANGER = "#EF4444"
ERROR_SOFT = "#3A1F23"


def server_dot_color(online: bool | None) -> str:
    if online is None:
        return WARNING
    return SUCCESS if online else DANGER


def notify_color(kind: str) -> str:
    return {
        "info": ACCENT,
        "ok": SUCCESS,
        "warn": WARNING,
        "error": DANGER,
    }.get(kind, ACCENT)
