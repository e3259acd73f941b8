import flet as ft

import ui_style as style


def split_markdown_fences(md_text: str) -> list[tuple[str, str, str]]:
    """
    Split Markdown into prose and fenced code blocks.

    Returns a list of (kind, lang, text) where kind is "md" or "code". An
    unterminated fence is still streaming, so it stays in the prose segment.
    """
    segments: list[tuple[str, str, str]] = []
    prose: list[str] = []
    code: list[str] = []
    lang = ""
    fenced = False

    def push_prose() -> None:
        body = "\n".join(prose)
        if body.strip():
            segments.append(("md", "", body))
        prose.clear()

    for line in (md_text or "").splitlines():
        marker = line.strip()
        if marker.startswith("```"):
            if fenced:
                segments.append(("code", lang, "\n".join(code)))
                code.clear()
                lang = ""
            else:
                push_prose()
                lang = marker[3:].strip()
            fenced = not fenced
            continue
        (code if fenced else prose).append(line)

    if fenced:
        prose.append("```" + lang)
        prose.extend(code)
    push_prose()
    return segments


def _markdown(body: str, on_tap_link) -> ft.Control:
    return ft.Markdown(
        body,
        selectable=True,
        extension_set=ft.MarkdownExtensionSet.GITHUB_WEB,
        on_tap_link=on_tap_link,
    )


def make_code_block(*, lang: str, code: str, on_copy) -> ft.Control:
    source = code or ""
    visible_lines = max(3, min(18, source.count("\n") + 1))

    header = ft.Row(
        [
            ft.Text((lang or "").strip() or "code", size=11, color=style.TEXT_MUTED, weight=ft.FontWeight.W_600),
            ft.Container(expand=True),
            ft.IconButton(
                icon=ft.icons.CONTENT_COPY,
                tooltip="Copy code",
                icon_color=style.TEXT_MUTED,
                on_click=lambda _e, t=source: on_copy(t, "Code copied."),
            ),
        ],
        spacing=6,
        vertical_alignment=ft.CrossAxisAlignment.CENTER,
    )
    body = ft.TextField(
        value=source,
        multiline=True,
        read_only=True,
        min_lines=visible_lines,
        max_lines=visible_lines,
        text_style=ft.TextStyle(color=style.TEXT_PRIMARY, size=12, font_family="monospace"),
        bgcolor=style.SURFACE,
        border_color=style.BORDER,
        focused_border_color=style.BORDER,
    )
    return ft.Container(
        padding=12,
        bgcolor=style.SURFACE_ALT,
        border=ft.border.all(1, style.BORDER),
        border_radius=14,
        content=ft.Column([header, body], spacing=8, tight=True),
    )


def render_markdown(md_text: str, *, on_tap_link, on_copy) -> ft.Control:
    segments = split_markdown_fences(md_text)
    if len(segments) <= 1 and all(kind == "md" for kind, _, _ in segments):
        return _markdown(md_text or "", on_tap_link)

    controls: list[ft.Control] = []
    for kind, lang, body in segments:
        if kind == "md":
            controls.append(_markdown(body, on_tap_link))
        else:
            controls.append(make_code_block(lang=lang, code=body, on_copy=on_copy))
    return ft.Column(controls, spacing=10, tight=True)
