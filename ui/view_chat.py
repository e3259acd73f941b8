import time

import flet as ft

import ui_config as cfg
import ui_markdown
import ui_style as style
from chat_session import ChatSession, Message


def build_chat_tab(*, chat_scroller: ft.Control, empty_state: ft.Control, composer_outer: ft.Control) -> ft.Control:
    chat_area = ft.Stack([chat_scroller, empty_state], expand=True)
    return ft.Column(
        [
            chat_area,
            ft.Row([composer_outer], alignment=ft.MainAxisAlignment.CENTER),
            ft.Container(height=14),
        ],
        expand=True,
        spacing=0,
    )


def build_composer(
    *,
    input_field: ft.Control,
    attachments_row: ft.Control,
    attach_button: ft.Control,
    send_button: ft.Control,
    stop_button: ft.Control,
    width: int,
) -> ft.Control:
    return ft.Container(
        width=width,
        padding=ft.padding.symmetric(horizontal=12, vertical=8),
        bgcolor=style.SURFACE,
        border=ft.border.all(1, style.BORDER),
        border_radius=18,
        content=ft.Column(
            [
                attachments_row,
                ft.Row(
                    [attach_button, input_field, send_button, stop_button],
                    spacing=6,
                    vertical_alignment=ft.CrossAxisAlignment.END,
                ),
            ],
            spacing=6,
            tight=True,
        ),
    )


def _avatar(label: str, bgcolor: str, fg: str) -> ft.Control:
    return ft.Container(
        width=28,
        height=28,
        bgcolor=bgcolor,
        border_radius=14,
        alignment=ft.alignment.center,
        content=ft.Text(label, size=10, weight=ft.FontWeight.W_700, color=fg),
        border=ft.border.all(1, style.BORDER),
    )


def _thumbnails(paths: list[str]) -> ft.Control:
    return ft.Row(
        [
            ft.Image(src=p, height=cfg.MAX_IMAGE_HEIGHT, fit=ft.ImageFit.CONTAIN, border_radius=10, tooltip=p)
            for p in paths
        ],
        wrap=True,
        spacing=6,
    )


def _timestamp(msg: Message) -> str:
    return time.strftime("%H:%M", time.localtime(msg.timestamp))


def _waiting_indicator(requested_at: float) -> ft.Control:
    elapsed = max(0, int(time.time() - (requested_at or time.time())))
    return ft.Row(
        [
            ft.ProgressRing(width=14, height=14, stroke_width=2, color=style.ACCENT),
            ft.Text(f"Waiting for the model... {elapsed}s", size=12, color=style.TEXT_MUTED),
        ],
        spacing=8,
    )


def _user_row(msg: Message, width: int) -> ft.Control:
    parts: list[ft.Control] = []
    if msg.images:
        parts.append(_thumbnails(msg.images))
    if msg.content:
        parts.append(ft.Text(msg.content, color=style.TEXT_PRIMARY, selectable=True, no_wrap=False))
    bubble = ft.Container(
        bgcolor=style.SURFACE,
        border_radius=18,
        padding=14,
        border=ft.border.all(1, style.BORDER),
        width=max(240, int(width * 0.82)),
        content=ft.Column(parts, spacing=8, tight=True),
    )
    meta = ft.Text(_timestamp(msg), size=10, color=style.TEXT_MUTED)
    return ft.Row(
        [ft.Column([bubble, meta], spacing=4, horizontal_alignment=ft.CrossAxisAlignment.END)],
        alignment=ft.MainAxisAlignment.END,
    )


def _assistant_row(
    *,
    chat: ChatSession,
    index: int,
    msg: Message,
    assistant_name: str,
    speaking: bool,
    tts_available: bool,
    on_copy,
    on_speak,
    on_retry,
    on_tap_link,
) -> ft.Control:
    body: list[ft.Control] = []
    if msg.is_generating and not msg.content:
        body.append(_waiting_indicator(chat.requested_at))
    elif msg.is_generating:
        # plain text while streaming; markdown is parsed once the reply is final
        body.append(ft.Text(msg.content, color=style.TEXT_PRIMARY, selectable=True))
    elif msg.content:
        body.append(ui_markdown.render_markdown(msg.content, on_tap_link=on_tap_link, on_copy=on_copy))

    if msg.is_error:
        error_row = [
            ft.Icon(ft.icons.ERROR_OUTLINE, size=16, color=style.DANGER),
            ft.Text(msg.error or "The response failed.", size=12, color=style.DANGER, selectable=True, expand=True),
        ]
        if index == len(chat.messages) - 1:
            error_row.append(ft.TextButton("Retry", icon=ft.icons.REFRESH, on_click=lambda _e: on_retry()))
        body.append(
            ft.Container(
                bgcolor=style.ERROR_SOFT,
                border_radius=10,
                padding=ft.padding.symmetric(horizontal=10, vertical=6),
                content=ft.Row(error_row, spacing=8, vertical_alignment=ft.CrossAxisAlignment.CENTER),
            )
        )

    actions: list[ft.Control] = []
    if msg.content and not msg.is_generating:
        actions.append(
            ft.IconButton(
                icon=ft.icons.CONTENT_COPY,
                tooltip="Copy",
                icon_size=16,
                icon_color=style.TEXT_MUTED,
                on_click=lambda _e, t=msg.content: on_copy(t, "Message copied."),
            )
        )
        actions.append(
            ft.IconButton(
                icon=ft.icons.STOP_CIRCLE_OUTLINED if speaking else ft.icons.VOLUME_UP_OUTLINED,
                tooltip="Stop speaking" if speaking else "Read aloud",
                icon_size=16,
                icon_color=style.ACCENT if speaking else style.TEXT_MUTED,
                disabled=not tts_available,
                on_click=lambda _e, i=index: on_speak(i),
            )
        )

    header = ft.Row(
        [
            ft.Text(assistant_name, size=11, weight=ft.FontWeight.W_600, color=style.TEXT_MUTED),
            ft.Text(_timestamp(msg), size=10, color=style.TEXT_MUTED),
        ],
        spacing=8,
    )
    return ft.Row(
        [
            _avatar("AI", style.ACCENT_SOFT, style.ACCENT),
            ft.Column([header, *body, ft.Row(actions, spacing=0)], spacing=6, expand=True),
        ],
        spacing=12,
        vertical_alignment=ft.CrossAxisAlignment.START,
    )


def build_message_row(
    *,
    chat: ChatSession,
    index: int,
    width: int,
    assistant_name: str,
    speaking: bool,
    tts_available: bool,
    on_copy,
    on_speak,
    on_retry,
    on_tap_link,
) -> ft.Control:
    msg = chat.messages[index]
    if msg.role == "user":
        inner = _user_row(msg, width)
    else:
        inner = _assistant_row(
            chat=chat,
            index=index,
            msg=msg,
            assistant_name=assistant_name,
            speaking=speaking,
            tts_available=tts_available,
            on_copy=on_copy,
            on_speak=on_speak,
            on_retry=on_retry,
            on_tap_link=on_tap_link,
        )
    outer = ft.Container(width=width, padding=ft.padding.symmetric(horizontal=12, vertical=6), content=inner)
    return ft.Row([outer], alignment=ft.MainAxisAlignment.CENTER)
