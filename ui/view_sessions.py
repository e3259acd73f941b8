import flet as ft

import ui_style as style
from chat_session import ChatSession


def build_chat_item(
    *,
    chat: ChatSession,
    active: bool,
    on_select,
    on_delete,
    on_export,
) -> ft.Control:
    busy = ft.ProgressRing(width=12, height=12, stroke_width=2, color=style.ACCENT, visible=chat.is_busy)
    menu = ft.PopupMenuButton(
        icon=ft.icons.MORE_HORIZ,
        icon_color=style.TEXT_MUTED,
        tooltip="Chat actions",
        items=[
            ft.PopupMenuItem(text="Export as Markdown", on_click=lambda _e: on_export(chat.id, "md")),
            ft.PopupMenuItem(text="Export as text", on_click=lambda _e: on_export(chat.id, "txt")),
            ft.PopupMenuItem(text="Export as JSON", on_click=lambda _e: on_export(chat.id, "json")),
            ft.PopupMenuItem(),
            ft.PopupMenuItem(text="Delete", icon=ft.icons.DELETE_OUTLINE, on_click=lambda _e: on_delete(chat.id)),
        ],
    )
    return ft.Container(
        padding=ft.padding.symmetric(horizontal=10, vertical=8),
        border_radius=12,
        bgcolor=style.SURFACE if active else None,
        border=ft.border.all(1, style.BORDER) if active else None,
        on_click=lambda _e: on_select(chat.id),
        content=ft.Row(
            [
                ft.Column(
                    [
                        ft.Row(
                            [
                                ft.Text(
                                    chat.title(),
                                    size=13,
                                    weight=ft.FontWeight.W_600,
                                    color=style.TEXT_PRIMARY if active else style.TEXT_MUTED,
                                    max_lines=1,
                                    overflow=ft.TextOverflow.ELLIPSIS,
                                ),
                                busy,
                            ],
                            spacing=6,
                        ),
                        ft.Text(
                            chat.last_message_preview(),
                            size=11,
                            color=style.TEXT_MUTED,
                            max_lines=1,
                            overflow=ft.TextOverflow.ELLIPSIS,
                        ),
                    ],
                    spacing=2,
                    expand=True,
                ),
                menu,
            ],
            spacing=4,
            vertical_alignment=ft.CrossAxisAlignment.CENTER,
        ),
    )


def build_chat_list(*, chats: list[ChatSession], active_id: str | None, on_select, on_delete, on_export) -> list[ft.Control]:
    # newest first
    return [
        build_chat_item(chat=chat, active=chat.id == active_id, on_select=on_select, on_delete=on_delete, on_export=on_export)
        for chat in reversed(chats)
    ]


def confirm_delete_dialog(*, chat: ChatSession, on_confirm, on_cancel) -> ft.AlertDialog:
    return ft.AlertDialog(
        modal=True,
        title=ft.Text("Delete chat?"),
        content=ft.Text(f'"{chat.title()}" will be removed permanently.'),
        actions=[
            ft.TextButton("Cancel", on_click=lambda _e: on_cancel()),
            ft.TextButton("Delete", on_click=lambda _e: on_confirm()),
        ],
        actions_alignment=ft.MainAxisAlignment.END,
    )
