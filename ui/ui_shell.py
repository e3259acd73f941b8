import flet as ft

import ui_style as style


NAV_ITEMS = (
    ("Chat", ft.icons.CHAT_BUBBLE_OUTLINE),
    ("Models", ft.icons.TUNE),
    ("Settings", ft.icons.SETTINGS_OUTLINED),
)


def build_shell(
    *,
    page: ft.Page,
    app_title: str,
    sidebar_width: int,
    tabs: list[ft.Control],
    chat_model_dropdown: ft.Control,
    server_status_dot: ft.Control,
    server_status_label: ft.Control,
    sidebar_chats_list: ft.Control,
    on_new_chat,
    on_view_change=None,
) -> dict:
    """
    Sidebar (navigation and chat list) plus a top bar and a content area.

    `tabs` are in NAV_ITEMS order; `set_view(i)` swaps the content area.
    """
    content_holder = ft.Container(expand=True, bgcolor=style.BG)
    active_view = {"value": 0}
    nav_refs: list[dict] = []

    def update_nav_styles():
        for item in nav_refs:
            is_active = item["index"] == active_view["value"]
            item["box"].bgcolor = style.SURFACE if is_active else None
            item["box"].border = ft.border.all(1, style.BORDER) if is_active else None
            item["icon"].color = style.TEXT_PRIMARY if is_active else style.TEXT_MUTED
            item["text"].color = style.TEXT_PRIMARY if is_active else style.TEXT_MUTED

    def set_view(index: int):
        index = max(0, min(int(index), len(tabs) - 1))
        active_view["value"] = index
        if index == 0:
            content_holder.content = tabs[0]
        else:
            content_holder.content = ft.Container(padding=20, content=tabs[index], bgcolor=style.BG)
        update_nav_styles()
        if on_view_change is not None:
            on_view_change(index)
        page.update()

    def replace_tab(index: int, control: ft.Control):
        tabs[index] = control
        if active_view["value"] == index:
            content_holder.content = control if index == 0 else ft.Container(padding=20, content=control, bgcolor=style.BG)

    def make_nav_item(label: str, icon, index: int) -> ft.Control:
        ico = ft.Icon(icon, size=18, color=style.TEXT_MUTED)
        txt = ft.Text(label, size=13, weight=ft.FontWeight.W_600, color=style.TEXT_MUTED)
        box = ft.Container(
            content=ft.Row([ico, txt], spacing=10),
            padding=ft.padding.symmetric(horizontal=10, vertical=8),
            border_radius=12,
            on_click=lambda _: set_view(index),
        )
        nav_refs.append({"box": box, "icon": ico, "text": txt, "index": index})
        return box

    sidebar_visible = {"value": True, "initialized": False}

    def window_width() -> int:
        w = getattr(getattr(page, "window", None), "width", None)
        if not isinstance(w, (int, float)) or w <= 0:
            w = getattr(page, "window_width", 1100) or 1100
        return int(w)

    def apply_responsive_layout():
        compact = window_width() < 900
        if not sidebar_visible["initialized"]:
            sidebar_visible["value"] = not compact
            sidebar_visible["initialized"] = True
        sidebar_container.visible = bool(sidebar_visible["value"])
        hamburger_button.visible = compact or (not sidebar_container.visible)

    def toggle_sidebar(_=None):
        sidebar_visible["value"] = not sidebar_visible["value"]
        apply_responsive_layout()
        page.update()

    hamburger_button = ft.IconButton(
        icon=ft.icons.MENU,
        tooltip="Menu",
        on_click=toggle_sidebar,
        icon_color=style.TEXT_PRIMARY,
    )

    new_chat_button = ft.ElevatedButton(
        "New chat",
        icon=ft.icons.ADD,
        on_click=on_new_chat,
        style=ft.ButtonStyle(bgcolor=style.ACCENT, color=style.TEXT_PRIMARY, shape=ft.RoundedRectangleBorder(radius=12)),
    )

    sidebar_nav = ft.Column(
        [make_nav_item(label, icon, i) for i, (label, icon) in enumerate(NAV_ITEMS)],
        spacing=4,
    )

    sidebar_container = ft.Container(
        width=int(sidebar_width),
        bgcolor=style.SIDEBAR_BG,
        padding=12,
        content=ft.Column(
            [
                ft.Text(app_title, size=14, weight=ft.FontWeight.W_700, color=style.TEXT_PRIMARY),
                ft.Container(height=8),
                new_chat_button,
                ft.Container(height=10),
                sidebar_nav,
                ft.Container(height=10),
                ft.Text("Chats", size=12, weight=ft.FontWeight.W_600, color=style.TEXT_MUTED),
                sidebar_chats_list,
            ],
            spacing=0,
            expand=True,
        ),
        border=ft.border.only(right=ft.BorderSide(1, style.BORDER)),
    )

    top_bar = ft.Container(
        padding=ft.padding.symmetric(horizontal=16, vertical=10),
        bgcolor=style.SURFACE_ALT,
        border=ft.border.only(bottom=ft.BorderSide(1, style.BORDER)),
        content=ft.Row(
            [
                hamburger_button,
                ft.Container(expand=True, alignment=ft.alignment.center, content=chat_model_dropdown),
                ft.Row([server_status_dot, server_status_label], spacing=6),
            ],
            alignment=ft.MainAxisAlignment.SPACE_BETWEEN,
            vertical_alignment=ft.CrossAxisAlignment.CENTER,
        ),
    )

    main_container = ft.Container(expand=True, bgcolor=style.BG, content=ft.Column([top_bar, content_holder], expand=True, spacing=0))
    root = ft.Row([sidebar_container, main_container], expand=True, spacing=0)

    return {
        "root": root,
        "content_holder": content_holder,
        "sidebar_container": sidebar_container,
        "active_view": active_view,
        "set_view": set_view,
        "replace_tab": replace_tab,
        "toggle_sidebar": toggle_sidebar,
        "apply_responsive_layout": apply_responsive_layout,
        "window_width": window_width,
    }
