import flet as ft

import ui_style as style
import ui_text as text
from ui_ollama import ChatError, LocalModel, ModelInfo


def _card(*, content: ft.Control) -> ft.Control:
    return ft.Container(
        padding=14,
        bgcolor=style.SURFACE,
        border=ft.border.all(1, style.BORDER),
        border_radius=14,
        content=content,
    )


def _heading(label: str) -> ft.Control:
    return ft.Text(label, size=12, weight=ft.FontWeight.W_700, color=style.TEXT_MUTED)


def build_model_row(*, model: LocalModel, selected: bool, on_select, on_info) -> ft.Control:
    return ft.Container(
        padding=ft.padding.symmetric(horizontal=10, vertical=8),
        border_radius=10,
        bgcolor=style.ACCENT_SOFT if selected else None,
        content=ft.Row(
            [
                ft.Icon(ft.icons.CHECK_CIRCLE if selected else ft.icons.CIRCLE_OUTLINED, size=16,
                        color=style.ACCENT if selected else style.TEXT_MUTED),
                ft.Column(
                    [
                        ft.Text(model.name, size=13, weight=ft.FontWeight.W_600, color=style.TEXT_PRIMARY),
                        ft.Text(
                            f"{text.format_bytes(model.size)} · modified {text.format_ago(model.modified_at)}",
                            size=11,
                            color=style.TEXT_MUTED,
                        ),
                    ],
                    spacing=2,
                    expand=True,
                ),
                ft.IconButton(icon=ft.icons.INFO_OUTLINE, tooltip="Model details", icon_color=style.TEXT_MUTED,
                              on_click=lambda _e, n=model.name: on_info(n)),
                ft.TextButton("Use", disabled=selected, on_click=lambda _e, n=model.name: on_select(n)),
            ],
            spacing=10,
            vertical_alignment=ft.CrossAxisAlignment.CENTER,
        ),
    )


def build_info_sections(name: str, info: ModelInfo | None) -> ft.Control:
    if info is None:
        return ft.Text("Pick a model to load its details.", size=12, color=style.TEXT_MUTED)
    controls: list[ft.Control] = [ft.Text(name, size=13, weight=ft.FontWeight.W_600, color=style.TEXT_PRIMARY)]
    for title, body in info.sections():
        controls.append(
            ft.ExpansionTile(
                title=ft.Text(title, size=12, color=style.TEXT_PRIMARY),
                controls=[
                    ft.Container(
                        padding=10,
                        content=ft.Text(body, size=11, color=style.TEXT_MUTED, selectable=True, font_family="monospace"),
                    )
                ],
            )
        )
    if len(controls) == 1:
        controls.append(ft.Text("The server returned no details for this model.", size=12, color=style.TEXT_MUTED))
    return ft.Column(controls, spacing=4)


def build_models_tab(
    *,
    models: list[LocalModel],
    models_error: ChatError | None,
    loaded: bool,
    selected_name: str,
    info_name: str,
    info: ModelInfo | None,
    refresh_button: ft.Control,
    on_select,
    on_info,
) -> ft.Control:
    if models_error is not None:
        listing: list[ft.Control] = [ft.Text(f"Could not reach the server: {models_error.message}", size=12, color=style.DANGER)]
    elif not loaded:
        listing = [ft.Row([ft.ProgressRing(width=14, height=14, stroke_width=2), ft.Text("Loading models...", size=12)])]
    elif not models:
        listing = [ft.Text("No local models. Pull one with `ollama pull <name>`.", size=12, color=style.TEXT_MUTED)]
    else:
        listing = [
            build_model_row(model=m, selected=m.name == selected_name, on_select=on_select, on_info=on_info)
            for m in models
        ]

    return ft.Column(
        [
            _card(
                content=ft.Column(
                    [ft.Row([_heading("Local models"), ft.Container(expand=True), refresh_button]), *listing],
                    spacing=6,
                )
            ),
            _card(content=ft.Column([_heading("Details"), build_info_sections(info_name, info)], spacing=8)),
        ],
        spacing=12,
        scroll=ft.ScrollMode.AUTO,
    )
