from dataclasses import fields

import flet as ft

import ui_style as style
from ui_settings import MIROSTAT_NAMES, GenerationOptions, Settings


OPTION_LABELS = {
    "mirostat_eta": "Mirostat eta",
    "mirostat_tau": "Mirostat tau",
    "num_ctx": "Context length",
    "num_gqa": "GQA groups",
    "num_gpu": "GPU layers",
    "num_thread": "Threads",
    "repeat_last_n": "Repeat last N",
    "repeat_penalty": "Repeat penalty",
    "temperature": "Temperature",
    "seed": "Seed",
    "stop": "Stop sequences (comma separated)",
    "tfs_z": "Tail free sampling",
    "num_predict": "Max tokens",
    "top_k": "Top K",
    "top_p": "Top P",
}


def _card(*, content: ft.Control) -> ft.Control:
    return ft.Container(
        padding=ft.padding.symmetric(horizontal=12, vertical=10),
        bgcolor=style.SURFACE,
        border=ft.border.all(1, style.BORDER),
        border_radius=14,
        content=content,
    )


def _heading(label: str) -> ft.Control:
    return ft.Text(label, size=12, weight=ft.FontWeight.W_600, color=style.TEXT_MUTED)


def _option_value(options: GenerationOptions, name: str) -> str:
    value = getattr(options, name)
    if value is None:
        return ""
    if name == "stop":
        return ", ".join(value)
    return str(value)


def build_option_fields(*, options: GenerationOptions, on_option) -> list[ft.Control]:
    """One input per generation option; blank inputs fall back to the model default."""
    controls: list[ft.Control] = [
        ft.Dropdown(
            label="Mirostat",
            width=200,
            value=str(options.mirostat) if options.mirostat is not None else "",
            options=[ft.dropdown.Option("", "Model default")]
            + [ft.dropdown.Option(str(k), v) for k, v in MIROSTAT_NAMES.items()],
            on_change=lambda e: on_option("mirostat", e.control.value, e.control),
        )
    ]
    for f in fields(GenerationOptions):
        if f.name == "mirostat":
            continue
        controls.append(
            ft.TextField(
                label=OPTION_LABELS.get(f.name, f.name),
                value=_option_value(options, f.name),
                hint_text="default",
                width=420 if f.name == "stop" else 200,
                dense=True,
                on_blur=lambda e, n=f.name: on_option(n, e.control.value, e.control),
                on_submit=lambda e, n=f.name: on_option(n, e.control.value, e.control),
            )
        )
    return controls


def build_settings_tab(
    *,
    settings: Settings,
    model_names: list[str],
    endpoint_text: str,
    endpoint_error: str,
    on_endpoint,
    on_default_model,
    on_inherit,
    on_option,
    on_template,
    on_reset,
    on_export,
    on_import,
) -> ft.Control:
    picker = settings.model_picker
    endpoint_field = ft.TextField(
        label="Ollama endpoint",
        value=endpoint_text,
        error_text=endpoint_error or None,
        expand=True,
        on_submit=lambda e: on_endpoint(e.control.value),
        on_blur=lambda e: on_endpoint(e.control.value),
    )
    names = list(model_names)
    if picker.name and picker.name not in names:
        names.insert(0, picker.name)
    model_dropdown = ft.Dropdown(
        label="Default model",
        value=picker.name or None,
        options=[ft.dropdown.Option(n) for n in names],
        width=320,
        on_change=lambda e: on_default_model(e.control.value),
    )
    inherit_switch = ft.Switch(
        label="Changing a chat's model also changes the default",
        value=bool(settings.inherit_chat_picker),
        on_change=lambda e: on_inherit(bool(e.control.value)),
    )
    template_field = ft.TextField(
        label="Prompt template override",
        value=picker.template or "",
        multiline=True,
        min_lines=2,
        max_lines=8,
        on_blur=lambda e: on_template(e.control.value),
    )

    return ft.ListView(
        controls=[
            _card(content=ft.Column([_heading("Server"), ft.Row([endpoint_field], spacing=10)], spacing=8)),
            _card(content=ft.Column([_heading("Model"), model_dropdown, inherit_switch], spacing=8)),
            _card(
                content=ft.Column(
                    [
                        _heading("Generation options"),
                        ft.Row(build_option_fields(options=picker.options, on_option=on_option), spacing=10, wrap=True),
                        template_field,
                        ft.Text("Options apply to chats created after the change.", size=11, color=style.TEXT_MUTED),
                    ],
                    spacing=8,
                )
            ),
            _card(
                content=ft.Column(
                    [
                        _heading("Backup"),
                        ft.Row(
                            [
                                ft.OutlinedButton("Export settings", icon=ft.icons.UPLOAD_FILE, on_click=lambda _e: on_export()),
                                ft.OutlinedButton("Import settings", icon=ft.icons.DOWNLOAD, on_click=lambda _e: on_import()),
                                ft.Container(expand=True),
                                ft.TextButton(
                                    "Reset to defaults",
                                    icon=ft.icons.RESTART_ALT,
                                    style=ft.ButtonStyle(color=style.DANGER),
                                    on_click=lambda _e: on_reset(),
                                ),
                            ],
                            spacing=10,
                            wrap=True,
                        ),
                    ],
                    spacing=8,
                )
            ),
        ],
        spacing=12,
        expand=True,
    )


def confirm_reset_dialog(*, on_confirm, on_cancel) -> ft.AlertDialog:
    return ft.AlertDialog(
        modal=True,
        title=ft.Text("Reset settings?"),
        content=ft.Text("The endpoint, default model and generation options return to their defaults. Chats are kept."),
        actions=[
            ft.TextButton("Cancel", on_click=lambda _e: on_cancel()),
            ft.TextButton("Reset", on_click=lambda _e: on_confirm()),
        ],
        actions_alignment=ft.MainAxisAlignment.END,
    )
