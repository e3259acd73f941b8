#!/usr/bin/env python3
import logging
import time

import flet as ft

import ui_config as cfg
import ui_filepicker as filepicker_utils
import ui_logging
import ui_pollers
import ui_shell
import ui_style as style
import view_chat
import view_models
import view_sessions
import view_settings
from ui_flet import UiLoop
from ui_images import IMAGE_FORMATS
from ui_state import AppShell


logger = logging.getLogger(__name__)

APP_TITLE = cfg.APP_TITLE
CHAT_MAX_WIDTH = cfg.CHAT_MAX_WIDTH
CHAT_MIN_WIDTH = cfg.CHAT_MIN_WIDTH
SIDEBAR_WIDTH = cfg.SIDEBAR_WIDTH

CHAT_VIEW, MODELS_VIEW, SETTINGS_VIEW = range(3)


def main(page: ft.Page):
    loop = UiLoop()
    shell = AppShell.load(loop=loop)

    page.title = APP_TITLE
    page.window_min_width = 720
    page.window_min_height = 560
    page.theme_mode = ft.ThemeMode.DARK
    page.bgcolor = style.BG
    page.padding = 0
    page.theme = ft.Theme(font_family="Noto Sans")

    # composer state lives with its controls and is only touched on the loop thread
    composer = {"attachments": []}
    rendered = {"revision": -1, "rows": {}, "models_key": None, "settings_key": None}
    export_target = {"chat_id": None, "fmt": "md"}

    def show_snack(message, kind="info"):
        page.snack_bar = ft.SnackBar(ft.Text(message, color=style.TEXT_PRIMARY), bgcolor=style.notify_color(kind))
        page.snack_bar.open = True
        page.update()

    shell.on_notify = show_snack

    def copy_text(value: str, label: str):
        try:
            page.set_clipboard(value or "")
        except Exception as exc:
            show_snack(f"Copy failed: {exc}", "error")
            return
        show_snack(label, "ok")

    def open_markdown_link(e):
        url = getattr(e, "data", None) or ""
        if url:
            page.launch_url(url)

    def content_width() -> int:
        sidebar_w = SIDEBAR_WIDTH if shell_ui["sidebar_container"].visible else 0
        available = shell_ui["window_width"]() - sidebar_w - 90
        return min(CHAT_MAX_WIDTH, max(CHAT_MIN_WIDTH, int(available)))

    def close_dialog():
        if page.dialog is not None:
            page.dialog.open = False
            page.update()

    def open_dialog(dlg: ft.AlertDialog):
        page.dialog = dlg
        dlg.open = True
        page.update()

    # --- controls -----------------------------------------------------------

    chat_list = ft.ListView(expand=True, spacing=14, padding=12, auto_scroll=True)
    empty_state = ft.Container(
        expand=True,
        alignment=ft.alignment.center,
        content=ft.Text("What can I help with?", size=34, weight=ft.FontWeight.W_700, color=style.TEXT_PRIMARY),
    )
    input_field = ft.TextField(
        hint_text="Message",
        multiline=True,
        min_lines=1,
        max_lines=8,
        shift_enter=True,
        expand=True,
        border=ft.InputBorder.NONE,
        on_submit=lambda _e: loop.post(do_send),
    )
    attachments_row = ft.Row([], wrap=True, spacing=6, visible=False)
    attach_button = ft.IconButton(icon=ft.icons.IMAGE_OUTLINED, tooltip="Attach images", icon_color=style.TEXT_MUTED)
    send_button = ft.IconButton(
        icon=ft.icons.ARROW_UPWARD,
        tooltip="Send",
        bgcolor=style.ACCENT,
        icon_color=style.TEXT_PRIMARY,
        on_click=lambda _e: loop.post(do_send),
    )
    stop_button = ft.IconButton(
        icon=ft.icons.STOP,
        tooltip="Stop",
        bgcolor=style.SURFACE_ALT,
        icon_color=style.DANGER,
        visible=False,
        on_click=lambda _e: loop.post(shell.cancel),
    )
    composer_outer = view_chat.build_composer(
        input_field=input_field,
        attachments_row=attachments_row,
        attach_button=attach_button,
        send_button=send_button,
        stop_button=stop_button,
        width=CHAT_MAX_WIDTH,
    )

    chat_model_dropdown = ft.Dropdown(
        hint_text="Select a model",
        width=320,
        dense=True,
        on_change=lambda e: loop.post(shell.set_chat_model, e.control.value),
    )
    server_status_dot = ft.Container(width=12, height=12, bgcolor=style.server_dot_color(None), border_radius=6)
    server_status_label = ft.Text("Ollama", size=12, color=style.TEXT_MUTED)
    sidebar_chats_list = ft.ListView(expand=True, spacing=2)
    refresh_models_button = ft.IconButton(
        icon=ft.icons.REFRESH,
        tooltip="Refresh models",
        icon_color=style.TEXT_MUTED,
        on_click=lambda _e: loop.post(shell.refresh_models, auto=False),
    )

    image_picker = ft.FilePicker()
    export_dir_picker = ft.FilePicker()
    settings_export_picker = ft.FilePicker()
    settings_import_picker = ft.FilePicker()
    page.overlay.extend([image_picker, export_dir_picker, settings_export_picker, settings_import_picker])

    # --- composer -----------------------------------------------------------

    def render_attachments():
        attachments_row.controls = [
            ft.Chip(
                label=ft.Text(path.replace("\\", "/").rsplit("/", 1)[-1], size=11),
                leading=ft.Icon(ft.icons.IMAGE, size=14),
                on_delete=lambda _e, p=path: loop.post(remove_attachment, p),
            )
            for path in composer["attachments"]
        ]
        attachments_row.visible = bool(composer["attachments"])

    def remove_attachment(path: str):
        composer["attachments"] = [p for p in composer["attachments"] if p != path]
        render_attachments()
        page.update()

    def add_attachments(result):
        paths, rejected = filepicker_utils.normalize_file_picker_result(result)
        for path in paths:
            if path not in composer["attachments"]:
                composer["attachments"].append(path)
        if rejected:
            show_snack(f"Skipped {len(rejected)} file(s) that are not images.", "warn")
        render_attachments()
        page.update()

    def do_send():
        prompt = input_field.value or ""
        if shell.submit(prompt, list(composer["attachments"])):
            input_field.value = ""
            composer["attachments"] = []
            render_attachments()
        page.update()

    attach_button.on_click = lambda _e: image_picker.pick_files(
        dialog_title="Attach images",
        allow_multiple=True,
        file_type=ft.FilePickerFileType.CUSTOM,
        allowed_extensions=list(IMAGE_FORMATS),
    )
    image_picker.on_result = lambda e: loop.post(add_attachments, e)

    # --- chats --------------------------------------------------------------

    def on_new_chat(_=None):
        def create():
            shell.new_chat()
            shell_ui["set_view"](CHAT_VIEW)
        loop.post(create)

    def on_select_chat(chat_id: str):
        def activate():
            shell.select(chat_id)
            if shell_ui["active_view"]["value"] != CHAT_VIEW:
                shell_ui["set_view"](CHAT_VIEW)
        loop.post(activate)

    def on_delete_chat(chat_id: str):
        def ask():
            chat = shell.sessions.get(chat_id)
            if chat is None:
                return
            if not chat.messages:
                shell.remove_chat(chat_id)
                return
            open_dialog(
                view_sessions.confirm_delete_dialog(
                    chat=chat,
                    on_confirm=lambda: loop.post(confirm_delete, chat_id),
                    on_cancel=close_dialog,
                )
            )
        loop.post(ask)

    def confirm_delete(chat_id: str):
        close_dialog()
        shell.remove_chat(chat_id)

    def on_export_chat(chat_id: str, fmt: str):
        export_target["chat_id"] = chat_id
        export_target["fmt"] = fmt
        export_dir_picker.get_directory_path(dialog_title="Export chat to folder")

    def handle_export_dir(e):
        directory = getattr(e, "path", None)
        if directory and export_target["chat_id"]:
            loop.post(shell.export_chat, export_target["chat_id"], export_target["fmt"], directory)

    export_dir_picker.on_result = handle_export_dir

    def on_speak(index: int):
        loop.post(shell.toggle_speech, shell.active_id, index)

    # --- models and settings ------------------------------------------------

    def on_option(name: str, raw, control):
        def apply():
            error = shell.set_default_option(name, raw or "")
            if hasattr(control, "error_text"):
                control.error_text = error or None
                page.update()
        loop.post(apply)

    def on_reset():
        open_dialog(
            view_settings.confirm_reset_dialog(
                on_confirm=lambda: loop.post(confirm_reset),
                on_cancel=close_dialog,
            )
        )

    def confirm_reset():
        close_dialog()
        shell.reset_settings()
        rendered["settings_key"] = None

    def handle_settings_export(e):
        path = getattr(e, "path", None)
        if path:
            loop.post(shell.export_settings, path)

    def handle_settings_import(e):
        picked = [f.path for f in (getattr(e, "files", None) or []) if getattr(f, "path", None)]
        path = picked[0] if picked else None
        if path:
            loop.post(import_settings, path)

    def import_settings(path: str):
        if shell.import_settings(path):
            rendered["settings_key"] = None

    settings_export_picker.on_result = handle_settings_export
    settings_import_picker.on_result = handle_settings_import

    def build_models_view():
        picker = shell.settings.model_picker
        return view_models.build_models_tab(
            models=shell.models,
            models_error=shell.models_error,
            loaded=shell.models_loaded,
            selected_name=picker.name,
            info_name=picker.name,
            info=shell.model_info.get(picker.name),
            refresh_button=refresh_models_button,
            on_select=lambda name: loop.post(shell.set_default_model, name),
            on_info=lambda name: loop.post(shell.request_model_info, name),
        )

    def build_settings_view():
        return view_settings.build_settings_tab(
            settings=shell.settings,
            model_names=[m.name for m in shell.models],
            endpoint_text=shell.endpoint_draft or shell.settings.endpoint,
            endpoint_error=shell.endpoint_error or shell.settings.endpoint_error(),
            on_endpoint=lambda raw: loop.post(update_endpoint, raw),
            on_default_model=lambda name: loop.post(shell.set_default_model, name),
            on_inherit=lambda value: loop.post(shell.set_inherit_chat_picker, value),
            on_option=on_option,
            on_template=lambda raw: loop.post(shell.set_default_template, raw),
            on_reset=on_reset,
            on_export=lambda: settings_export_picker.save_file(dialog_title="Export settings", file_name="ellama-settings.json"),
            on_import=lambda: settings_import_picker.pick_files(
                dialog_title="Import settings",
                file_type=ft.FilePickerFileType.CUSTOM,
                allowed_extensions=["json"],
            ),
        )

    def update_endpoint(raw: str):
        if (raw or "").strip() == shell.settings.endpoint and not shell.endpoint_error:
            return
        shell.update_endpoint(raw)
        rendered["settings_key"] = None

    def on_view_change(index: int):
        if index == MODELS_VIEW:
            loop.post(shell.request_model_info, shell.settings.model_picker.name)
        rendered["models_key"] = None
        rendered["settings_key"] = None
        loop.post(shell.mark_changed)

    tabs = [
        view_chat.build_chat_tab(chat_scroller=chat_list, empty_state=empty_state, composer_outer=composer_outer),
        ft.Container(),
        ft.Container(),
    ]
    shell_ui = ui_shell.build_shell(
        page=page,
        app_title=APP_TITLE,
        sidebar_width=SIDEBAR_WIDTH,
        tabs=tabs,
        chat_model_dropdown=chat_model_dropdown,
        server_status_dot=server_status_dot,
        server_status_label=server_status_label,
        sidebar_chats_list=sidebar_chats_list,
        on_new_chat=on_new_chat,
        on_view_change=on_view_change,
    )

    # --- redraw -------------------------------------------------------------

    def render_chat(chat, width: int):
        speaking_owner = shell.speaker.speaking_owner if shell.speaker.is_speaking else None
        tts_available = shell.speaker.available
        rows = {}
        controls = []
        for index, msg in enumerate(chat.messages):
            waited = int(time.time() - chat.requested_at) if (msg.is_generating and not msg.content) else 0
            speaking = speaking_owner == (chat.id, index)
            key = (chat.id, index, len(msg.content), msg.is_generating, msg.is_error, speaking, tts_available, width, waited)
            row = rendered["rows"].get(key)
            if row is None:
                row = view_chat.build_message_row(
                    chat=chat,
                    index=index,
                    width=width,
                    assistant_name=chat.model.split(":", 1)[0] or "Assistant",
                    speaking=speaking,
                    tts_available=tts_available,
                    on_copy=copy_text,
                    on_speak=on_speak,
                    on_retry=lambda: loop.post(shell.retry),
                    on_tap_link=open_markdown_link,
                )
            rows[key] = row
            controls.append(row)
        rendered["rows"] = rows
        chat_list.controls = controls
        empty_state.visible = not chat.messages

    def redraw():
        if shell.revision == rendered["revision"]:
            return
        rendered["revision"] = shell.revision
        chat = shell.active
        width = content_width()

        sidebar_chats_list.controls = view_sessions.build_chat_list(
            chats=shell.ordered_chats(),
            active_id=shell.active_id,
            on_select=on_select_chat,
            on_delete=on_delete_chat,
            on_export=on_export_chat,
        )

        names = [m.name for m in shell.models]
        if chat.model and chat.model not in names:
            names.insert(0, chat.model)
        chat_model_dropdown.options = [ft.dropdown.Option(n) for n in names]
        chat_model_dropdown.value = chat.model or None
        chat_model_dropdown.disabled = chat.is_busy

        server_status_dot.bgcolor = style.server_dot_color(shell.server_online)
        server_status_label.value = "Ollama" if shell.server_online is not False else "Ollama offline"

        render_chat(chat, width)
        composer_outer.width = width
        send_button.visible = not chat.is_busy
        stop_button.visible = chat.is_busy
        attach_button.disabled = chat.is_busy

        view = shell_ui["active_view"]["value"]
        if view == MODELS_VIEW:
            picker = shell.settings.model_picker
            key = (
                tuple((m.name, m.size, m.modified_at) for m in shell.models),
                str(shell.models_error or ""),
                shell.models_loaded,
                picker.name,
                picker.name in shell.model_info,
            )
            if key != rendered["models_key"]:
                rendered["models_key"] = key
                shell_ui["replace_tab"](MODELS_VIEW, build_models_view())
        elif view == SETTINGS_VIEW:
            settings = shell.settings
            key = (
                id(settings),
                settings.endpoint,
                shell.endpoint_draft,
                shell.endpoint_error,
                settings.model_picker.name,
                settings.inherit_chat_picker,
                tuple(names),
            )
            if key != rendered["settings_key"]:
                rendered["settings_key"] = key
                shell_ui["replace_tab"](SETTINGS_VIEW, build_settings_view())

        page.update()

    loop.on_idle = redraw

    # --- lifecycle ----------------------------------------------------------

    stop_polling, _ = ui_pollers.start_pollers(shell)

    def shutdown():
        stop_polling.set()
        shell.shutdown()
        logger.info("state saved, closing")

    def on_window_event(e):
        if getattr(e, "data", None) == "close":
            loop.post(shutdown)
            loop.stop(timeout=3.0)
            page.window_destroy()

    def on_resize(_=None):
        shell_ui["apply_responsive_layout"]()
        loop.post(shell.mark_changed)

    page.window_prevent_close = True
    page.on_window_event = on_window_event
    page.on_resize = on_resize

    page.add(shell_ui["root"])
    shell_ui["apply_responsive_layout"]()
    shell_ui["set_view"](CHAT_VIEW)
    loop.start()


def run():
    ui_logging.configure_logging()
    logger.info("starting %s (endpoint %s, data %s)", APP_TITLE, cfg.OLLAMA_HOST, cfg.DATA_DIR)
    ft.app(target=main)


if __name__ == "__main__":
    run()
