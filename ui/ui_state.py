"""Application shell: every chat, the active selection and the process-wide settings.

All methods here run on the UI loop. Network work is started on daemon threads
whose results are posted back through `loop.post`.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

import chat_controller
import ui_prefs_io
import ui_sessions
import ui_sessions_io
from chat_session import ChatSession, SubmitRejected
from ui_flet import UiLoop
from ui_ollama import ChatError, EndpointError, LocalModel, ModelInfo, OllamaClient, parse_endpoint
from ui_settings import Settings, parse_option_field
from ui_tts import Speaker


logger = logging.getLogger(__name__)


def _spawn_thread(target, name: str) -> None:
    threading.Thread(target=target, name=name, daemon=True).start()


class AppShell:
    def __init__(
        self,
        settings: Settings | None = None,
        chats: list[ChatSession] | None = None,
        selected: str | None = None,
        *,
        loop: UiLoop | None = None,
        speaker: Speaker | None = None,
        client_factory=None,
        spawn=None,
        data_dir: Path | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.loop = loop or UiLoop()
        self.speaker = speaker or Speaker()
        self.data_dir = Path(data_dir) if data_dir else ui_sessions.DATA_DIR
        self._client_factory = client_factory or OllamaClient.from_endpoint
        self._spawn = spawn or _spawn_thread
        self._client: OllamaClient | None = None
        self._client_endpoint = ""

        self.sessions: dict[str, ChatSession] = {}
        for chat in chats or []:
            self.sessions[chat.id] = chat
        self.active_id: str | None = selected if selected in self.sessions else None

        self.models: list[LocalModel] = []
        self.models_error: ChatError | None = None
        self.server_online: bool | None = None
        self.models_loaded = False
        self._refreshing = False
        self.model_info: dict[str, ModelInfo] = {}
        self._info_pending: set[str] = set()

        self.revision = 0
        self._was_speaking = False
        self.on_notify = None
        self.endpoint_draft = ""
        self.endpoint_error = ""

        self.ctx = chat_controller.ChatContext(
            get_client=self.client,
            post=self.loop.post,
            on_change=self._session_changed,
            notify_error=self._notify_chat_error,
        )

        if not self.sessions:
            self.new_chat()
        elif self.active_id is None:
            self.active_id = next(iter(self.sessions))

    # --- plumbing --------------------------------------------------------

    @property
    def settings_file(self) -> Path:
        return self.data_dir / ui_sessions.SETTINGS_FILE.name

    @property
    def history_file(self) -> Path:
        return self.data_dir / ui_sessions.HISTORY_FILE.name

    def mark_changed(self) -> None:
        self.revision += 1

    def tick(self) -> None:
        speaking = self.speaker.is_speaking
        if self._was_speaking and not speaking:
            self.mark_changed()
        self._was_speaking = speaking
        if self.active.is_busy:
            self.mark_changed()

    def notify(self, message: str, kind: str = "info") -> None:
        if kind == "error":
            logger.warning("%s", message)
        else:
            logger.info("%s", message)
        if self.on_notify is not None:
            self.on_notify(message, kind)

    def client(self) -> OllamaClient:
        endpoint = self.settings.endpoint
        if self._client is None or endpoint != self._client_endpoint:
            self._client = self._client_factory(endpoint)
            self._client_endpoint = endpoint
        return self._client

    def _session_changed(self, session: ChatSession) -> None:
        self.mark_changed()
        if not any(chat.is_busy for chat in self.sessions.values()):
            self.save()

    def _notify_chat_error(self, session: ChatSession, error: ChatError) -> None:
        title = session.title()
        self.notify(f"{title}: {error.message}", "error")

    # --- chats -----------------------------------------------------------

    @property
    def active(self) -> ChatSession:
        return self.sessions[self.active_id]

    def ordered_chats(self) -> list[ChatSession]:
        return list(self.sessions.values())

    def new_chat(self) -> ChatSession:
        picker = self.settings.model_picker
        chat = ChatSession(model=picker.name, options=picker.options.copy(), template=picker.template)
        self.sessions[chat.id] = chat
        self.active_id = chat.id
        logger.debug("created chat %s (model=%s)", chat.id, chat.model or "-")
        self.mark_changed()
        return chat

    def remove_chat(self, chat_id: str) -> None:
        chat = self.sessions.get(chat_id)
        if chat is None:
            return
        chat_controller.stop_stream(self.ctx, chat)
        owner = self.speaker.speaking_owner
        if isinstance(owner, tuple) and owner and owner[0] == chat_id:
            self.speaker.stop()

        ids = list(self.sessions)
        idx = ids.index(chat_id)
        del self.sessions[chat_id]
        if not self.sessions:
            self.new_chat()
        elif self.active_id == chat_id:
            remaining = list(self.sessions)
            self.active_id = remaining[min(idx, len(remaining) - 1)]
        self.mark_changed()
        self.save()

    def select(self, chat_id: str) -> None:
        if chat_id in self.sessions and chat_id != self.active_id:
            self.active_id = chat_id
            self.mark_changed()

    # --- conversation ----------------------------------------------------

    def submit(self, prompt: str, images: list[str] | None = None) -> bool:
        chat = self.active
        if not chat.model and self.settings.model_picker.has_selection():
            chat.model = self.settings.model_picker.name
        try:
            return chat_controller.send_message(self.ctx, chat, prompt, images)
        except SubmitRejected as exc:
            self.notify(str(exc), "error")
            return False

    def cancel(self) -> bool:
        return chat_controller.stop_stream(self.ctx, self.active)

    def retry(self) -> bool:
        try:
            return chat_controller.retry_message(self.ctx, self.active)
        except SubmitRejected as exc:
            self.notify(str(exc), "error")
            return False

    def set_chat_model(self, name: str) -> None:
        chat = self.active
        chat.model = name
        if self.settings.inherit_chat_picker:
            model = self.find_model(name)
            if model is not None:
                self.settings.model_picker.select(model)
            else:
                self.settings.model_picker.name = name
            self.save_settings()
        self.mark_changed()

    def find_model(self, name: str) -> LocalModel | None:
        for model in self.models:
            if model.name == name:
                return model
        return None

    # --- models ----------------------------------------------------------

    def refresh_models(self, auto: bool = False) -> bool:
        if self._refreshing:
            return False
        self._refreshing = True
        client = self.client()

        def worker() -> None:
            models, error = None, None
            try:
                models = client.list_models()
            except ChatError as exc:
                error = exc
            online = error is None or client.server_status()
            self.loop.post(self._apply_models, models, error, auto, online)

        self._spawn(worker, "model-refresh")
        return True

    def _apply_models(
        self, models: list[LocalModel] | None, error: ChatError | None, auto: bool, online: bool = True
    ) -> None:
        self._refreshing = False
        self.server_online = bool(online)
        if error is not None:
            changed = self.models_error is None or str(self.models_error) != str(error)
            self.models_error = error
            if not auto:
                self.notify(f"Could not list models: {error.message}", "error")
            elif changed:
                logger.info("model refresh failed: %s", error)
            self.mark_changed()
            return

        self.models_error = None
        self.models_loaded = True
        self.models = sorted(models or [], key=lambda m: m.name)
        logger.debug("model refresh: %d model(s)", len(self.models))

        picker = self.settings.model_picker
        if not picker.has_selection() and self.models:
            picker.select_best_model(self.models)
            self.save_settings()
        if picker.has_selection():
            for chat in self.sessions.values():
                if not chat.model and not chat.messages:
                    chat.model = picker.name
        self.mark_changed()

    def request_model_info(self, name: str) -> bool:
        if not name or name in self._info_pending:
            return False
        cached = self.model_info.get(name)
        if cached is not None:
            self.settings.model_picker.on_new_model_info(name, cached)
            return False
        self._info_pending.add(name)
        client = self.client()

        def worker() -> None:
            info, error = None, None
            try:
                info = client.show_model_info(name)
            except ChatError as exc:
                error = exc
            self.loop.post(self._apply_model_info, name, info, error)

        self._spawn(worker, "model-info")
        return True

    def _apply_model_info(self, name: str, info: ModelInfo | None, error: ChatError | None) -> None:
        self._info_pending.discard(name)
        if error is not None:
            self.notify(f"Could not load details for {name}: {error.message}", "error")
            return
        self.model_info[name] = info
        self.settings.model_picker.on_new_model_info(name, info)
        self.mark_changed()

    # --- settings --------------------------------------------------------

    def update_endpoint(self, raw: str) -> str:
        """
        Validate and store the endpoint; returns the validation error (empty when valid).

        An invalid value is only kept as a draft for the settings form, never saved.
        """
        candidate = (raw or "").strip()
        try:
            endpoint = parse_endpoint(candidate)
        except EndpointError as exc:
            self.endpoint_draft = candidate
            self.endpoint_error = str(exc)
            self.mark_changed()
            return self.endpoint_error
        self.endpoint_draft = ""
        self.endpoint_error = ""
        self.settings.endpoint = endpoint
        self.models = []
        self.models_loaded = False
        self.model_info.clear()
        self.save_settings()
        self.refresh_models(auto=True)
        self.mark_changed()
        return ""

    def set_default_model(self, name: str) -> None:
        picker = self.settings.model_picker
        model = self.find_model(name)
        if model is not None:
            picker.select(model)
        else:
            picker.name = name
        self.save_settings()
        self.request_model_info(name)
        self.mark_changed()

    def set_default_option(self, name: str, raw: str) -> str:
        """Parse and store one generation option; returns an error message or ''."""
        try:
            value = parse_option_field(name, raw)
        except (TypeError, ValueError, OverflowError):
            return f"Invalid value for {name}"
        setattr(self.settings.model_picker.options, name, value)
        self.save_settings()
        self.mark_changed()
        return ""

    def set_default_template(self, raw: str) -> None:
        self.settings.model_picker.template = (raw or "").strip() or None
        self.save_settings()
        self.mark_changed()

    def set_inherit_chat_picker(self, value: bool) -> None:
        self.settings.inherit_chat_picker = bool(value)
        self.save_settings()
        self.mark_changed()

    def reset_settings(self) -> None:
        self.settings = Settings()
        self.endpoint_draft = ""
        self.endpoint_error = ""
        self.model_info.clear()
        self.save_settings()
        logger.info("settings reset to defaults")
        self.refresh_models(auto=True)
        self.mark_changed()

    def export_settings(self, path: str | Path) -> bool:
        try:
            ui_prefs_io.save_json(path, self.settings.to_dict())
        except OSError as exc:
            self.notify(f"Could not export settings: {exc}", "error")
            return False
        self.notify(f"Settings exported to {path}")
        return True

    def import_settings(self, path: str | Path) -> bool:
        data = ui_prefs_io.load_json(path)
        if not data:
            self.notify(f"No settings found in {path}", "error")
            return False
        self.settings = Settings.from_dict(data)
        self.endpoint_draft = ""
        self.endpoint_error = ""
        self.model_info.clear()
        self.save_settings()
        self.notify("Settings imported")
        self.refresh_models(auto=True)
        self.mark_changed()
        return True

    # --- export / speech -------------------------------------------------

    def export_chat(self, chat_id: str, fmt: str, directory: str | Path) -> Path | None:
        chat = self.sessions.get(chat_id)
        if chat is None:
            return None
        assistant = chat.model.split(":", 1)[0] if chat.model else "Assistant"
        ext, body = ui_sessions_io.export_session_text(chat, fmt, assistant_name=assistant)
        out = Path(directory) / f"{ui_sessions_io.safe_filename(chat.title())}.{ext}"
        try:
            out.write_text(body, encoding="utf-8")
        except OSError as exc:
            self.notify(f"Could not export chat: {exc}", "error")
            return None
        self.notify(f"Exported to {out}")
        return out

    def toggle_speech(self, chat_id: str, index: int) -> bool:
        owner = (chat_id, index)
        if self.speaker.is_speaking_owner(owner):
            self.speaker.stop()
            self.mark_changed()
            return False
        chat = self.sessions.get(chat_id)
        if chat is None or not (0 <= index < len(chat.messages)):
            return False
        if not self.speaker.available:
            self.notify(f"Text to speech unavailable: {self.speaker.unavailable_reason}", "error")
            return False
        started = self.speaker.speak(owner, chat.messages[index].content)
        self.mark_changed()
        return started

    # --- persistence -----------------------------------------------------

    def save_settings(self) -> bool:
        try:
            ui_sessions.ensure_data_dir(self.data_dir)
            ui_sessions.save_settings(self.settings, self.settings_file)
        except OSError as exc:
            logger.error("failed to save settings: %s", exc)
            return False
        return True

    def save(self) -> bool:
        ok = self.save_settings()
        try:
            ui_sessions.ensure_data_dir(self.data_dir)
            ui_sessions.save_history(self.ordered_chats(), self.active_id, self.history_file)
        except OSError as exc:
            logger.error("failed to save history: %s", exc)
            return False
        return ok

    @classmethod
    def load(cls, data_dir: Path | None = None, **kwargs) -> "AppShell":
        data_dir = Path(data_dir) if data_dir else ui_sessions.DATA_DIR
        settings = ui_sessions.load_settings(data_dir / ui_sessions.SETTINGS_FILE.name)
        chats, selected = ui_sessions.load_history(data_dir / ui_sessions.HISTORY_FILE.name)
        logger.info("loaded %d chat(s), endpoint %s", len(chats), settings.endpoint)
        return cls(settings, chats, selected, data_dir=data_dir, **kwargs)

    def shutdown(self) -> None:
        for chat in list(self.sessions.values()):
            chat_controller.stop_stream(self.ctx, chat)
        self.speaker.stop()
        self.speaker.close()
        self.save()
