from __future__ import annotations

import copy
import logging
from dataclasses import asdict, dataclass, field, fields

import ui_config as cfg
from ui_ollama import EndpointError, LocalModel, ModelInfo, parse_endpoint


logger = logging.getLogger(__name__)


MIROSTAT_NAMES = {0: "Disabled", 1: "Mirostat", 2: "Mirostat 2.0"}


@dataclass
class GenerationOptions:
    """
    Sampling options sent to Ollama. `None` means "use the model default" and is
    left out of the request.
    """

    mirostat: int | None = None
    mirostat_eta: float | None = None
    mirostat_tau: float | None = None
    num_ctx: int | None = None
    num_gqa: int | None = None
    num_gpu: int | None = None
    num_thread: int | None = None
    repeat_last_n: int | None = None
    repeat_penalty: float | None = None
    temperature: float | None = None
    seed: int | None = None
    stop: list[str] | None = None
    tfs_z: float | None = None
    num_predict: int | None = None
    top_k: int | None = None
    top_p: float | None = None

    def to_request(self) -> dict:
        out = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if f.name == "stop":
                value = [s for s in value if s]
                if not value:
                    continue
            out[f.name] = value
        return out

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> "GenerationOptions":
        data = data if isinstance(data, dict) else {}
        kwargs = {}
        for f in fields(cls):
            if f.name not in data or data[f.name] is None:
                continue
            try:
                kwargs[f.name] = _coerce_option(f.name, data[f.name])
            except (TypeError, ValueError, OverflowError):
                logger.warning("ignoring invalid option %s=%r", f.name, data[f.name])
        return cls(**kwargs)

    def copy(self) -> "GenerationOptions":
        return copy.deepcopy(self)


_INT_OPTIONS = {"mirostat", "num_ctx", "num_gqa", "num_gpu", "num_thread", "repeat_last_n", "seed", "num_predict", "top_k"}


def _coerce_option(name: str, value):
    if name == "stop":
        if isinstance(value, str):
            value = value.split(",")
        return [str(s).strip() for s in value if str(s).strip()]
    if name in _INT_OPTIONS:
        if isinstance(value, bool):
            raise TypeError(name)
        coerced = int(value)
        if name == "mirostat" and coerced not in MIROSTAT_NAMES:
            raise ValueError(name)
        return coerced
    if isinstance(value, bool):
        raise TypeError(name)
    return float(value)


def parse_option_field(name: str, raw: str | None):
    """Convert a text field value to an option value; blank means unset."""
    text = (raw or "").strip()
    if not text:
        return None
    return _coerce_option(name, text)


@dataclass
class ModelPicker:
    name: str = ""
    size: int = 0
    modified_at: str = ""
    options: GenerationOptions = field(default_factory=GenerationOptions)
    template: str | None = None
    info: ModelInfo | None = None

    def has_selection(self) -> bool:
        return bool(self.name)

    def select(self, model: LocalModel) -> None:
        if model.name != self.name:
            self.info = None
        self.name = model.name
        self.size = model.size
        self.modified_at = model.modified_at

    def select_best_model(self, models: list[LocalModel]) -> None:
        if not models:
            return
        best = max(models, key=lambda m: m.size)
        self.select(best)
        logger.info("subjectively selected best model: %s", self.name)

    def on_new_model_info(self, name: str, info: ModelInfo) -> None:
        if self.name == name:
            self.info = info

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "size": self.size,
            "modified_at": self.modified_at,
            "options": self.options.to_dict(),
            "template": self.template,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "ModelPicker":
        data = data if isinstance(data, dict) else {}
        try:
            size = int(data.get("size") or 0)
        except (TypeError, ValueError):
            size = 0
        template = data.get("template")
        return cls(
            name=str(data.get("name") or ""),
            size=size,
            modified_at=str(data.get("modified_at") or ""),
            options=GenerationOptions.from_dict(data.get("options")),
            template=str(template) if template else None,
        )


@dataclass
class Settings:
    endpoint: str = cfg.OLLAMA_HOST
    model_picker: ModelPicker = field(default_factory=ModelPicker)
    inherit_chat_picker: bool = True

    def endpoint_error(self) -> str:
        try:
            parse_endpoint(self.endpoint)
        except EndpointError as exc:
            return str(exc)
        return ""

    def to_dict(self) -> dict:
        return {
            "endpoint": self.endpoint,
            "model_picker": self.model_picker.to_dict(),
            "inherit_chat_picker": bool(self.inherit_chat_picker),
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "Settings":
        data = data if isinstance(data, dict) else {}
        inherit = data.get("inherit_chat_picker", True)
        return cls(
            endpoint=str(data.get("endpoint") or cfg.OLLAMA_HOST),
            model_picker=ModelPicker.from_dict(data.get("model_picker")),
            inherit_chat_picker=inherit if isinstance(inherit, bool) else True,
        )
