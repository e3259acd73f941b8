from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlparse

import requests

import ui_config as cfg
import ui_images


logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    CONNECTION = "connection"
    MALFORMED_RESPONSE = "malformed_response"
    MODEL_NOT_FOUND = "model_not_found"
    CANCELLED = "cancelled"
    SERVER = "server"
    ATTACHMENT = "attachment"


class ChatError(RuntimeError):
    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return self.message


class EndpointError(ValueError):
    pass


def parse_endpoint(raw: str) -> str:
    """Validate an Ollama endpoint and return it without a trailing slash."""
    text = (raw or "").strip()
    try:
        parsed = urlparse(text)
    except ValueError as exc:
        raise EndpointError(f"invalid endpoint: {exc}") from exc
    if parsed.scheme not in ("http", "https"):
        raise EndpointError("Endpoint must start with http:// or https://")
    if not parsed.hostname:
        raise EndpointError("invalid host")
    try:
        parsed.port
    except ValueError as exc:
        raise EndpointError(f"invalid port: {exc}") from exc
    return text.rstrip("/")


@dataclass
class LocalModel:
    name: str
    size: int = 0
    modified_at: str = ""
    digest: str = ""

    @classmethod
    def from_json(cls, data: dict) -> "LocalModel":
        if not isinstance(data, dict) or not data.get("name"):
            raise ChatError(ErrorKind.MALFORMED_RESPONSE, "Model entry without a name")
        try:
            size = int(data.get("size") or 0)
        except (TypeError, ValueError):
            size = 0
        return cls(
            name=str(data["name"]),
            size=size,
            modified_at=str(data.get("modified_at") or ""),
            digest=str(data.get("digest") or ""),
        )


@dataclass
class ModelInfo:
    license: str = ""
    modelfile: str = ""
    parameters: str = ""
    template: str = ""

    @classmethod
    def from_json(cls, data: dict) -> "ModelInfo":
        return cls(
            license=str(data.get("license") or ""),
            modelfile=str(data.get("modelfile") or ""),
            parameters=str(data.get("parameters") or ""),
            template=str(data.get("template") or ""),
        )

    def sections(self) -> list[tuple[str, str]]:
        return [
            (heading, body)
            for heading, body in (
                ("License", self.license),
                ("Modelfile", self.modelfile),
                ("Parameters", self.parameters),
                ("Template", self.template),
            )
            if body
        ]


@dataclass
class ChatRequest:
    """
    Everything needed for one `/api/chat` call.
    `messages` hold role/content plus image file paths under `images`; paths are
    encoded on the worker thread.
    """

    model: str
    messages: list[dict] = field(default_factory=list)
    options: dict = field(default_factory=dict)
    template: str | None = None


class StreamHandle:
    """Cancellable handle for a streamed chat request."""

    def __init__(self) -> None:
        self._cancel_event = threading.Event()
        self._lock = threading.Lock()
        self._response = None
        self.thread: threading.Thread | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        self._cancel_event.set()
        with self._lock:
            resp = self._response
            self._response = None
        if resp is not None:
            try:
                resp.close()
            except Exception as exc:
                logger.debug("closing cancelled response failed: %s", exc)

    def attach(self, response) -> None:
        with self._lock:
            if not self._cancel_event.is_set():
                self._response = response
                return
        response.close()

    def detach(self, response) -> None:
        with self._lock:
            if self._response is response:
                self._response = None

    def join(self, timeout: float | None = None) -> None:
        if self.thread is not None:
            self.thread.join(timeout)


def _error_detail(response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return (getattr(response, "text", "") or "").strip() or (response.reason or "")


def _http_error(response, model: str | None = None) -> ChatError:
    detail = _error_detail(response)
    if response.status_code == 404:
        label = f"model '{model}' not found" if model else "not found"
        return ChatError(ErrorKind.MODEL_NOT_FOUND, detail or label)
    return ChatError(ErrorKind.SERVER, f"Ollama returned {response.status_code}: {detail}")


def _stream_error(detail) -> ChatError:
    text = str(detail)
    if "not found" in text.lower():
        return ChatError(ErrorKind.MODEL_NOT_FOUND, text)
    return ChatError(ErrorKind.SERVER, text)


class OllamaClient:
    def __init__(
        self,
        base_url: str = cfg.DEFAULT_HOST,
        *,
        connect_timeout_s: float = cfg.STREAM_CONNECT_TIMEOUT_S,
        read_timeout_s: float | None = cfg.STREAM_READ_TIMEOUT_S,
        request_timeout_s: float = cfg.REQUEST_TIMEOUT_S,
    ) -> None:
        self.base_url = (base_url or cfg.DEFAULT_HOST).rstrip("/")
        self.connect_timeout_s = connect_timeout_s
        self.read_timeout_s = read_timeout_s
        self.request_timeout_s = request_timeout_s

    @classmethod
    def from_endpoint(cls, endpoint: str, **kwargs) -> "OllamaClient":
        try:
            base = parse_endpoint(endpoint)
        except EndpointError as exc:
            logger.warning("invalid endpoint %r (%s), falling back to %s", endpoint, exc, cfg.DEFAULT_HOST)
            base = cfg.DEFAULT_HOST
        return cls(base, **kwargs)

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _request_json(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = requests.request(method, self._url(path), timeout=self.request_timeout_s, **kwargs)
        except requests.exceptions.RequestException as exc:
            raise ChatError(ErrorKind.CONNECTION, f"Could not reach Ollama at {self.base_url}: {exc}") from exc
        if not response.ok:
            raise _http_error(response, (kwargs.get("json") or {}).get("model"))
        try:
            data = response.json()
        except ValueError as exc:
            raise ChatError(ErrorKind.MALFORMED_RESPONSE, f"Invalid JSON from {path}") from exc
        if not isinstance(data, dict):
            raise ChatError(ErrorKind.MALFORMED_RESPONSE, f"Unexpected response from {path}")
        return data

    def server_status(self) -> bool:
        try:
            resp = requests.get(self._url("/"), timeout=2)
        except requests.exceptions.RequestException:
            return False
        return resp.status_code == 200

    def list_models(self) -> list[LocalModel]:
        logger.debug("requesting local models from %s", self.base_url)
        data = self._request_json("GET", "/api/tags")
        raw_models = data.get("models")
        if raw_models is None:
            raw_models = []
        if not isinstance(raw_models, list):
            raise ChatError(ErrorKind.MALFORMED_RESPONSE, "Expected a list of models")
        models = [LocalModel.from_json(m) for m in raw_models]
        logger.debug("%d local models", len(models))
        return models

    def show_model_info(self, name: str) -> ModelInfo:
        data = self._request_json("POST", "/api/show", json={"model": name})
        return ModelInfo.from_json(data)

    def build_payload(self, request: ChatRequest) -> dict:
        messages = []
        for msg in request.messages:
            out = {"role": msg.get("role") or "user", "content": msg.get("content") or ""}
            images = msg.get("images") or []
            if images:
                try:
                    out["images"] = ui_images.encode_images(images)
                except (OSError, ValueError) as exc:
                    raise ChatError(ErrorKind.ATTACHMENT, f"Could not attach image: {exc}") from exc
            messages.append(out)
        payload = {"model": request.model, "messages": messages, "stream": True}
        if request.options:
            payload["options"] = dict(request.options)
        if request.template:
            payload["template"] = request.template
        return payload

    def stream_chat(self, request: ChatRequest, handle: StreamHandle, on_fragment) -> None:
        """
        Run one streamed chat request on the calling thread.

        Calls `on_fragment(text)` for each non-empty piece of content. Leading
        whitespace-only chunks are skipped and the first delivered chunk is
        left-stripped. Returns normally on completion or cancellation and raises
        ChatError on failure.
        """
        payload = self.build_payload(request)
        logger.info("requesting completion... (model: %s, history length: %d)", request.model, len(payload["messages"]))
        try:
            response = requests.post(
                self._url("/api/chat"),
                json=payload,
                stream=True,
                timeout=(self.connect_timeout_s, self.read_timeout_s),
            )
        except requests.exceptions.RequestException as exc:
            if handle.cancelled:
                return
            raise ChatError(ErrorKind.CONNECTION, f"Could not reach Ollama at {self.base_url}: {exc}") from exc

        handle.attach(response)
        delivered = 0
        try:
            if not response.ok:
                raise _http_error(response, request.model)
            is_whitespace = True
            for raw_line in response.iter_lines():
                if handle.cancelled:
                    return
                if not raw_line:
                    continue
                try:
                    chunk = json.loads(raw_line)
                except ValueError as exc:
                    raise ChatError(ErrorKind.MALFORMED_RESPONSE, "Invalid JSON in response stream") from exc
                if not isinstance(chunk, dict):
                    raise ChatError(ErrorKind.MALFORMED_RESPONSE, "Unexpected chunk in response stream")
                if chunk.get("error"):
                    raise _stream_error(chunk["error"])
                message = chunk.get("message")
                if message is not None and not isinstance(message, dict):
                    raise ChatError(ErrorKind.MALFORMED_RESPONSE, "Unexpected message in response stream")
                content = (message or {}).get("content") or ""
                if content:
                    if is_whitespace:
                        if not content.strip():
                            continue
                        content = content.lstrip()
                        is_whitespace = False
                    delivered += len(content)
                    on_fragment(content)
                if chunk.get("done"):
                    break
        except ChatError:
            raise
        except Exception as exc:
            if handle.cancelled:
                logger.debug("stream interrupted by cancellation: %s", exc)
                return
            if isinstance(exc, requests.exceptions.RequestException):
                raise ChatError(ErrorKind.CONNECTION, f"Stream interrupted: {exc}") from exc
            raise
        finally:
            handle.detach(response)
            response.close()
        logger.info("completion request complete, response length: %d", delivered)

    def send_chat(self, request: ChatRequest, on_fragment, on_complete, on_error) -> StreamHandle:
        """
        Start a streamed chat on a background thread and return its handle.

        Exactly one of `on_complete()` / `on_error(ChatError)` is called when the
        worker ends; a cancelled stream reports ErrorKind.CANCELLED.
        """
        handle = StreamHandle()

        def worker() -> None:
            try:
                self.stream_chat(request, handle, on_fragment)
            except ChatError as exc:
                if handle.cancelled:
                    on_error(ChatError(ErrorKind.CANCELLED, "Generation stopped."))
                    return
                logger.error("failed to request completion: %s (%s)", exc, exc.kind.value)
                on_error(exc)
                return
            except Exception as exc:
                logger.exception("unexpected failure while streaming")
                on_error(ChatError(ErrorKind.MALFORMED_RESPONSE, str(exc) or exc.__class__.__name__))
                return
            if handle.cancelled:
                on_error(ChatError(ErrorKind.CANCELLED, "Generation stopped."))
                return
            on_complete()

        handle.thread = threading.Thread(target=worker, name="ollama-chat", daemon=True)
        handle.thread.start()
        return handle
