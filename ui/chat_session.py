"""Per-conversation state: the message list and the streaming state machine.

A session moves idle -> sending -> streaming -> idle, or through failed back
to idle. Every submit opens a new stream token; events carrying any other
token belong to a cancelled or finished stream and are dropped, so late
fragments can never reach the message list.
"""

from __future__ import annotations

import itertools
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum

import ui_config as cfg
import ui_text as text
from ui_ollama import ChatError, ChatRequest
from ui_settings import GenerationOptions


logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    FAILED = "failed"


class SubmitRejected(RuntimeError):
    pass


_token_counter = itertools.count(1)


def new_chat_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Message:
    role: str
    content: str = ""
    images: list[str] = field(default_factory=list)
    timestamp: float = field(default_factory=time.time)
    is_generating: bool = False
    is_error: bool = False
    error: str = ""

    @classmethod
    def user(cls, content: str, images: list[str] | None = None) -> "Message":
        return cls(role="user", content=content, images=list(images or []))

    @classmethod
    def assistant(cls) -> "Message":
        return cls(role="assistant", is_generating=True)

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "content": self.content,
            "images": list(self.images),
            "timestamp": self.timestamp,
            "is_error": self.is_error,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        try:
            ts = float(data.get("timestamp") or 0.0)
        except (TypeError, ValueError):
            ts = 0.0
        return cls(
            role=str(data.get("role") or "user"),
            content=str(data.get("content") or ""),
            images=[str(p) for p in (data.get("images") or []) if p],
            timestamp=ts or time.time(),
            is_error=bool(data.get("is_error", False)),
            error=str(data.get("error") or ""),
        )


@dataclass
class ChatSession:
    id: str = field(default_factory=new_chat_id)
    messages: list[Message] = field(default_factory=list)
    model: str = ""
    options: GenerationOptions = field(default_factory=GenerationOptions)
    template: str | None = None
    summary: str = ""
    state: SessionState = SessionState.IDLE
    last_error: ChatError | None = None
    stream_token: int | None = None
    requested_at: float = 0.0

    @property
    def is_busy(self) -> bool:
        return self.state in (SessionState.SENDING, SessionState.STREAMING)

    @property
    def tail(self) -> Message | None:
        return self.messages[-1] if self.messages else None

    def title(self) -> str:
        return self.summary or "New Chat"

    def last_message_preview(self) -> str:
        for msg in reversed(self.messages):
            if msg.content and not msg.is_error:
                return text.preview_line(msg.content)
        return "No recent messages"

    # --- transitions -----------------------------------------------------

    def begin_submit(self, prompt: str, images: list[str] | None = None) -> int | None:
        """
        Append the user prompt and an empty assistant message and enter `sending`.

        Returns the new stream token, or None when there is nothing to send.
        Raises SubmitRejected while another response is in flight.
        """
        if self.is_busy:
            raise SubmitRejected("Wait for the current response to finish.")
        prompt = (prompt or "").rstrip()
        if not prompt.strip() and not images:
            return None
        if not self.model:
            raise SubmitRejected("Select a model first.")

        self.messages.append(Message.user(prompt, images))
        self.summary = text.extend_summary(self.summary, prompt, cfg.SUMMARY_MAX_CHARS)
        self.messages.append(Message.assistant())
        self.state = SessionState.SENDING
        self.last_error = None
        self.requested_at = time.time()
        self.stream_token = next(_token_counter)
        return self.stream_token

    def _is_current(self, token: int) -> bool:
        return token is not None and token == self.stream_token and self.is_busy

    def apply_fragment(self, token: int, fragment: str) -> bool:
        if not self._is_current(token):
            return False
        if not fragment:
            return True
        self.messages[-1].content += fragment
        self.state = SessionState.STREAMING
        return True

    def complete(self, token: int) -> bool:
        if not self._is_current(token):
            return False
        self.messages[-1].is_generating = False
        self.state = SessionState.IDLE
        self.stream_token = None
        return True

    def fail(self, token: int, error: ChatError) -> bool:
        if not self._is_current(token):
            return False
        tail = self.messages[-1]
        tail.is_generating = False
        tail.is_error = True
        tail.error = str(error)
        logger.debug("chat %s failed: %s", self.id, error)
        self.last_error = error
        self.state = SessionState.FAILED
        self.stream_token = None
        return True

    def recover(self) -> None:
        if self.state == SessionState.FAILED:
            self.state = SessionState.IDLE

    def cancel(self) -> bool:
        """Stop accepting events for the current stream; appended text is kept."""
        if not self.is_busy:
            return False
        logger.debug("chat %s: stream %s cancelled", self.id, self.stream_token)
        tail = self.messages[-1]
        tail.is_generating = False
        self.state = SessionState.IDLE
        self.stream_token = None
        return True

    def pop_failed_exchange(self) -> tuple[str, list[str]] | None:
        """Remove a failed user/assistant pair so its prompt can be sent again."""
        if self.is_busy or len(self.messages) < 2:
            return None
        tail = self.messages[-1]
        prev = self.messages[-2]
        if not tail.is_error or prev.role != "user":
            return None
        del self.messages[-2:]
        return prev.content, list(prev.images)

    # --- request building ------------------------------------------------

    def build_request(self) -> ChatRequest:
        """
        Model context for the pending response: all user/assistant turns except
        failed ones and the empty tail the response will stream into.
        """
        history = self.messages[:-1] if (self.tail and self.tail.is_generating) else self.messages
        out = []
        failed_prompts = set()
        for idx, msg in enumerate(history):
            if msg.is_error:
                failed_prompts.add(idx - 1)
        for idx, msg in enumerate(history):
            if msg.is_error or idx in failed_prompts:
                continue
            out.append({"role": msg.role, "content": msg.content, "images": list(msg.images)})
        return ChatRequest(
            model=self.model,
            messages=out,
            options=self.options.to_request(),
            template=self.template,
        )

    # --- persistence -----------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "summary": self.summary,
            "model": self.model,
            "options": self.options.to_dict(),
            "template": self.template,
            "messages": [m.to_dict() for m in self.messages],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChatSession":
        messages = [Message.from_dict(m) for m in (data.get("messages") or []) if isinstance(m, dict)]
        template = data.get("template")
        return cls(
            id=str(data.get("id") or new_chat_id()),
            messages=messages,
            model=str(data.get("model") or ""),
            options=GenerationOptions.from_dict(data.get("options")),
            template=str(template) if template else None,
            summary=str(data.get("summary") or ""),
        )
