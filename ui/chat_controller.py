from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

import ui_config as cfg
from chat_session import ChatSession, SubmitRejected
from ui_ollama import ChatError, ErrorKind, OllamaClient, StreamHandle


logger = logging.getLogger(__name__)


@dataclass
class ChatContext:
    """Collaborators the stream coordinator needs; all callbacks run on the UI loop."""

    get_client: callable
    post: callable
    on_change: callable
    notify_error: callable
    flush_interval_s: float = cfg.FLUSH_INTERVAL_S
    active_streams: dict[str, StreamHandle] = field(default_factory=dict)

    def client(self) -> OllamaClient:
        return self.get_client()


def _apply_fragment(ctx: ChatContext, session: ChatSession, token: int, chunk: str) -> None:
    if session.apply_fragment(token, chunk):
        ctx.on_change(session)


def _finish(ctx: ChatContext, session: ChatSession, token: int) -> None:
    if not session.complete(token):
        return
    ctx.active_streams.pop(session.id, None)
    logger.debug("chat %s: response complete (%d chars)", session.id, len(session.messages[-1].content))
    ctx.on_change(session)


def _fail(ctx: ChatContext, session: ChatSession, token: int, error: ChatError) -> None:
    if not session.fail(token, error):
        if error.kind != ErrorKind.CANCELLED:
            logger.debug("dropping error for a stale stream of chat %s: %s", session.id, error)
        return
    ctx.active_streams.pop(session.id, None)
    try:
        ctx.notify_error(session, error)
    finally:
        session.recover()
        ctx.on_change(session)


def send_message(ctx: ChatContext, session: ChatSession, prompt: str, images: list[str] | None = None) -> bool:
    """
    Submit `prompt` on `session` and start streaming the reply.

    Must run on the UI loop. Raises SubmitRejected if the session is busy;
    returns False when there was nothing to send.
    """
    token = session.begin_submit(prompt, images)
    if token is None:
        return False
    request = session.build_request()

    pending = {"text": "", "last_flush": 0.0}

    def flush_pending() -> None:
        chunk = pending["text"]
        if not chunk:
            return
        pending["text"] = ""
        ctx.post(_apply_fragment, ctx, session, token, chunk)

    def on_fragment(fragment: str) -> None:
        pending["text"] += fragment
        now = time.monotonic()
        if (now - pending["last_flush"]) >= ctx.flush_interval_s:
            pending["last_flush"] = now
            flush_pending()

    def on_complete() -> None:
        flush_pending()
        ctx.post(_finish, ctx, session, token)

    def on_error(error: ChatError) -> None:
        flush_pending()
        ctx.post(_fail, ctx, session, token, error)

    ctx.on_change(session)
    try:
        handle = ctx.client().send_chat(request, on_fragment, on_complete, on_error)
    except Exception as exc:
        logger.exception("chat %s: could not start the request", session.id)
        _fail(ctx, session, token, ChatError(ErrorKind.CONNECTION, f"Could not start the request: {exc}"))
        return False
    ctx.active_streams[session.id] = handle
    return True


def stop_stream(ctx: ChatContext, session: ChatSession) -> bool:
    handle = ctx.active_streams.pop(session.id, None)
    stopped = session.cancel()
    if handle is not None:
        handle.cancel()
    if stopped:
        ctx.on_change(session)
    return stopped


def retry_message(ctx: ChatContext, session: ChatSession) -> bool:
    if not session.model:
        raise SubmitRejected("Select a model first.")
    popped = session.pop_failed_exchange()
    if popped is None:
        return False
    prompt, images = popped
    return send_message(ctx, session, prompt, images)
