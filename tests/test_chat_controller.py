"""Tests for the stream coordinator, driven through a hand-drained UI loop."""
import pytest

import chat_controller
from chat_session import ChatSession, SessionState, SubmitRejected
from ui_ollama import ChatError, ErrorKind


@pytest.fixture
def ctx(loop, fake_client):
    changes = []
    errors = []
    context = chat_controller.ChatContext(
        get_client=lambda: fake_client,
        post=loop.post,
        on_change=changes.append,
        notify_error=lambda session, error: errors.append(error),
        flush_interval_s=0.0,
    )
    context.changes = changes
    context.errors = errors
    return context


@pytest.fixture
def session():
    return ChatSession(model="llama3")


class TestSendMessage:
    """Tests for a full submit/stream/complete cycle."""

    def test_streams_into_session(self, ctx, loop, fake_client, session):
        """Fragments posted by the worker land in order and the chat ends idle."""
        assert chat_controller.send_message(ctx, session, "Hello")
        assert session.id in ctx.active_streams
        assert fake_client.last["request"].messages == [{"role": "user", "content": "Hello", "images": []}]

        for fragment in ["Hi", " there", "!"]:
            fake_client.last["on_fragment"](fragment)
        fake_client.last["on_complete"]()
        loop.drain()

        assert session.messages[-1].content == "Hi there!"
        assert session.state == SessionState.IDLE
        assert session.id not in ctx.active_streams
        assert ctx.changes

    def test_nothing_to_send(self, ctx, fake_client, session):
        """An empty prompt does not start a request."""
        assert not chat_controller.send_message(ctx, session, "  ")
        assert fake_client.calls == []

    def test_busy_session_rejects(self, ctx, fake_client, session):
        """A second submit while streaming raises."""
        chat_controller.send_message(ctx, session, "one")

        with pytest.raises(SubmitRejected):
            chat_controller.send_message(ctx, session, "two")
        assert len(fake_client.calls) == 1

    def test_throttled_fragments_keep_order(self, ctx, loop, fake_client, session):
        """Merging fragments between flushes never reorders them."""
        ctx.flush_interval_s = 3600.0
        chat_controller.send_message(ctx, session, "count")
        for n in range(10):
            fake_client.last["on_fragment"](str(n))
        fake_client.last["on_complete"]()
        loop.drain()

        assert session.messages[-1].content == "0123456789"


class TestFailure:
    """Tests for error delivery."""

    def test_error_notifies_and_returns_to_idle(self, ctx, loop, fake_client, session):
        """A failed stream is surfaced once and the chat can be used again."""
        chat_controller.send_message(ctx, session, "Hello")
        fake_client.last["on_fragment"]("Par")
        fake_client.last["on_error"](ChatError(ErrorKind.CONNECTION, "refused"))
        loop.drain()

        assert [e.kind for e in ctx.errors] == [ErrorKind.CONNECTION]
        assert session.state == SessionState.IDLE
        assert session.messages[-1].is_error
        assert session.messages[-1].content == "Par"
        assert session.messages[0].content == "Hello"

    def test_retry_resubmits_failed_prompt(self, ctx, loop, fake_client, session):
        """Retry drops the failed pair and sends the same prompt again."""
        chat_controller.send_message(ctx, session, "Hello")
        fake_client.last["on_error"](ChatError(ErrorKind.MODEL_NOT_FOUND, "model 'llama3' not found"))
        loop.drain()

        assert chat_controller.retry_message(ctx, session)
        assert len(fake_client.calls) == 2
        assert [m.role for m in session.messages] == ["user", "assistant"]
        assert not session.messages[-1].is_error
        assert fake_client.last["request"].messages[-1]["content"] == "Hello"

    def test_client_that_cannot_start_leaves_chat_usable(self, ctx, loop, fake_client, session):
        """If the request cannot be started the chat fails, recovers and accepts the next prompt."""

        def broken_client():
            raise ValueError("Invalid IPv6 URL")

        ctx.get_client = broken_client
        assert not chat_controller.send_message(ctx, session, "Hello")

        assert session.state == SessionState.IDLE
        assert session.messages[-1].is_error
        assert [e.kind for e in ctx.errors] == [ErrorKind.CONNECTION]
        assert session.id not in ctx.active_streams

        ctx.get_client = lambda: fake_client
        assert chat_controller.retry_message(ctx, session)
        assert fake_client.last["request"].messages[-1]["content"] == "Hello"

    def test_retry_without_failure(self, ctx, session):
        """Nothing to retry on a clean chat."""
        assert not chat_controller.retry_message(ctx, session)


class TestStop:
    """Tests for cancellation."""

    def test_stop_ignores_late_events(self, ctx, loop, fake_client, session):
        """After stop, queued and late fragments are dropped and no error is shown."""
        chat_controller.send_message(ctx, session, "Hello")
        fake_client.last["on_fragment"]("kept")
        loop.drain()
        handle = fake_client.last["handle"]

        assert chat_controller.stop_stream(ctx, session)
        assert handle.cancelled

        fake_client.last["on_fragment"](" late")
        fake_client.last["on_error"](ChatError(ErrorKind.CANCELLED, "Generation stopped."))
        loop.drain()

        assert session.messages[-1].content == "kept"
        assert session.state == SessionState.IDLE
        assert ctx.errors == []
        assert session.id not in ctx.active_streams

    def test_stop_when_idle(self, ctx, session):
        """Stopping an idle chat does nothing."""
        assert not chat_controller.stop_stream(ctx, session)
