"""Tests for the text-to-speech speaker with a fake engine."""
import threading
import time

import pytest

from ui_tts import Speaker


class FakeEngine:
    """Blocks in runAndWait until stop() or finish() is called."""

    def __init__(self):
        self.spoken = []
        self.stops = 0
        self.threads = []
        self.running = threading.Event()
        self._done = threading.Event()

    def say(self, text):
        self.threads.append(threading.current_thread().name)
        self.spoken.append(text)

    def runAndWait(self):
        self.running.set()
        self._done.wait(timeout=5)
        self._done.clear()
        self.running.clear()

    def stop(self):
        self.stops += 1
        self._done.set()

    def finish(self):
        self._done.set()


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        assert time.monotonic() < deadline
        time.sleep(0.01)


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def speaker(engine):
    created_on = []

    def factory():
        created_on.append(threading.current_thread().name)
        return engine

    speaker = Speaker(engine_factory=factory)
    speaker.created_on = created_on
    yield speaker
    engine.finish()
    speaker.close()


def test_speaks_sanitized_text(speaker, engine):
    assert speaker.speak(("chat", 1), "**Hello** `world`")
    assert speaker.is_speaking_owner(("chat", 1))

    engine.finish()
    assert speaker.wait_idle(timeout=5)

    assert engine.spoken == ["Hello world"]
    assert speaker.speaking_owner is None
    assert not speaker.is_speaking


def test_new_utterance_replaces_old(speaker, engine):
    speaker.speak(("chat", 1), "first")
    assert engine.running.wait(timeout=5)
    speaker.speak(("chat", 3), "second")

    assert engine.stops == 1
    assert speaker.speaking_owner == ("chat", 3)

    wait_for(lambda: len(engine.spoken) == 2)
    assert engine.running.wait(timeout=5)
    engine.finish()
    assert speaker.wait_idle(timeout=5)
    assert engine.spoken == ["first", "second"]


def test_stop_clears_owner(speaker, engine):
    speaker.speak("owner", "text")
    assert engine.running.wait(timeout=5)
    speaker.stop()
    assert speaker.wait_idle(timeout=5)

    assert speaker.speaking_owner is None
    assert engine.stops == 1


def test_stop_when_silent_leaves_engine_alone(speaker, engine):
    assert speaker.available
    speaker.stop()

    assert engine.stops == 0


def test_engine_lives_on_one_speech_thread(speaker, engine):
    """The engine is created and driven by the same long-lived thread."""
    for n in range(3):
        speaker.speak("owner", f"line {n}")
        assert engine.running.wait(timeout=5)
        engine.finish()
        assert speaker.wait_idle(timeout=5)

    assert speaker.created_on == ["tts"]
    assert engine.threads == ["tts", "tts", "tts"]
    assert engine.spoken == ["line 0", "line 1", "line 2"]


def test_nothing_to_say(speaker, engine):
    assert not speaker.speak("owner", "```\ncode only\n```")
    assert engine.spoken == []


def test_engine_unavailable():
    def broken():
        raise RuntimeError("no speech driver")

    speaker = Speaker(engine_factory=broken)

    assert not speaker.available
    assert speaker.unavailable_reason == "no speech driver"
    assert not speaker.speak("owner", "hello")
