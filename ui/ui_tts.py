import logging
import queue
import threading

import ui_config as cfg
import ui_text as text

try:
    import pyttsx3
    PYTTSX3_AVAILABLE = True
except ImportError:
    pyttsx3 = None
    PYTTSX3_AVAILABLE = False


logger = logging.getLogger(__name__)


def _system_engine():
    if not PYTTSX3_AVAILABLE:
        raise RuntimeError("pyttsx3 is not installed (pip install 'ellama-desktop[tts]')")
    return pyttsx3.init()


class Speaker:
    """
    Reads messages aloud. One long-lived "tts" thread creates the engine and runs
    every utterance; the UI loop only queues text and asks the engine to stop.

    One owner speaks at a time; the owner is an opaque key such as
    (chat_id, message_index).
    """

    def __init__(self, engine_factory=None) -> None:
        self._engine_factory = engine_factory or _system_engine
        self._engine = None
        self._init_error = ""
        self._ready = threading.Event()
        self._idle = threading.Event()
        self._idle.set()
        self._lock = threading.Lock()
        self._queue: queue.Queue = queue.Queue()
        self._thread: threading.Thread | None = None
        self._owner = None
        self._utterance = None
        self._talking = False
        self._pending = 0

    def _ensure_engine(self):
        if self._thread is None:
            self._thread = threading.Thread(target=self._run, name="tts", daemon=True)
            self._thread.start()
            if not self._ready.wait(timeout=cfg.TTS_INIT_TIMEOUT_S):
                self._init_error = "speech engine did not start in time"
                logger.error("failed to initialize TTS: %s", self._init_error)
        return self._engine

    def _run(self) -> None:
        try:
            self._engine = self._engine_factory()
        except Exception as exc:
            self._init_error = str(exc)
            logger.error("failed to initialize TTS: %s", exc)
            return
        finally:
            self._ready.set()

        engine = self._engine
        while True:
            item = self._queue.get()
            if item is None:
                break
            utterance, spoken = item
            with self._lock:
                current = self._utterance is utterance
                self._talking = current
            if current:
                try:
                    engine.say(spoken)
                    engine.runAndWait()
                except Exception as exc:
                    logger.error("failed to speak: %s", exc)
            with self._lock:
                self._talking = False
                if self._utterance is utterance:
                    self._owner = None
                    self._utterance = None
                self._pending -= 1
                if not self._pending:
                    self._idle.set()
        logger.debug("tts thread stopped")

    @property
    def available(self) -> bool:
        return self._ensure_engine() is not None

    @property
    def unavailable_reason(self) -> str:
        self._ensure_engine()
        return self._init_error

    @property
    def speaking_owner(self):
        with self._lock:
            return self._owner

    @property
    def is_speaking(self) -> bool:
        return self.speaking_owner is not None

    def is_speaking_owner(self, owner) -> bool:
        owner_now = self.speaking_owner
        return owner_now is not None and owner_now == owner

    def speak(self, owner, message: str) -> bool:
        if self._ensure_engine() is None:
            return False
        spoken = text.sanitize_speech_text(message)
        if not spoken:
            return False
        self.stop()
        utterance = object()
        with self._lock:
            self._owner = owner
            self._utterance = utterance
            self._pending += 1
            self._idle.clear()
        self._queue.put((utterance, spoken))
        return True

    def stop(self) -> None:
        """Drop the current owner and interrupt the engine without waiting for it."""
        with self._lock:
            self._owner = None
            self._utterance = None
            talking = self._talking
        engine = self._engine
        if engine is None or not talking:
            return
        try:
            engine.stop()
        except Exception as exc:
            logger.error("failed to stop tts: %s", exc)

    def wait_idle(self, timeout: float | None = None) -> bool:
        return self._idle.wait(timeout)

    def close(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            self._queue.put(None)
