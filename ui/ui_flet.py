import logging
import queue
import threading


logger = logging.getLogger(__name__)


class UiLoop:
    """
    Single owner of application state.

    Background workers and flet event handlers never mutate state directly; they
    `post()` callables that run one at a time on the loop thread. Tests drive the
    loop synchronously with `drain()` instead of starting the thread.
    """

    def __init__(self, on_idle=None) -> None:
        self._queue: queue.Queue = queue.Queue()
        self._thread: threading.Thread | None = None
        self._stopping = threading.Event()
        self.on_idle = on_idle

    def post(self, fn, *args, **kwargs) -> None:
        self._queue.put((fn, args, kwargs))

    def _run_one(self, item) -> None:
        fn, args, kwargs = item
        try:
            fn(*args, **kwargs)
        except Exception:
            logger.exception("UI callback %s failed", getattr(fn, "__qualname__", fn))

    def drain(self, ran: int = 0) -> int:
        """Run every queued callable on the calling thread; returns how many ran."""
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            self._run_one(item)
            ran += 1
        if ran and self.on_idle is not None:
            self._run_one((self.on_idle, (), {}))
        return ran

    def _run_forever(self) -> None:
        while not self._stopping.is_set():
            try:
                item = self._queue.get(timeout=0.1)
            except queue.Empty:
                continue
            self._run_one(item)
            self.drain(ran=1)

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run_forever, name="ui-loop", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 2.0) -> None:
        self._stopping.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        # whatever was posted before stop() still runs
        self.drain()

    def in_loop(self) -> bool:
        return self._thread is not None and threading.current_thread() is self._thread
