import logging
import threading

import ui_config as cfg


logger = logging.getLogger(__name__)


def poll_models_loop(*, shell, stop: threading.Event, interval_s: float = cfg.MODEL_REFRESH_S) -> None:
    """Ask the shell to re-list local models every `interval_s` seconds."""
    interval_s = max(1.0, float(interval_s))
    while not stop.is_set():
        shell.loop.post(shell.refresh_models, auto=True)
        if stop.wait(interval_s):
            break


def poll_ticks_loop(*, shell, stop: threading.Event, interval_s: float = cfg.TTS_POLL_INTERVAL_S) -> None:
    # elapsed-time labels and the speak button depend on wall time, not on events
    while not stop.wait(max(0.1, float(interval_s))):
        shell.loop.post(shell.tick)


def start_pollers(shell, *, models_interval_s: float = cfg.MODEL_REFRESH_S) -> tuple[threading.Event, list[threading.Thread]]:
    stop = threading.Event()
    t1 = threading.Thread(
        target=poll_models_loop,
        kwargs=dict(shell=shell, stop=stop, interval_s=models_interval_s),
        name="poll-models",
        daemon=True,
    )
    t2 = threading.Thread(target=poll_ticks_loop, kwargs=dict(shell=shell, stop=stop), name="poll-ticks", daemon=True)
    t1.start()
    t2.start()
    logger.debug("pollers started (models every %.0fs)", models_interval_s)
    return stop, [t1, t2]
