import threading
from typing import Any, Callable, Optional

from orgmirror.utils.logger import logger


class PollScheduler:
    """
    Runs ``pass_fn`` every ``interval`` seconds on one daemon thread.

    The wait for the next tick only starts once the previous pass has
    returned, so passes never overlap. A failing pass is logged and the
    schedule continues.
    """

    def __init__(
        self,
        interval: float,
        pass_fn: Callable[[], Any],
        name: str = "orgmirror-poll",
    ):
        self.interval = interval
        self.pass_fn = pass_fn
        self.name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            logger.warning("Poll scheduler already running.")
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        logger.info(f"Poll scheduler started (every {self.interval}s).")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None
        logger.info("Poll scheduler stopped.")

    def run_once(self) -> bool:
        try:
            self.pass_fn()
            return True
        except Exception as e:
            logger.exception(f"Poll pass failed: {e}")
            return False

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            self.run_once()
