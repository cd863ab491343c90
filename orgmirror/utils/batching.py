import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, TypeVar

from orgmirror.core.exceptions import AuthError, PersistenceError
from orgmirror.utils.logger import logger

T = TypeVar("T")
R = TypeVar("R")


def run_in_batches(
    items: Iterable[T],
    fn: Callable[[T], R],
    batch_size: int = 3,
    delay: float = 0.0,
    stop_when: Optional[Callable[[], bool]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> List[Optional[R]]:
    """
    Run ``fn`` over ``items`` with at most ``batch_size`` calls in flight.

    Batches run one after another with ``delay`` seconds in between. A failing
    item is logged and yields None; its siblings still run. ``AuthError`` and
    ``PersistenceError`` are re-raised and end the run. ``stop_when`` is
    checked before each batch so callers can end early once they have what
    they need.
    """
    pending = list(items)
    results: List[Optional[R]] = []

    def _guarded(item: T) -> Optional[R]:
        try:
            return fn(item)
        except (AuthError, PersistenceError):
            raise
        except Exception as e:
            logger.error(f"Batch item {item!r} failed: {e}")
            return None

    with ThreadPoolExecutor(max_workers=batch_size) as executor:
        for start in range(0, len(pending), batch_size):
            if stop_when is not None and stop_when():
                break
            if start and delay:
                sleep(delay)
            batch = pending[start : start + batch_size]
            results.extend(executor.map(_guarded, batch))
    return results
