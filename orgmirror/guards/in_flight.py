import threading
from typing import Set

from orgmirror.guards.base import GuardAction, GuardResult


def command_key(repo_name: str, number: int) -> str:
    return f"{repo_name}#{number}"


class InFlightGuard:
    """
    Process-local set of keys currently undergoing exclusive processing.

    ``acquire`` is an atomic test-and-set: of two near-simultaneous callers
    for the same key exactly one is allowed. Not persisted; a restart clears it.
    """

    def __init__(self):
        self._keys: Set[str] = set()
        self._lock = threading.Lock()

    def acquire(self, key: str) -> GuardResult:
        with self._lock:
            if key in self._keys:
                return GuardResult(
                    action=GuardAction.BLOCK, key=key, reason=f"{key} is already in flight"
                )
            self._keys.add(key)
        return GuardResult(action=GuardAction.ALLOW, key=key)

    def release(self, key: str) -> None:
        with self._lock:
            self._keys.discard(key)

    def clear(self) -> None:
        with self._lock:
            self._keys.clear()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)
