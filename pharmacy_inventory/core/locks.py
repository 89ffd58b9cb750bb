from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from typing import Iterable, Iterator


@dataclass
class _KeyState:
    lock: Lock = field(default_factory=Lock)
    holders: int = 0


class KeyedLockRegistry:
    """
    In-process mutex per key. Stock mutations for one medication key run
    one at a time inside a worker; row locks cover multi-worker deployments.
    """

    def __init__(self):
        self._states: dict[str, _KeyState] = {}
        self._lock = Lock()

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        # Sorted acquisition keeps two-key edits from deadlocking each other.
        ordered = sorted(set(keys))
        acquired: list[str] = []
        try:
            for key in ordered:
                self._acquire(key)
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._release(key)

    def active_keys(self) -> Iterable[str]:
        with self._lock:
            return list(self._states.keys())

    def clear(self) -> None:
        with self._lock:
            self._states.clear()

    def _acquire(self, key: str) -> None:
        with self._lock:
            state = self._states.setdefault(key, _KeyState())
            state.holders += 1
        state.lock.acquire()

    def _release(self, key: str) -> None:
        with self._lock:
            state = self._states[key]
            state.lock.release()
            state.holders -= 1
            if state.holders == 0:
                self._states.pop(key, None)


medication_locks = KeyedLockRegistry()
