"""Call identifier allocation.

Call ids have the form ``"{method}~{token}"`` where the token is the current
wall-clock time in milliseconds, rendered in hex. Tokens always advance, so
two calls issued within the same millisecond still get distinct ids. Ids are
only required to be unique among the calls outstanding on one connection.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Final

ID_SEPARATOR: Final = "~"


def _wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


class CallIdAllocator:
    """Allocator for time-derived call ids.

    The token is ``max(now_ms, previous_token + 1)``, which keeps it close to
    the wall clock while never repeating or going backwards.
    """

    def __init__(self, clock: Callable[[], int] = _wall_clock_ms) -> None:
        self._clock = clock
        self._last_token: int = -1
        self._lock: Final = threading.Lock()

    def next_token(self) -> int:
        """Return the next token, strictly greater than the previous one."""
        with self._lock:
            token = max(self._clock(), self._last_token + 1)
            self._last_token = token
            return token

    def allocate(self, method: str) -> str:
        """Allocate a call id for ``method``."""
        return f"{method}{ID_SEPARATOR}{self.next_token():x}"


def method_of(call_id: str) -> str:
    """Recover the method name from a call id."""
    method, _, _ = call_id.rpartition(ID_SEPARATOR)
    return method
