"""Small helpers: timestamps and process-wide id allocation."""

from __future__ import annotations

import itertools
import threading
import time

_U32_MASK = 0xFFFFFFFF

_id_counter = itertools.count()
_id_lock = threading.Lock()


def now() -> int:
    """Return the current UTC time in microseconds since the UNIX epoch."""
    return time.time_ns() // 1_000


def increment_u32_id() -> int:
    """Return the next value of a global counter, truncated to 32 bits."""
    with _id_lock:
        value = next(_id_counter)
    return value & _U32_MASK