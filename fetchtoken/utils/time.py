"""Clock helpers."""

from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], int]


def unix_now() -> int:
    """Return the current time as whole unix seconds."""
    return int(time.time())
