from __future__ import annotations

import logging
import os
import time
from typing import Callable, Protocol

from .constants import DEFAULT_CALL_DELAY_SECONDS


logger = logging.getLogger("uvicorn.error")


class Throttle(Protocol):
    def wait(self) -> None:
        pass


class FixedDelayThrottle:
    """Sleep a fixed interval before every call except the first.

    Mirrors the provider's 30 requests/minute ceiling with a little margin.
    """

    def __init__(
        self,
        interval_seconds: float = DEFAULT_CALL_DELAY_SECONDS,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.interval_seconds = max(0.0, float(interval_seconds))
        self._sleep = sleep
        self._calls = 0

    def wait(self) -> None:
        if self._calls > 0 and self.interval_seconds > 0:
            self._sleep(self.interval_seconds)
        self._calls += 1


class NoThrottle:
    def wait(self) -> None:
        return None


def call_delay_seconds() -> float:
    raw = os.getenv("PITCH_CALL_DELAY_SECONDS", "").strip()
    if not raw:
        return DEFAULT_CALL_DELAY_SECONDS
    try:
        return max(0.0, float(raw))
    except ValueError:
        logger.warning("invalid PITCH_CALL_DELAY_SECONDS=%r using_default=%s", raw, DEFAULT_CALL_DELAY_SECONDS)
        return DEFAULT_CALL_DELAY_SECONDS


def build_throttle() -> Throttle:
    return FixedDelayThrottle(call_delay_seconds())
