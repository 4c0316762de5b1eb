"""Process-local per-minute request throttle."""

import threading
import time
from typing import Callable

import structlog

from core.logging import BusinessEvents
from core.metrics import rate_limited_total
from payments.errors import RateLimitError

log = structlog.get_logger(__name__)

WINDOW_SECONDS = 60.0


class RateWindow:
    """
    Rolling one-minute request budget.

    Process local and best-effort: it never coordinates with other
    processes, it only stops this client from bursting past the ceiling.
    """

    def __init__(
        self,
        max_requests_per_minute: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests_per_minute
        self._clock = clock
        self._lock = threading.Lock()
        self.count = 0
        self.window_start = clock()

    def check(self) -> None:
        """Count one request, or raise RateLimitError if the ceiling is hit."""
        with self._lock:
            now = self._clock()
            if now - self.window_start > WINDOW_SECONDS:
                self.window_start = now
                self.count = 0

            if self.count >= self.max_requests:
                rate_limited_total.inc()
                log.warning(
                    BusinessEvents.RATE_LIMITED,
                    count=self.count,
                    limit=self.max_requests,
                )
                raise RateLimitError(
                    "Rate limit exceeded. Please wait before making more requests."
                )

            self.count += 1
