"""Bounded retry loop used by the polling phases.

The operation returns either a resolved value or ``PENDING``. The poller
calls it immediately, then sleeps ``interval`` seconds between attempts until
the value resolves or the deadline (attempt count and/or elapsed time) is
reached. Exceptions raised by the operation are definitive and propagate
unchanged.
"""

import logging
import time
from typing import Callable, TypeVar

from mergegate.errors import PollTimeoutError

T = TypeVar("T")

LOG = logging.getLogger("mergegate.poller")


class _Pending:
    """Marker for "not resolved yet"."""

    def __repr__(self) -> str:
        return "PENDING"


PENDING = _Pending()


class Clock:
    """Time source for the poller. Tests substitute a fake."""

    def now(self) -> float:
        raise NotImplementedError

    def sleep(self, seconds: float) -> None:
        raise NotImplementedError


class SystemClock(Clock):
    """Monotonic wall clock with a real sleep."""

    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class Poller:
    """Repeat an operation with a fixed delay until it resolves or the deadline passes."""

    def __init__(
        self,
        interval: float,
        timeout: float | None = None,
        max_attempts: int | None = None,
        clock: Clock | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        if timeout is None and max_attempts is None:
            raise ValueError("Poller needs a timeout or max_attempts")
        if interval < 0:
            raise ValueError("interval must be >= 0")
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.interval = interval
        self.timeout = timeout
        self.max_attempts = max_attempts
        self._clock = clock or SystemClock()
        self._log = log or LOG

    def _exhausted(self, attempt: int, elapsed: float) -> bool:
        if self.max_attempts is not None and attempt >= self.max_attempts:
            return True
        return self.timeout is not None and elapsed >= self.timeout

    def run(self, operation: Callable[[], T | _Pending], description: str = "operation") -> T:
        """Call ``operation`` until it returns something other than ``PENDING``.

        Raises PollTimeoutError when the attempt budget or timeout is spent.
        """
        start = self._clock.now()
        attempt = 0
        while True:
            attempt += 1
            result = operation()
            if result is not PENDING:
                self._log.debug("%s resolved on attempt %d", description, attempt)
                return result  # type: ignore[return-value]

            elapsed = self._clock.now() - start
            if self._exhausted(attempt, elapsed):
                raise PollTimeoutError(
                    f"{description} still pending after {attempt} attempt(s) in {elapsed:.1f}s"
                )
            limit = f"/{self.max_attempts}" if self.max_attempts is not None else ""
            self._log.info(
                "%s pending (attempt %d%s), waiting %.1fs",
                description,
                attempt,
                limit,
                self.interval,
            )
            self._clock.sleep(self.interval)
