"""Process-wide throttled warnings."""

import logging
import time
from collections.abc import Callable


class ThrottledWarning:
    """Emit one fixed warning at most once per ``interval`` seconds.

    Calls inside the interval are dropped. The event loop is single-threaded,
    so the timestamp needs no locking.
    """

    def __init__(
        self,
        logger: logging.Logger,
        message: str,
        interval: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.logger = logger
        self.message = message
        self.interval = interval
        self._clock = clock
        self._last_emit: float | None = None

    def __call__(self) -> bool:
        """Log the warning unless it was logged within the interval.

        Returns:
            ``True`` when the warning was emitted.
        """
        now = self._clock()
        if self._last_emit is not None and now - self._last_emit < self.interval:
            return False
        self._last_emit = now
        self.logger.warning(self.message)
        return True


_gates: dict[tuple[str, str], ThrottledWarning] = {}


def get_throttled_warning(
    logger_name: str, message: str, interval: float = 5.0
) -> ThrottledWarning:
    """Return the shared gate for ``message`` so every caller is throttled together.

    Gates are keyed on the logger name and message only. The first caller
    fixes the interval; later callers get the same gate whatever interval
    they pass.
    """
    key = (logger_name, message)
    gate = _gates.get(key)
    if gate is None:
        gate = _gates[key] = ThrottledWarning(logging.getLogger(logger_name), message, interval)
    return gate


def reset_throttled_warnings() -> None:
    """Forget every shared gate."""
    _gates.clear()
