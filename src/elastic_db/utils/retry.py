"""Jittered, widening backoff for calls the cluster pushed back on."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from elastic_db.contracts import BackoffRange
from elastic_db.utils.errors import parse_error

T = TypeVar("T")

logger = logging.getLogger(__name__)

# strong references to scheduled retries until they finish
_pending_retries: set[asyncio.Task[Any]] = set()


def _collect_retry(task: asyncio.Task[Any]) -> None:
    _pending_retries.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("Scheduled retry failed: %s", parse_error(error))


async def wait_for_backoff(backoff_range: BackoffRange) -> float:
    """Suspend the calling coroutine for the next jittered delay.

    The window is widened as a side effect, so successive waits of the same
    operation spread out further. Other coroutines keep running meanwhile.

    Args:
        backoff_range: Window owned by the current operation.

    Returns:
        The delay waited, in seconds.
    """
    delay = backoff_range.consume() / 1000
    logger.debug(
        "Cluster rejected execution, retrying in %.3fs (next window %d-%dms)",
        delay,
        backoff_range.floor,
        backoff_range.ceiling,
    )
    await asyncio.sleep(delay)
    return delay


def schedule_retry(
    backoff_range: BackoffRange,
    retry_fn: Callable[[T], Awaitable[Any]],
    payload: T,
) -> asyncio.TimerHandle:
    """Schedule ``retry_fn(payload)`` after a jittered delay without waiting.

    Must be called from a running event loop. The coroutine is started as a
    task once the timer fires and is kept referenced until it finishes. A
    failure it does not handle itself is logged with its normalized reason.

    Args:
        backoff_range: Window owned by the current operation, widened in place.
        retry_fn: Coroutine function to run after the delay.
        payload: Single argument passed to ``retry_fn``.

    Returns:
        The loop timer handle, which can be cancelled before it fires.
    """
    loop = asyncio.get_running_loop()
    delay = backoff_range.consume() / 1000

    def _fire() -> None:
        task = loop.create_task(retry_fn(payload))
        _pending_retries.add(task)
        task.add_done_callback(_collect_retry)

    return loop.call_later(delay, _fire)
