"""
Timeout wrapper for remote calls.

with_timeout() races an operation against a timer. When the timer wins the
caller gets RequestTimeoutError, but the operation itself is NOT cancelled:
it keeps running in the background and whatever it eventually returns or
raises is discarded.
"""

import asyncio
from typing import Any, Awaitable, TypeVar

from loguru import logger

from lodge.services.errors import RequestTimeoutError

T = TypeVar("T")


async def with_timeout(
    awaitable: Awaitable[T],
    timeout: float,
    service_id: str = "remote",
) -> T:
    """
    Await an operation for at most `timeout` seconds.

    Args:
        awaitable: Coroutine or future to wait for
        timeout: Seconds to wait before giving up
        service_id: Service name used in the timeout error

    Raises:
        RequestTimeoutError: If the operation did not settle in time
    """
    task = asyncio.ensure_future(awaitable)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        # Caller went away; the operation still runs and must not leak its outcome
        task.add_done_callback(_discard_late_result(service_id, timeout))
        raise

    if task in done:
        return task.result()

    task.add_done_callback(_discard_late_result(service_id, timeout))
    raise RequestTimeoutError(service_id, timeout)


def _discard_late_result(service_id: str, timeout: float):
    def _callback(task: "asyncio.Future[Any]") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug(
                f"Late failure from '{service_id}' after {timeout}s timeout discarded: {exc}"
            )
        else:
            logger.debug(f"Late result from '{service_id}' after {timeout}s timeout discarded")

    return _callback
