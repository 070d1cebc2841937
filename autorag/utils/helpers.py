"""
Utility helper functions.
"""
import asyncio
import time
from typing import Awaitable, Callable, Iterable, List, Optional, Set, TypeVar

from ..errors import UpstreamError
from ..logging_config import logger

T = TypeVar("T")


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def collapse_keys(keys: Iterable[str], prefix: str = "", delimiter: Optional[str] = None) -> List[str]:
    """
    Filter keys by prefix and, when a delimiter is given, collapse keys that
    contain it past the prefix into their common prefix (S3 CommonPrefixes
    semantics). Result is sorted and de-duplicated.

    Example:
        >>> collapse_keys(["a/1.txt", "a/2.txt", "b/1.txt", "top.txt"], "", "/")
        ['a/', 'b/', 'top.txt']
    """
    out = set()
    for key in keys:
        if not key.startswith(prefix):
            continue
        if delimiter:
            pos = key.find(delimiter, len(prefix))
            if pos != -1:
                out.add(key[:pos + len(delimiter)])
                continue
        out.add(key)
    return sorted(out)


async def call_upstream(
    awaitable: Awaitable[T],
    service: str,
    operation: str,
    timeout: Optional[float],
    **context,
) -> T:
    """
    Await a call to an external service with a timeout.

    Any failure (including the timeout) is logged with context and re-raised
    as UpstreamError. Cancellation propagates untouched.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except UpstreamError:
        raise
    except asyncio.TimeoutError as e:
        logger.error("Upstream call timed out", service=service, operation=operation,
                     timeout_s=timeout, **context)
        raise UpstreamError(
            f"{service} {operation} timed out", service, operation, details=context
        ) from e
    except Exception as e:
        logger.error("Upstream call failed", service=service, operation=operation,
                     error=str(e), **context)
        raise UpstreamError(
            f"{service} {operation} failed", service, operation,
            details={**context, "error": str(e)},
        ) from e


class PendingCalls:
    """
    Runs blocking calls in worker threads and keeps track of the ones still
    running.

    Cancelling the caller (e.g. a timeout in call_upstream) cannot stop a
    thread, so a write can still land after its caller gave up. wait() lets
    cleanup code hold off until every such write has finished.
    """

    def __init__(self):
        self._tasks: Set["asyncio.Future"] = set()

    def __len__(self):
        return len(self._tasks)

    async def run(self, fn: Callable[..., T], *args) -> T:
        task = asyncio.ensure_future(asyncio.to_thread(fn, *args))
        self._tasks.add(task)
        task.add_done_callback(self._settle)
        return await asyncio.shield(task)

    def _settle(self, task: "asyncio.Future") -> None:
        self._tasks.discard(task)
        # The caller may have stopped waiting; mark the error as seen
        if not task.cancelled():
            task.exception()

    async def wait(self) -> None:
        """Wait until every call started so far has finished."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
