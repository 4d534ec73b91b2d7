"""
Deadline guard for in-flight network calls.
"""

import asyncio
from typing import Any, Callable, Coroutine, Optional, Set

from .errors import RequestTimeoutError
from .logging import get_logger

logger = get_logger("apic.timeout")

AbandonHook = Callable[["asyncio.Future[Any]"], None]

# Strong references to calls that lost the race so they can finish in the
# background instead of being garbage collected mid-flight.
_abandoned: Set["asyncio.Future[Any]"] = set()


def _discard_outcome(task: "asyncio.Future[Any]") -> None:
    """Consume the late result of an abandoned call."""
    _abandoned.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    logger.debug(
        "Abandoned call settled after timeout",
        failed=error is not None,
        error=str(error) if error is not None else None
    )


def _abandon(task: "asyncio.Future[Any]") -> None:
    """Keep a losing call alive and make sure its outcome is consumed."""
    _abandoned.add(task)
    task.add_done_callback(_discard_outcome)


async def with_timeout(call: Coroutine[Any, Any, Any],
                       timeout: Optional[float],
                       *,
                       on_abandon: Optional[AbandonHook] = None) -> Any:
    """Return the outcome of ``call`` unless ``timeout`` elapses first.

    When the deadline wins, ``RequestTimeoutError`` is raised and the call is
    left running; its result or error is discarded. ``on_abandon`` receives the
    abandoned task, e.g. to cancel it.
    """
    task = asyncio.create_task(call)
    if timeout is None:
        return await task

    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        # The caller went away; the call is left running like a timed-out one
        _abandon(task)
        raise
    if task in done:
        return task.result()

    _abandon(task)
    logger.warning("Request timed out", timeout=timeout)
    if on_abandon is not None:
        on_abandon(task)
    raise RequestTimeoutError(timeout)
