"""Partial-report helpers: run one sub-aggregate, fall back to a default if it fails."""
import functools
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from sitecost.store.base import ResourceStore

logger = logging.getLogger("sitecost-rollup.degraded")


async def degrade(
    label: str,
    query: Callable[[], Awaitable[Any]],
    default: Any,
    store: Optional[ResourceStore] = None,
    log: Optional[logging.Logger] = None,
) -> Any:
    """
    Await ``query()``; on any failure log a WARNING naming ``label`` and
    return ``default`` instead of failing the whole report.

    With ``store`` given the query runs inside ``store.transaction()`` so a
    failed statement rolls back to a savepoint and leaves the session usable
    for the remaining sub-queries.
    """
    try:
        if store is None:
            return await query()
        async with store.transaction():
            return await query()
    except Exception as e:
        (log or logger).warning(
            f"{label} failed, using fallback: {e}",
            extra={"degraded": label},
        )
        return default() if callable(default) else default


def timed_async(func: Callable) -> Callable:
    """Log how long an async aggregate took, at DEBUG."""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.debug(
                "aggregate timed",
                extra={"function": func.__qualname__, "duration_ms": duration_ms},
            )
    return wrapper
