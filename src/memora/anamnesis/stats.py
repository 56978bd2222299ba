"""
Bulk reads with bounded fan-out.

Statistics are gathered by fetching every numbered entity ``0..total``.
Each fetch runs under a shared semaphore; a failing entity is logged and
counted, never fatal to the aggregate.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Iterable, Optional, TypeVar

from ..config import DEFAULT_CONCURRENCY
from ..errors import MemoraError, RequestCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")
K = TypeVar("K")


@dataclass(frozen=True)
class BulkResult(Generic[T]):
    """
    Outcome of a bulk fetch.

    Attributes:
        total: Number of entities requested
        items: Successfully fetched entities, in request order
        failures: ``(key, error message)`` per entity that failed
    """

    total: int
    items: tuple[T, ...]
    failures: tuple[tuple[object, str], ...] = ()

    @property
    def valid(self) -> int:
        return len(self.items)


async def fetch_bounded(
    keys: Iterable[K],
    fetch: Callable[[K], Awaitable[T]],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[tuple[K, Optional[T], Optional[MemoraError]]]:
    """
    Run ``fetch`` for every key, at most ``concurrency`` at a time.

    Returns one ``(key, value, error)`` triple per key, in key order.
    Cancellation is not treated as a per-item failure: the first
    ``RequestCancelledError`` (or any non-``MemoraError``) cancels the
    remaining fetches and propagates once they have stopped.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def fetch_one(key: K) -> tuple[K, Optional[T], Optional[MemoraError]]:
        async with semaphore:
            try:
                return key, await fetch(key), None
            except RequestCancelledError:
                raise
            except MemoraError as exc:
                return key, None, exc

    tasks = [asyncio.ensure_future(fetch_one(key)) for key in keys]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def fetch_range(
    total: int,
    fetch: Callable[[int], Awaitable[T]],
    concurrency: int = DEFAULT_CONCURRENCY,
    start: int = 0,
    what: str = "entity",
) -> BulkResult[T]:
    """
    Fetch entities ``start..total`` and keep the ones that succeed.

    Args:
        total: Exclusive upper id
        fetch: Coroutine fetching one id
        concurrency: Maximum in-flight fetches
        start: First id
        what: Entity name for log messages

    Returns:
        BulkResult with ``total = total - start``
    """
    outcomes = await fetch_bounded(range(start, total), fetch, concurrency)
    items = []
    failures = []
    for key, value, error in outcomes:
        if error is not None:
            logger.warning("Skipping %s %s: %s", what, key, error)
            failures.append((key, str(error)))
        else:
            items.append(value)
    logger.info("Fetched %d/%d %s records", len(items), max(total - start, 0), what)
    return BulkResult(total=max(total - start, 0), items=tuple(items), failures=tuple(failures))
