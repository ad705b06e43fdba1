"""
Sequential batches of concurrent work with per-item failure isolation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator, Sequence
from typing import TypeVar

from logging_utils import log_event
from outcomes import ErrorDetail, OperationResult

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def partition(items: Sequence[T], batch_size: int) -> Iterator[list[T]]:
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}.")
    for start in range(0, len(items), batch_size):
        yield list(items[start:start + batch_size])


async def _isolated(work: Callable[[T], Awaitable[OperationResult[R]]], item: T) -> OperationResult[R]:
    try:
        return await work(item)
    except Exception as exc:
        return OperationResult.failure(ErrorDetail.from_exception(exc, item if isinstance(item, str) else None))


async def run_batched(
    items: Sequence[T],
    batch_size: int,
    work: Callable[[T], Awaitable[OperationResult[R]]],
) -> list[OperationResult[R]]:
    """
    Run ``work`` over ``items`` in groups of ``batch_size``.

    Groups run one after another; items inside a group run concurrently. The
    returned results line up with ``items`` regardless of completion order,
    and a failing item never affects its siblings or later groups.
    """

    batches = list(partition(items, batch_size))
    results: list[OperationResult[R]] = []

    for index, batch in enumerate(batches, start=1):
        log_event(
            logger,
            logging.INFO,
            "batch_started",
            batch=index,
            batches=len(batches),
            size=len(batch),
        )
        batch_results = await asyncio.gather(*(_isolated(work, item) for item in batch))
        results.extend(batch_results)
        log_event(
            logger,
            logging.INFO,
            "batch_completed",
            batch=index,
            batches=len(batches),
            failed=sum(1 for result in batch_results if not result.ok),
        )

    return results
