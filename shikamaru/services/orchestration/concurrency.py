"""
Bounded-parallelism executor shared by every orchestration phase.

``run_with_concurrency`` starts at most N lanes. Each lane pulls the next
unstarted item from a shared index when it finishes its current one, so
dispatch order is FIFO by position regardless of how long items take.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

from ...core.exceptions import OperationAbortedError, OperationTimeoutError

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class ItemResult(Generic[T, R]):
    """Settled result of one item: either a value or the error it failed with."""

    index: int
    item: T
    value: R | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_with_concurrency(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    concurrency: int = 1,
    *,
    timeout_ms: int | None = None,
    cancel_event: asyncio.Event | None = None,
) -> list[ItemResult[T, R]]:
    """
    Run ``worker`` over every item with at most ``concurrency`` in flight.

    Failures are isolated per item and returned in the result list rather
    than raised. A timed-out or cancelled item is not force-stopped; its
    worker keeps running in the background and its result is dropped.

    Args:
        items: Work items
        worker: Coroutine function applied to each item
        concurrency: Maximum simultaneous items (>= 1)
        timeout_ms: Optional per-item timeout
        cancel_event: When set, no new item starts and in-flight items are
            settled as aborted

    Returns:
        One ItemResult per input item, in input order

    Raises:
        ValueError: If concurrency is less than 1
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")

    pending = list(items)
    results: list[ItemResult[T, R] | None] = [None] * len(pending)
    next_index = 0
    detached: set[asyncio.Future] = set()

    def _forget(task: asyncio.Future) -> None:
        detached.discard(task)
        if not task.cancelled():
            task.exception()

    async def _settle(item: T) -> R:
        task = asyncio.ensure_future(worker(item))
        waiters: set[asyncio.Future] = {task}
        cancel_waiter = None
        if cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_waiter)

        timeout_s = timeout_ms / 1000 if timeout_ms is not None else None
        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout_s, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            if cancel_waiter is not None and not cancel_waiter.done():
                cancel_waiter.cancel()

        if task in done:
            return task.result()

        detached.add(task)
        task.add_done_callback(_forget)
        if cancel_waiter is not None and cancel_waiter in done:
            raise OperationAbortedError()
        raise OperationTimeoutError(timeout_ms)

    async def _lane() -> None:
        nonlocal next_index
        while next_index < len(pending):
            index = next_index
            next_index += 1
            item = pending[index]

            if cancel_event is not None and cancel_event.is_set():
                results[index] = ItemResult(index, item, error=OperationAbortedError())
                continue

            try:
                value = await _settle(item)
            except Exception as e:
                results[index] = ItemResult(index, item, error=e)
            else:
                results[index] = ItemResult(index, item, value=value)

    lanes = min(concurrency, len(pending))
    await asyncio.gather(*(_lane() for _ in range(lanes)))
    return [r for r in results if r is not None]
