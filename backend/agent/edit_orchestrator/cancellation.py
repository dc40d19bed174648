"""Cooperative cancellation for long-running plan executions."""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

T = TypeVar("T")


class PlanCancelledError(Exception):
    """Raised inside the pipeline when the caller cancelled the plan."""

    def __init__(self, reason: str | None = None):
        self.reason = reason
        super().__init__(reason or "Plan execution cancelled")


class CancellationToken:
    """Shared flag the caller flips to stop a plan.

    The orchestrator checks it between steps and races every oracle call
    against it, so an in-flight resolution, generation or judgment call is
    abandoned as soon as cancel() is called.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


async def run_cancellable(
    awaitable: Awaitable[T],
    token: CancellationToken | None,
) -> T:
    """Await `awaitable`, abandoning it if `token` is cancelled first."""
    if token is None:
        return await awaitable
    if token.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise PlanCancelledError(token.reason)

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait(
            {task, waiter}, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        task.cancel()
        waiter.cancel()
        raise

    if task in done:
        waiter.cancel()
        return task.result()

    task.cancel()
    try:
        await task
    except (asyncio.CancelledError, Exception):
        pass
    raise PlanCancelledError(token.reason)
