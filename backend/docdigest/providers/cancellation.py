from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar


T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


def _retrieve_outcome(task: asyncio.Future) -> None:
    if not task.cancelled():
        task.exception()


class OperationCancelledError(Exception):
    """Terminal outcome of a cancelled invocation. Not a failure and never classified."""

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason or "Operation cancelled.")
        self.reason = reason


class CancellationToken:
    """One token per invocation, shared by every suspension point of that invocation."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(self._reason)

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first, in which case it is cancelled."""
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationCancelledError(self._reason)
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            work.cancel()
            raise
        finally:
            if not waiter.done():
                waiter.cancel()
        if work.done():
            return work.result()
        # The abandoned attempt's outcome is irrelevant once cancelled.
        work.add_done_callback(_retrieve_outcome)
        work.cancel()
        raise OperationCancelledError(self._reason)

    async def sleep(self, seconds: float, *, sleep_fn: SleepFn = asyncio.sleep) -> None:
        await self.guard(sleep_fn(max(0.0, seconds)))
