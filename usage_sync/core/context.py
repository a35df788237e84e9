"""
Cancellable context handed to usage estimation calls.

A sync pass shares one context across all resources. Cancelling it, or
letting its deadline pass, aborts only the estimation call that is in flight;
each later call is still made and fails immediately with the same error.
"""
import asyncio
import time
from typing import Any, Awaitable, Optional, Set, TypeVar


T = TypeVar("T")


class EstimationAbortedError(Exception):
    """Raised when an estimation call is aborted by its context."""
    pass


class EstimationCancelledError(EstimationAbortedError):
    """Raised when the sync context was cancelled."""
    pass


class EstimationTimeoutError(EstimationAbortedError):
    """Raised when the sync context deadline expired."""
    pass


class SyncContext:
    """Cancellation flag plus an optional monotonic deadline."""

    def __init__(self, timeout: Optional[float] = None):
        """
        Initialize sync context.

        The context may be built before an event loop is running; waiters
        are only created inside run(), on the loop that awaits the call.

        Args:
            timeout: Seconds from now until the deadline (None for no deadline)
        """
        self._cancelled = False
        self._waiters: Set["asyncio.Future[None]"] = set()
        self.deadline: Optional[float] = None
        if timeout is not None:
            self.deadline = time.monotonic() + timeout

    def cancel(self) -> None:
        """Cancel the context. Idempotent."""
        self._cancelled = True
        for waiter in self._waiters:
            if not waiter.done():
                waiter.set_result(None)

    def cancelled(self) -> bool:
        return self._cancelled

    def remaining(self) -> Optional[float]:
        """Seconds left until the deadline, or None when there is no deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """
        Raise if the context is already done.

        Raises:
            EstimationCancelledError: If the context was cancelled
            EstimationTimeoutError: If the deadline has passed
        """
        if self.cancelled():
            raise EstimationCancelledError("context cancelled")
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise EstimationTimeoutError("context deadline exceeded")

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await a call, aborting it if the context is cancelled or times out.

        Cancelling the task that awaits run() cancels the call and propagates.

        Args:
            awaitable: The estimation call

        Returns:
            Whatever the call returns

        Raises:
            EstimationCancelledError: If the context is cancelled before the call
                finishes, or the call itself ends up cancelled
            EstimationTimeoutError: If the deadline passes before the call finishes
        """
        task = asyncio.ensure_future(awaitable)
        try:
            self.check()
        except EstimationAbortedError:
            await _cancel_and_wait(task)
            raise

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.add(waiter)
        try:
            done, _ = await asyncio.wait(
                {task, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            await _cancel_and_wait(task)
            raise
        finally:
            self._waiters.discard(waiter)
            waiter.cancel()

        if task in done:
            if task.cancelled():
                raise EstimationCancelledError("estimation call cancelled")
            return task.result()

        await _cancel_and_wait(task)
        if self.cancelled():
            raise EstimationCancelledError("context cancelled")
        raise EstimationTimeoutError("context deadline exceeded")


async def _cancel_and_wait(task: "asyncio.Future[Any]") -> None:
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
