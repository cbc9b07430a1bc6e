"""Room-wide cancellation token.

One token lives as long as the room. Once cancelled it stays cancelled:
an in-flight completion is aborted and every pacing sleep returns at once.
"""

import asyncio
import logging
from typing import Awaitable, TypeVar

from salon.errors import CompletionCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Level-triggered cancellation signal shared by a room's awaits."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation. Safe to call repeatedly."""
        self._event.set()

    async def wait(self) -> None:
        """Block until cancelled."""
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """Sleep unless cancelled first.

        Returns:
            True if the sleep was cut short by cancellation
        """
        if self.cancelled:
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(seconds, 0))
            return True
        except asyncio.TimeoutError:
            return False

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` but abort it as soon as the token fires.

        Raises:
            CompletionCancelledError: If the token is (or becomes) cancelled
        """
        task = asyncio.ensure_future(awaitable)
        if self.cancelled:
            task.cancel()
            await self._reap(task)
            raise CompletionCancelledError()

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()

        if self.cancelled:
            if not task.done():
                task.cancel()
            await self._reap(task)
            raise CompletionCancelledError()

        return task.result()

    @staticmethod
    async def _reap(task: "asyncio.Future[T]") -> None:
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Aborted completion finished with {type(e).__name__}: {e}")
