"""
Cooperative cancellation for upload operations.

A CancellationToken is owned by one upload controller and handed to every
network call and backoff wait it makes. Cancelling the token wakes those
waits and aborts the request in flight instead of letting it run out.
"""
import asyncio
from typing import Awaitable, TypeVar

from .exceptions import CancellationError

T = TypeVar('T')


class CancellationToken:
    """
    Single-use cancellation signal backed by an asyncio.Event.

    Example:
        >>> token = CancellationToken()
        >>> result = await token.run(session.post(url))  # aborted on cancel()
    """

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        """True once cancel() has been called."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Fire the token. Idempotent."""
        self._event.set()

    def raise_if_cancelled(self, message: str = "Upload cancelled by user") -> None:
        """Raise CancellationError if the token has fired."""
        if self._event.is_set():
            raise CancellationError(message)

    async def wait(self) -> None:
        """Wait until the token fires."""
        await self._event.wait()

    async def sleep(self, delay: float) -> None:
        """
        Sleep for ``delay`` seconds, waking early on cancellation.

        Raises:
            CancellationError: If the token fires before or during the sleep
        """
        self.raise_if_cancelled()
        if delay > 0:
            try:
                await asyncio.wait_for(self._event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                return
        self.raise_if_cancelled()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless the token fires first.

        The awaitable runs as its own task; when the token fires that task is
        cancelled, so an HTTP request in flight is torn down.

        Raises:
            CancellationError: If the token fires before the awaitable settles
        """
        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if self._event.is_set():
            # Whatever the request produced is discarded once cancel() ran
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise CancellationError()

        return task.result()
