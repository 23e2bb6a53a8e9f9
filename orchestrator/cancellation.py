"""One-shot cancellation signal observed cooperatively by async operations."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .exceptions import OperationCancelledError
from .log import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


class CancellationToken:
    """Handle that can be signalled once.

    Streaming and endpoint calls check the token between units of work (per
    token, per round-trip). ``run`` additionally races a pending awaitable
    against the signal so a stalled provider call stops promptly.
    """

    def __init__(self, name: str = "request") -> None:
        self.name = name
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[], None]] = []

    def __repr__(self) -> str:
        return f"CancellationToken({self.name!r}, cancelled={self.cancelled})"

    @property
    def cancelled(self) -> bool:
        """Whether the token has been signalled."""
        return self._event.is_set()

    def cancel(self) -> bool:
        """Signal the token.

        Returns:
            True on the first call, False if the token was already cancelled
        """
        if self._event.is_set():
            return False

        self._event.set()
        logger.debug(f"Cancelled {self.name} token")
        for callback in self._callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Error in cancellation callback: {e}")
        self._callbacks.clear()
        return True

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Register a callback fired once on cancellation.

        If the token is already cancelled the callback fires immediately.
        """
        if self.cancelled:
            callback()
            return
        self._callbacks.append(callback)

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if the token has been signalled."""
        if self.cancelled:
            raise OperationCancelledError(f"{self.name} was cancelled")

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        A result that arrives after cancellation is discarded.

        Raises:
            OperationCancelledError: If the token was or becomes cancelled
        """
        self.raise_if_cancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            if not self.cancelled:
                return task.result()
            # Late arrival: consume the outcome so it is not reported as unhandled
            if not task.cancelled() and task.exception() is not None:
                logger.debug(
                    f"Discarding late failure of {self.name}: {task.exception()}"
                )
            raise OperationCancelledError(f"{self.name} was cancelled")

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Cancelled {self.name} call ended with: {e}")
        raise OperationCancelledError(f"{self.name} was cancelled")
