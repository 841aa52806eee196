"""Cooperative cancellation primitives

A CancelToken is the signal shared by everything that belongs to one
operation (HTTP calls, the loopback wait). A CancelSlot is the explicit
owner of "the current token" for one kind of operation: replacing the token
cancels the previous holder, so a second upload aborts the first instead of
queueing behind it.
"""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from .errors import CanceledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancelToken:
    """One-shot cancellation signal"""

    def __init__(self, name: str = "operation"):
        self.name = name
        self._event: Optional[asyncio.Event] = None
        self._canceled = False

    def _get_event(self) -> asyncio.Event:
        # Created lazily so tokens can be built outside a running loop
        if self._event is None:
            self._event = asyncio.Event()
            if self._canceled:
                self._event.set()
        return self._event

    @property
    def is_canceled(self) -> bool:
        return self._canceled

    def cancel(self) -> None:
        """Signal cancellation; idempotent"""
        if self._canceled:
            return
        self._canceled = True
        if self._event is not None:
            self._event.set()
        logger.debug(f"Cancel signalled for {self.name}")

    async def wait(self) -> None:
        """Block until the token is cancelled"""
        await self._get_event().wait()

    def raise_if_canceled(self, message: Optional[str] = None) -> None:
        if self._canceled:
            raise CanceledError(message or f"{self.name} canceled")


class CancelSlot:
    """Holds the token of the single in-flight operation of one kind"""

    def __init__(self, name: str):
        self.name = name
        self.current: Optional[CancelToken] = None

    def replace(self) -> CancelToken:
        """Cancel the in-flight token (if any) and install a fresh one

        Returns:
            The new token for the operation being started
        """
        if self.current is not None:
            logger.info(f"Aborting previous {self.name} operation")
            self.current.cancel()
        self.current = CancelToken(self.name)
        return self.current

    def release(self, token: CancelToken) -> None:
        """Clear the slot if it still holds the given token"""
        if self.current is token:
            self.current = None

    def cancel(self) -> None:
        """Cancel and clear whatever is in flight"""
        if self.current is not None:
            self.current.cancel()
            self.current = None

    @property
    def busy(self) -> bool:
        return self.current is not None


async def run_cancellable(
    awaitable: Awaitable[T],
    cancel: Optional[CancelToken],
    message: Optional[str] = None,
) -> T:
    """Await an awaitable unless the token fires first

    Args:
        awaitable: Coroutine or future to run
        cancel: Token to race against (None runs the awaitable as-is)
        message: Message for the CanceledError

    Returns:
        The awaitable's result

    Raises:
        CanceledError: If the token fired before the awaitable completed
    """
    if cancel is None:
        return await awaitable

    if cancel.is_canceled:
        # Close the coroutine so it is not reported as never awaited
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise CanceledError(message or f"{cancel.name} canceled")

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except BaseException:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task.done():
        return task.result()

    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    raise CanceledError(message or f"{cancel.name} canceled")
