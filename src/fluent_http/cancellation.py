"""Caller-side cancellation for in-flight requests."""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from .exceptions import CancellationFailure


T = TypeVar("T")


class CancellationToken:
    """A handle the caller can fire to abort a request.

    The token is observed while waiting on the transport and while waiting
    between retry attempts. Once fired it stays fired.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._timer: asyncio.TimerHandle | None = None

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._event.set()

    def cancel_after(self, seconds: float) -> None:
        """Fire the token after a delay. Must be called from a running event loop."""
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(seconds, self.cancel)

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancellation_requested(self) -> None:
        if self.is_cancellation_requested:
            raise CancellationFailure("The request was cancelled")


async def run_cancellable(awaitable: Awaitable[T], token: CancellationToken | None) -> T:
    """Await ``awaitable`` unless ``token`` fires first.

    Raises :class:`CancellationFailure` if the token fires before the
    awaitable completes; the awaitable is cancelled in that case.
    """
    if token is None:
        return await awaitable

    if token.is_cancellation_requested:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        token.raise_if_cancellation_requested()

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not task.done():
            task.cancel()

    if task in done:
        return task.result()

    await asyncio.wait({task})
    raise CancellationFailure("The request was cancelled")
