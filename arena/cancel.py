"""Cancellation tokens. Every suspension point in the core checks one."""

import asyncio
import logging

from arena.errors import CancellationError

logger = logging.getLogger(__name__)


class CancelToken:
    """Cooperative cancellation for one round (or one provider within it).

    Cancelling a token wakes any pending ``sleep``, cancels tasks attached
    with ``attach`` and cancels every child token.
    """

    def __init__(self, parent: "CancelToken | None" = None) -> None:
        self._event = asyncio.Event()
        self._tasks: set[asyncio.Task] = set()
        self._children: list[CancelToken] = []
        if parent is not None:
            parent._children.append(self)
            if parent.cancelled:
                self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def child(self) -> "CancelToken":
        return CancelToken(parent=self)

    def attach(self, task: asyncio.Task) -> asyncio.Task:
        """Cancel ``task`` along with this token. Finished tasks drop out."""
        if self.cancelled:
            task.cancel()
            return task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def cancel(self) -> None:
        if self.cancelled:
            return
        self._event.set()
        for task in list(self._tasks):
            task.cancel()
        for child in self._children:
            child.cancel()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise CancellationError("Operation cancelled")

    async def sleep(self, delay: float) -> None:
        """Wait ``delay`` seconds, raising CancellationError as soon as the token fires."""
        self.raise_if_cancelled()
        if delay <= 0:
            # still yield so a tight loop never starves the event loop
            await asyncio.sleep(0)
        else:
            try:
                await asyncio.wait_for(self._event.wait(), timeout=delay)
            except TimeoutError:
                pass
        self.raise_if_cancelled()
