"""
Debounced auto-save.

A cancellable timer owned by the editing session. Every edit reschedules it
with the newest snapshot, so a burst of edits produces a single write of the
final state. A write that has already started is never cancelled; a failed
write is reported and not retried.
"""

from typing import Any, Awaitable, Callable, Optional, Union
import asyncio
import inspect
import logging

from workflow_core.models import Workflow

logger = logging.getLogger(__name__)

SaveCallable = Callable[[Workflow], Union[Any, Awaitable[Any]]]


class DebouncedSaver:
    """
    Collapses bursts of snapshots into one save.

    - schedule(snapshot): cancel the pending timer and restart it
    - flush(): write the pending snapshot now
    - cancel(): drop the pending snapshot without writing (session teardown)
    """

    def __init__(
        self,
        save: SaveCallable,
        delay: float = 2.0,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        if delay <= 0:
            raise ValueError("Auto-save delay must be positive")
        self._save = save
        self._delay = delay
        self._on_error = on_error
        self._pending: Optional[Workflow] = None
        self._timer: Optional[asyncio.Task] = None
        self._in_flight: set[asyncio.Task] = set()

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    @property
    def is_writing(self) -> bool:
        return bool(self._in_flight)

    def schedule(self, snapshot: Workflow) -> None:
        """Replace the pending snapshot and restart the timer. Needs a running event loop."""
        loop = asyncio.get_running_loop()
        self._pending = snapshot
        self._cancel_timer()
        self._timer = loop.create_task(self._wait_then_write())

    def cancel(self) -> None:
        """Drop the pending snapshot. In-flight writes are left to finish."""
        self._cancel_timer()
        if self._pending is not None:
            logger.debug("Discarded pending auto-save")
        self._pending = None

    async def flush(self) -> None:
        """Write the pending snapshot immediately, if any."""
        self._cancel_timer()
        snapshot, self._pending = self._pending, None
        if snapshot is not None:
            await self._write(snapshot)

    async def wait_idle(self) -> None:
        """Wait until no write is in progress."""
        while self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _wait_then_write(self) -> None:
        await asyncio.sleep(self._delay)
        # No await between here and spawning the write: cancellation can only hit the sleep.
        snapshot, self._pending = self._pending, None
        self._timer = None
        if snapshot is None:
            return
        task = asyncio.get_running_loop().create_task(self._write(snapshot))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _write(self, snapshot: Workflow) -> None:
        try:
            result = self._save(snapshot)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error("Auto-save failed: %s", e, exc_info=True)
            if self._on_error is not None:
                self._on_error(e)
