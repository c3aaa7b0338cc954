from __future__ import annotations
import asyncio
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar('T')

class Debouncer(Generic[T]):
    """Delay a callback until pushes stop arriving for ``delay`` seconds.

    Each push cancels the pending timer and starts a new one, so at most one
    timer is ever pending. The callback runs on the loop, outside the timer
    task's cancellation scope once the delay has elapsed.
    """

    def __init__(self, delay: float, callback: Callable[[T], None]):
        self.delay = delay
        self._callback = callback
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def push(self, value: T):
        self.cancel()
        self._task = asyncio.create_task(self._fire_after(value))

    def cancel(self):
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None

    async def wait(self):
        task = self._task
        if task is None:
            return
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            # superseded by a newer push; wait for that one instead
            if self._task is not task:
                await self.wait()
            elif task.cancelled():
                return
            else:
                raise

    async def _fire_after(self, value: T):
        await asyncio.sleep(self.delay)
        self._callback(value)
