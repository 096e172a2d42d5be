"""One-shot vote resolution timers, one pending per room."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

# Callback type: (room_code, vote_epoch) -> Awaitable[None]
DeadlineCallback = Callable[[str, int], Awaitable[None]]


class VoteTimerManager:
    """Schedule and cancel vote resolution tasks.

    Each timer remembers the vote epoch it was scheduled for. It does NOT
    inspect room state; the callback (SessionManager) re-validates the room
    and epoch when the timer fires, since the room may have been evicted or
    a newer vote started in the meantime.
    """

    def __init__(self, on_deadline: DeadlineCallback) -> None:
        self._on_deadline = on_deadline
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def schedule(self, room_code: str, epoch: int, delay: float) -> None:
        """Start a timer for a room, replacing any timer still pending for it."""
        self.cancel(room_code)
        self._tasks[room_code] = asyncio.create_task(self._run(room_code, epoch, delay))

    def has_pending(self, room_code: str) -> bool:
        task = self._tasks.get(room_code)
        return task is not None and not task.done()

    def cancel(self, room_code: str) -> None:
        task = self._tasks.pop(room_code, None)
        if task is not None and not task.done():
            task.cancel()

    def cancel_all(self) -> None:
        for room_code in list(self._tasks):
            self.cancel(room_code)

    @property
    def pending_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def _run(self, room_code: str, epoch: int, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
            # Drop our own entry before the callback runs so nothing it
            # triggers can cancel the task that is executing it.
            if self._tasks.get(room_code) is asyncio.current_task():
                del self._tasks[room_code]
            await self._on_deadline(room_code, epoch)
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("vote timer callback failed for room %s", room_code)
