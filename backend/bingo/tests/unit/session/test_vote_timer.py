import asyncio
from unittest.mock import AsyncMock

from bingo.session.vote_timer import VoteTimerManager


class TestVoteTimerManager:
    async def test_fires_with_room_and_epoch(self):
        callback = AsyncMock()
        timers = VoteTimerManager(on_deadline=callback)

        timers.schedule("ROOM1", 3, 0.01)
        assert timers.has_pending("ROOM1")
        await asyncio.sleep(0.1)

        callback.assert_awaited_once_with("ROOM1", 3)
        assert not timers.has_pending("ROOM1")
        assert timers.pending_count == 0

    async def test_cancel_prevents_callback(self):
        callback = AsyncMock()
        timers = VoteTimerManager(on_deadline=callback)

        timers.schedule("ROOM1", 1, 0.05)
        timers.cancel("ROOM1")
        await asyncio.sleep(0.1)

        callback.assert_not_awaited()

    async def test_reschedule_replaces_pending_timer(self):
        callback = AsyncMock()
        timers = VoteTimerManager(on_deadline=callback)

        timers.schedule("ROOM1", 1, 0.05)
        timers.schedule("ROOM1", 2, 0.05)
        assert timers.pending_count == 1
        await asyncio.sleep(0.15)

        callback.assert_awaited_once_with("ROOM1", 2)

    async def test_rooms_are_independent(self):
        callback = AsyncMock()
        timers = VoteTimerManager(on_deadline=callback)

        timers.schedule("ROOM1", 1, 0.01)
        timers.schedule("ROOM2", 1, 0.01)
        timers.cancel("ROOM1")
        await asyncio.sleep(0.1)

        callback.assert_awaited_once_with("ROOM2", 1)

    async def test_cancel_all(self):
        callback = AsyncMock()
        timers = VoteTimerManager(on_deadline=callback)
        timers.schedule("ROOM1", 1, 0.05)
        timers.schedule("ROOM2", 1, 0.05)

        timers.cancel_all()
        await asyncio.sleep(0.1)

        assert timers.pending_count == 0
        callback.assert_not_awaited()

    async def test_callback_error_is_logged(self, caplog):
        callback = AsyncMock(side_effect=RuntimeError("boom"))
        timers = VoteTimerManager(on_deadline=callback)

        timers.schedule("ROOM1", 1, 0.01)
        await asyncio.sleep(0.1)

        assert "vote timer callback failed for room ROOM1" in caplog.text
