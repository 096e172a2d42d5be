"""Process-wide room store: code allocation, lookup and idle-room eviction."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import secrets
import string
import time
from typing import TYPE_CHECKING

from bingo.logic.chat import ChatLog
from bingo.logic.exceptions import InvalidStateError
from bingo.session.room import HostSeat, Room

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
ROOM_CODE_LENGTH = 5  # 36^5 ~ 60M codes

_ROOM_REAPER_INTERVAL = 30  # seconds between reaper checks
_MAX_CODE_ATTEMPTS = 100


def generate_room_code() -> str:
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


class RoomRegistry:
    """Own every live Room, keyed by room code.

    Rooms are evicted once idle for longer than room_ttl_seconds (measured from
    Room.last_activity_at). Eviction is handed to the on_expire callback so the
    session layer can notify connections and cancel vote timers.
    """

    def __init__(
        self,
        *,
        max_rooms: int = 500,
        room_ttl_seconds: int = 0,
        chat_history_limit: int = 50,
        on_expire: Callable[[Room], Awaitable[None]] | None = None,
        code_factory: Callable[[], str] = generate_room_code,
    ) -> None:
        self._max_rooms = max_rooms
        self._room_ttl_seconds = room_ttl_seconds
        self._chat_history_limit = chat_history_limit
        self._on_expire = on_expire
        self._code_factory = code_factory
        self._rooms: dict[str, Room] = {}
        self._reaper_task: asyncio.Task[None] | None = None

    # --- Public API ---

    def create_room(self, host_client_id: str) -> Room:
        """Allocate a fresh room code and register a new room.

        Codes are regenerated on collision; the code space is large enough
        that a handful of attempts always suffices in practice.
        """
        if len(self._rooms) >= self._max_rooms:
            raise InvalidStateError("Server is at room capacity, try again later")

        for _ in range(_MAX_CODE_ATTEMPTS):
            room_code = self._code_factory()
            if room_code not in self._rooms:
                break
            logger.info("room code collision on %s, regenerating", room_code)
        else:
            raise InvalidStateError("Could not allocate a room code, try again")

        room = Room(
            room_code=room_code,
            host=HostSeat(client_id=host_client_id),
            chat=ChatLog(limit=self._chat_history_limit),
        )
        self._rooms[room_code] = room
        logger.info("room %s created", room_code)
        return room

    def get_room(self, room_code: str) -> Room | None:
        return self._rooms.get(room_code)

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    @property
    def max_rooms(self) -> int:
        return self._max_rooms

    # --- Room reaper ---

    def start_reaper(self) -> None:
        """Start the periodic reaper task. Idempotent; disabled when the TTL is 0."""
        if self._room_ttl_seconds <= 0:
            return
        if self._reaper_task is not None and not self._reaper_task.done():
            return
        self._reaper_task = asyncio.create_task(self._reaper_loop())

    async def stop_reaper(self) -> None:
        if self._reaper_task is not None:
            self._reaper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reaper_task
            self._reaper_task = None

    async def _reaper_loop(self) -> None:
        while True:
            await asyncio.sleep(_ROOM_REAPER_INTERVAL)
            try:
                await self.reap_expired_rooms()
            except Exception:
                logger.exception("room reaper encountered an error")

    async def reap_expired_rooms(self) -> list[str]:
        """Evict rooms idle past the TTL. Returns the evicted room codes."""
        if self._room_ttl_seconds <= 0:
            return []
        now = time.monotonic()
        expired = [
            room for room in list(self._rooms.values()) if now - room.last_activity_at > self._room_ttl_seconds
        ]
        evicted: list[str] = []
        for room in expired:
            # Re-check membership: an earlier on_expire await may have let
            # another handler remove or replace this room.
            if self._rooms.get(room.room_code) is not room:
                continue
            del self._rooms[room.room_code]
            evicted.append(room.room_code)
            logger.info(
                "room %s expired (idle %.0fs > TTL %ds)",
                room.room_code,
                now - room.last_activity_at,
                self._room_ttl_seconds,
            )
            if self._on_expire is not None:
                await self._on_expire(room)
        return evicted
