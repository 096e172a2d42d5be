"""Builders for rooms and players driven through the public SessionManager API."""

from __future__ import annotations

from typing import TYPE_CHECKING

from bingo.logic.card import BingoCard
from bingo.logic.settings import FREE_SPACE
from bingo.tests.mocks import MockConnection

if TYPE_CHECKING:
    from bingo.session.manager import SessionManager
    from bingo.session.room import Room

TEST_HOST_PASSWORD = "test-host-password"
HOST_CLIENT_ID = "host-1"

# Deterministic card: B 1-5, I 31-35, N 61,62,FREE,63,64, G 91-95, O 121-125
FIXED_CARD = BingoCard(
    rows=(
        (1, 31, 61, 91, 121),
        (2, 32, 62, 92, 122),
        (3, 33, FREE_SPACE, 93, 123),
        (4, 34, 63, 94, 124),
        (5, 35, 64, 95, 125),
    ),
)


async def create_room(
    manager: SessionManager,
    host_client_id: str = HOST_CLIENT_ID,
) -> tuple[Room, MockConnection]:
    """Create a room through the manager and return it with the host connection."""
    host = MockConnection()
    manager.register_connection(host)
    room = await manager.create_room(host, TEST_HOST_PASSWORD, host_client_id)
    host.clear()
    return room, host


async def join_player(
    manager: SessionManager,
    room: Room,
    client_id: str,
    name: str = "",
    *,
    card: BingoCard | None = None,
) -> MockConnection:
    """Join a player; optionally swap in a known card for deterministic line tests."""
    conn = MockConnection()
    manager.register_connection(conn)
    await manager.join_room(conn, room.room_code, client_id, name)
    if card is not None:
        room.players[client_id].card = card
    conn.clear()
    return conn


def force_called(room: Room, *numbers: int) -> None:
    """Record numbers as drawn without going through the random draw."""
    for number in numbers:
        room.record_draw(number)
