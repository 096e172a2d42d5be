"""Room aggregate: one independent bingo game with its players, draws, chat and vote."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from bingo.logic.chat import ChatLog
from bingo.logic.draw import full_pool
from bingo.logic.settings import FREE_SPACE
from bingo.logic.vote import VoteState
from bingo.logic.win import distance_to_win

if TYPE_CHECKING:
    from bingo.logic.card import BingoCard
    from bingo.messaging.protocol import ConnectionProtocol


@dataclass(eq=False)
class Player:
    """A participant holding a card.

    client_id is the identity: it is the key in Room.players and survives
    reconnects. connection is only the current transport handle (None while
    disconnected) and is the one field a reconnect rewrites.
    """

    client_id: str
    name: str
    card: BingoCard
    connection: ConnectionProtocol | None = None
    marked_numbers: set[int] = field(default_factory=lambda: {FREE_SPACE})
    last_chat_at: float | None = None

    @property
    def connection_id(self) -> str | None:
        return self.connection.connection_id if self.connection is not None else None

    @property
    def distance_to_win(self) -> int:
        return distance_to_win(self.card, self.marked_numbers)

    def mark(self, number: int, called_numbers: list[int]) -> bool:
        """Mark a called number (or the free cell). Returns False if not allowed."""
        if number != FREE_SPACE and number not in called_numbers:
            return False
        self.marked_numbers.add(number)
        return True

    def unmark(self, number: int) -> None:
        self.marked_numbers.discard(number)
        # the free cell is permanently marked
        self.marked_numbers.add(FREE_SPACE)


@dataclass(eq=False)
class HostSeat:
    """The host's durable identity and current connection."""

    client_id: str
    connection: ConnectionProtocol | None = None
    last_chat_at: float | None = None

    @property
    def connection_id(self) -> str | None:
        return self.connection.connection_id if self.connection is not None else None


@dataclass(eq=False)
class Room:
    room_code: str
    host: HostSeat
    chat: ChatLog = field(default_factory=ChatLog)
    started: bool = False
    winner_name: str | None = None
    called_numbers: list[int] = field(default_factory=list)
    available_numbers: set[int] = field(default_factory=full_pool)
    players: dict[str, Player] = field(default_factory=dict)  # client_id -> Player, join order
    banned_client_ids: set[str] = field(default_factory=set)
    vote: VoteState = field(default_factory=VoteState)
    joined_total: int = 0  # players ever admitted, never decremented
    last_activity_at: float = field(default_factory=time.monotonic)

    @property
    def player_count(self) -> int:
        return len(self.players)

    @property
    def is_over(self) -> bool:
        return self.winner_name is not None

    def touch(self) -> None:
        self.last_activity_at = time.monotonic()

    def is_host_connection(self, connection: ConnectionProtocol) -> bool:
        return self.host.connection_id == connection.connection_id

    def connections(self) -> list[ConnectionProtocol]:
        """Every live connection in the room, host first."""
        result = [self.host.connection] if self.host.connection is not None else []
        result.extend(p.connection for p in self.players.values() if p.connection is not None)
        return result

    def record_draw(self, number: int) -> None:
        self.available_numbers.remove(number)
        self.called_numbers.append(number)

    def standings(self) -> list[tuple[Player, int]]:
        """Players paired with their distance to win, closest first.

        The sort is stable, so equal distances keep join order.
        """
        return sorted(((p, p.distance_to_win) for p in self.players.values()), key=lambda item: item[1])
