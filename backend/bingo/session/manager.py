from __future__ import annotations

import contextlib
import hmac
import random
import time
from typing import TYPE_CHECKING, Any

import structlog

from bingo.logic.card import generate_card
from bingo.logic.chat import ChatEntry, ChatModerator
from bingo.logic.draw import draw_next, letter_for_number
from bingo.logic.exceptions import (
    BannedError,
    InvalidClaimError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from bingo.logic.settings import GameSettings
from bingo.logic.win import is_bingo
from bingo.messaging.types import (
    BannedMessage,
    ChatBroadcastMessage,
    ChatHistoryMessage,
    ErrorMessage,
    GameOverMessage,
    GameStartedMessage,
    HostReconnectedMessage,
    HostUpdateMessage,
    JoinedMessage,
    LeaderboardEntry,
    NumberDrawnMessage,
    PlayerCountMessage,
    PongMessage,
    RoomCreatedMessage,
    SessionErrorCode,
    VoteEndedMessage,
    VoteSnapshot,
    VoteStartedMessage,
    VoteTallyMessage,
)
from bingo.session.broadcast import broadcast_to_connections
from bingo.session.models import ConnectionBinding
from bingo.session.registry import RoomRegistry
from bingo.session.room import HostSeat, Player
from bingo.session.vote_timer import VoteTimerManager

if TYPE_CHECKING:
    from bingo.logic.enums import Letter
    from bingo.messaging.protocol import ConnectionProtocol
    from bingo.session.room import Room

logger = structlog.get_logger()

SYSTEM_SENDER = "System"


class SessionManager:
    """Coordinate every room operation and own all outbound room traffic.

    Each public operation validates first and raises a BingoError subclass
    without touching state when the request is refused. Accepted operations
    finish mutating the room before their first await; sends happen after and
    are fire-and-forget, so handlers interleaving on the event loop never see
    a half-applied change.
    """

    def __init__(
        self,
        *,
        host_password: str,
        settings: GameSettings | None = None,
        registry: RoomRegistry | None = None,
        max_rooms: int = 500,
        room_ttl_seconds: int = 0,
        rng: random.Random | None = None,
    ) -> None:
        self._host_password = host_password
        self._settings = settings or GameSettings()
        self._rng = rng or random.Random()  # noqa: S311
        self._registry = registry or RoomRegistry(
            max_rooms=max_rooms,
            room_ttl_seconds=room_ttl_seconds,
            chat_history_limit=self._settings.chat_history_limit,
            on_expire=self._handle_room_expired,
        )
        self._moderator = ChatModerator(
            cooldown_seconds=self._settings.chat_cooldown_seconds,
            max_length=self._settings.chat_max_length,
            disallowed_terms=self._settings.disallowed_terms,
        )
        self._vote_timers = VoteTimerManager(on_deadline=self._resolve_vote)
        self._connections: dict[str, ConnectionProtocol] = {}
        self._bindings: dict[str, ConnectionBinding] = {}  # connection_id -> binding

    # --- Connections ---

    def register_connection(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection

    def unregister_connection(self, connection: ConnectionProtocol) -> None:
        self._detach(connection)
        self._connections.pop(connection.connection_id, None)
        logger.info("connection unregistered", connection_id=connection.connection_id)

    def get_binding(self, connection_id: str) -> ConnectionBinding | None:
        return self._bindings.get(connection_id)

    async def handle_ping(self, connection: ConnectionProtocol) -> None:
        await connection.send_message(PongMessage().model_dump())

    # --- Registry ---

    def get_room(self, room_code: str) -> Room | None:
        return self._registry.get_room(room_code)

    @property
    def room_count(self) -> int:
        return self._registry.room_count

    @property
    def max_rooms(self) -> int:
        return self._registry.max_rooms

    @property
    def pending_vote_count(self) -> int:
        return self._vote_timers.pending_count

    def start_room_reaper(self) -> None:
        self._registry.start_reaper()

    async def stop_room_reaper(self) -> None:
        await self._registry.stop_reaper()

    def cancel_all_vote_timers(self) -> None:
        self._vote_timers.cancel_all()

    # --- Host operations ---

    async def create_room(self, connection: ConnectionProtocol, password: str, host_client_id: str) -> Room:
        if not hmac.compare_digest(password.encode(), self._host_password.encode()):
            raise UnauthorizedError("Incorrect admin password")

        room = self._registry.create_room(host_client_id)
        self._attach(connection, room, host_client_id, is_host=True)
        logger.info("room created", room_code=room.room_code, host_client_id=host_client_id)

        await connection.send_message(RoomCreatedMessage(room_code=room.room_code).model_dump())
        return room

    async def start_game(self, connection: ConnectionProtocol, room_code: str) -> None:
        room = self._get_room(room_code)
        self._require_host(room, connection)
        if room.started:
            raise InvalidStateError("Game already started")

        room.started = True
        room.touch()
        logger.info("game started", player_count=room.player_count)

        await self._broadcast(room, GameStartedMessage().model_dump())
        await self.refresh_leaderboard(room)

    async def draw_number(self, connection: ConnectionProtocol, room_code: str) -> int | None:
        room = self._get_room(room_code)
        self._require_host(room, connection)
        self._require_drawable(room)
        return await self._perform_draw(room)

    async def start_vote(self, connection: ConnectionProtocol, room_code: str) -> None:
        room = self._get_room(room_code)
        self._require_host(room, connection)
        if room.is_over:
            raise InvalidStateError("Game is over")

        duration = self._settings.vote_duration_seconds
        deadline = time.time() + duration
        epoch = room.vote.start(deadline)
        self._vote_timers.schedule(room.room_code, epoch, duration)
        room.touch()
        logger.info("vote started", vote_epoch=epoch, duration=duration)

        await self._broadcast(
            room,
            VoteStartedMessage(deadline=deadline, duration_seconds=duration).model_dump(),
        )

    async def ban_player(
        self,
        connection: ConnectionProtocol,
        room_code: str,
        requester_id: str,
        target_client_id: str,
    ) -> None:
        room = self._get_room(room_code)
        self._require_host(room, connection)
        if requester_id != room.host.client_id:
            raise UnauthorizedError("Only the host can ban players")
        if target_client_id == room.host.client_id:
            raise InvalidStateError("The host cannot ban themselves")
        if target_client_id not in room.players:
            raise NotFoundError("No such player in this room")

        target = room.players.pop(target_client_id)
        room.banned_client_ids.add(target_client_id)
        purged = room.chat.purge_client(target_client_id)
        room.chat.append(
            ChatEntry(sender=SYSTEM_SENDER, text=f"{target.name} was banned by the host.", is_system=True),
        )
        target_connection = target.connection
        if target_connection is not None:
            self._bindings.pop(target_connection.connection_id, None)
        room.touch()
        logger.info("player banned", target_client_id=target_client_id, purged_messages=purged)

        if target_connection is not None:
            with contextlib.suppress(RuntimeError, OSError, ConnectionError):
                await target_connection.send_message(BannedMessage(room_code=room.room_code).model_dump())
        await self._broadcast(room, ChatHistoryMessage(messages=room.chat.entries).model_dump())
        await self._broadcast(room, PlayerCountMessage(count=room.player_count).model_dump())
        await self.refresh_leaderboard(room)

    # --- Player operations ---

    async def join_room(
        self,
        connection: ConnectionProtocol,
        room_code: str,
        client_id: str,
        name: str = "",
    ) -> Player:
        """Join a room, or restore the existing seat if this client id already has one."""
        room = self._get_room(room_code)
        if client_id in room.banned_client_ids:
            raise BannedError("You have been banned from this room")
        if client_id == room.host.client_id:
            raise InvalidStateError("The host cannot join as a player")

        existing = room.players.get(client_id)
        if existing is not None:
            await self._restore_player(connection, room, existing)
            return existing

        if room.started:
            raise InvalidStateError("Game already started.")

        room.joined_total += 1
        player = Player(
            client_id=client_id,
            name=name or f"Player {room.joined_total}",
            card=generate_card(self._rng),
        )
        room.players[client_id] = player
        self._attach(connection, room, client_id, is_host=False)
        room.touch()
        logger.info("player joined", player_name=player.name, player_count=room.player_count)

        await connection.send_message(self._joined_message(room, player, reconnected=False).model_dump())
        await self._broadcast(room, PlayerCountMessage(count=room.player_count).model_dump())
        await self.refresh_leaderboard(room)
        return player

    async def reconnect(self, connection: ConnectionProtocol, room_code: str, client_id: str) -> None:
        """Rebind a returning host or player to a new connection and replay their state."""
        room = self._get_room(room_code)
        if client_id in room.banned_client_ids:
            raise BannedError("You have been banned from this room")

        if client_id == room.host.client_id:
            await self._restore_host(connection, room)
            return

        player = room.players.get(client_id)
        if player is None:
            raise NotFoundError("No player with that id in this room")
        await self._restore_player(connection, room, player)

    async def mark_number(
        self,
        connection: ConnectionProtocol,
        room_code: str,
        client_id: str,
        number: int,
        *,
        is_marking: bool,
    ) -> None:
        room = self._get_room(room_code)
        player = self._require_player(room, client_id, connection)

        if is_marking:
            if not player.mark(number, room.called_numbers):
                logger.debug("mark ignored, number not called", number=number)
                return
        else:
            player.unmark(number)
        room.touch()

        await self.refresh_leaderboard(room)

    async def claim_bingo(self, connection: ConnectionProtocol, room_code: str, client_id: str) -> None:
        room = self._get_room(room_code)
        player = self._require_player(room, client_id, connection)
        if room.is_over:
            raise InvalidStateError("Game is already over")
        if not is_bingo(player.card, player.marked_numbers):
            logger.info("false bingo claim", distance=player.distance_to_win)
            raise InvalidClaimError("False Bingo! You do not have 5 in a row yet.")

        room.winner_name = player.name
        room.touch()
        logger.info("bingo claimed", winner=player.name, numbers_called=len(room.called_numbers))

        await self._broadcast(room, GameOverMessage(winner_name=player.name).model_dump())

    async def submit_vote(
        self,
        connection: ConnectionProtocol,
        room_code: str,
        client_id: str,
        letter: Letter,
    ) -> None:
        room = self._get_room(room_code)
        self._require_player(room, client_id, connection)
        if not room.vote.submit(client_id, letter):
            logger.debug("vote dropped", vote_active=room.vote.active)
            return
        room.touch()

        await self._broadcast(room, VoteTallyMessage(counts=room.vote.counts()).model_dump())

    async def send_chat(self, connection: ConnectionProtocol, room_code: str, client_id: str, text: str) -> None:
        room = self._get_room(room_code)
        is_host = client_id == room.host.client_id and room.is_host_connection(connection)
        if is_host:
            sender: HostSeat | Player = room.host
            label = self._settings.host_label
        else:
            sender = self._require_player(room, client_id, connection)
            label = sender.name

        now = time.monotonic()
        self._moderator.check_cooldown(sender.last_chat_at, now)
        sender.last_chat_at = now

        entry = ChatEntry(
            sender=label,
            text=self._moderator.sanitize(text),
            is_host=is_host,
            client_id=client_id,
        )
        room.chat.append(entry)
        room.touch()

        await self._broadcast(room, ChatBroadcastMessage(message=entry).model_dump())

    # --- Room views ---

    async def refresh_leaderboard(self, room: Room) -> None:
        """Push the top of the standings and the full draw history to the host only."""
        host_connection = room.host.connection
        if host_connection is None:
            return
        top = room.standings()[: self._settings.leaderboard_size]
        message = HostUpdateMessage(
            top_players=[LeaderboardEntry(client_id=p.client_id, name=p.name, to_go=to_go) for p, to_go in top],
            called_numbers=list(room.called_numbers),
        )
        with contextlib.suppress(RuntimeError, OSError, ConnectionError):
            await host_connection.send_message(message.model_dump())

    # --- Draws and votes ---

    async def _perform_draw(self, room: Room, preferred: Letter | None = None) -> int | None:
        """Draw, record and announce the next number. No-op if the game cannot continue."""
        if room.is_over or not room.available_numbers:
            return None

        number = draw_next(room.available_numbers, preferred, self._rng)
        if number is None:
            return None
        room.record_draw(number)
        room.touch()
        logger.info("number drawn", number=number, preferred=preferred, remaining=len(room.available_numbers))

        await self._broadcast(
            room,
            NumberDrawnMessage(
                number=number,
                letter=letter_for_number(number),
                history=list(room.called_numbers),
            ).model_dump(),
        )
        await self.refresh_leaderboard(room)
        return number

    async def _resolve_vote(self, room_code: str, epoch: int) -> None:
        """Vote deadline callback. The room or vote may have changed since scheduling."""
        room = self._registry.get_room(room_code)
        if room is None or not room.vote.active or room.vote.epoch != epoch:
            logger.info("stale vote timer ignored", room_code=room_code, vote_epoch=epoch)
            return

        total = room.vote.total_votes
        letter = room.vote.resolve()
        logger.info("vote resolved", room_code=room_code, letter=letter, total_votes=total)

        await self._broadcast(room, VoteEndedMessage(letter=letter).model_dump())
        await self._perform_draw(room, letter)

    # --- Reconnection ---

    async def _restore_player(self, connection: ConnectionProtocol, room: Room, player: Player) -> None:
        stale = self._attach(connection, room, player.client_id, is_host=False)
        room.touch()
        logger.info("player reconnected", player_name=player.name)

        await connection.send_message(self._joined_message(room, player, reconnected=True).model_dump())
        await self._close_stale(stale)

    async def _restore_host(self, connection: ConnectionProtocol, room: Room) -> None:
        stale = self._attach(connection, room, room.host.client_id, is_host=True)
        room.touch()
        logger.info("host reconnected")

        await connection.send_message(
            HostReconnectedMessage(
                room_code=room.room_code,
                started=room.started,
                called_numbers=list(room.called_numbers),
                player_count=room.player_count,
                chat_history=room.chat.entries,
                winner_name=room.winner_name,
                vote=self._vote_snapshot(room),
            ).model_dump(),
        )
        await self.refresh_leaderboard(room)
        await self._close_stale(stale)

    def _attach(
        self,
        connection: ConnectionProtocol,
        room: Room,
        client_id: str,
        *,
        is_host: bool,
    ) -> ConnectionProtocol | None:
        """Bind a connection to a seat. Returns the connection it displaced, if any.

        Only the seat's connection handle changes; the player record is untouched.
        """
        self._detach(connection)
        seat = room.host if is_host else room.players[client_id]
        stale = seat.connection
        if stale is not None and stale.connection_id != connection.connection_id:
            self._bindings.pop(stale.connection_id, None)
        else:
            stale = None
        seat.connection = connection
        self._bindings[connection.connection_id] = ConnectionBinding(
            room_code=room.room_code,
            client_id=client_id,
            is_host=is_host,
        )
        return stale

    def _detach(self, connection: ConnectionProtocol) -> None:
        """Clear whatever seat this connection was speaking for. The seat itself is kept."""
        binding = self._bindings.pop(connection.connection_id, None)
        if binding is None:
            return
        room = self._registry.get_room(binding.room_code)
        if room is None:
            return
        seat = room.host if binding.is_host else room.players.get(binding.client_id)
        if seat is not None and seat.connection_id == connection.connection_id:
            seat.connection = None
            logger.info("seat disconnected", room_code=room.room_code, client_id=binding.client_id)

    @staticmethod
    async def _close_stale(stale: ConnectionProtocol | None) -> None:
        if stale is not None:
            with contextlib.suppress(RuntimeError, OSError, ConnectionError):
                await stale.close(code=1000, reason="replaced_by_reconnect")

    # --- Expiry ---

    async def _handle_room_expired(self, room: Room) -> None:
        self._vote_timers.cancel(room.room_code)
        connections = room.connections()
        for conn in connections:
            self._bindings.pop(conn.connection_id, None)
        await broadcast_to_connections(
            connections,
            ErrorMessage(code=SessionErrorCode.ROOM_EXPIRED, message="Room closed after inactivity").model_dump(),
        )

    # --- Helpers ---

    def _get_room(self, room_code: str) -> Room:
        room = self._registry.get_room(room_code)
        if room is None:
            raise NotFoundError("Room does not exist.")
        return room

    @staticmethod
    def _require_host(room: Room, connection: ConnectionProtocol) -> None:
        if not room.is_host_connection(connection):
            raise UnauthorizedError("Only the host can do that")

    @staticmethod
    def _require_player(room: Room, client_id: str, connection: ConnectionProtocol) -> Player:
        """Resolve the acting player; the connection must be the one bound to that client id."""
        player = room.players.get(client_id)
        if player is None or player.connection_id != connection.connection_id:
            raise NotFoundError("You are not in this room")
        return player

    @staticmethod
    def _require_drawable(room: Room) -> None:
        if room.is_over:
            raise InvalidStateError("Game is over")
        if not room.available_numbers:
            raise InvalidStateError("All numbers have been drawn")

    def _vote_snapshot(self, room: Room, client_id: str | None = None) -> VoteSnapshot | None:
        vote = room.vote
        if not vote.active or vote.deadline is None:
            return None
        return VoteSnapshot(
            deadline=vote.deadline,
            counts=vote.counts(),
            has_voted=client_id is not None and vote.has_voted(client_id),
        )

    def _joined_message(self, room: Room, player: Player, *, reconnected: bool) -> JoinedMessage:
        tail = self._settings.recent_numbers_on_join
        return JoinedMessage(
            room_code=room.room_code,
            name=player.name,
            card=player.card.to_grid(),
            marked_numbers=sorted(player.marked_numbers),
            chat_history=room.chat.entries,
            recent_numbers=room.called_numbers[-tail:] if tail else [],
            started=room.started,
            winner_name=room.winner_name,
            vote=self._vote_snapshot(room, player.client_id),
            reconnected=reconnected,
        )

    async def _broadcast(self, room: Room, message: dict[str, Any]) -> None:
        await broadcast_to_connections(room.connections(), message)
