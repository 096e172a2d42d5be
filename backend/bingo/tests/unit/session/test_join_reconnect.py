"""Joining, reconnecting and disconnecting players and the host."""

import pytest

from bingo.logic.enums import Letter
from bingo.logic.exceptions import BannedError, InvalidStateError, NotFoundError, UnauthorizedError
from bingo.logic.settings import FREE_SPACE
from bingo.messaging.types import SessionMessageType
from bingo.tests.helpers import HOST_CLIENT_ID, create_room, force_called, join_player
from bingo.tests.mocks import MockConnection


class TestJoinRoom:
    async def test_join_sends_card_and_state(self, session_manager):
        room, _host = await create_room(session_manager)
        conn = MockConnection()
        session_manager.register_connection(conn)

        player = await session_manager.join_room(conn, room.room_code, "p1", "Alice")

        joined = conn.messages_of_type(SessionMessageType.JOINED)[0]
        assert joined["room_code"] == room.room_code
        assert joined["name"] == "Alice"
        assert joined["card"] == player.card.to_grid()
        assert joined["card"][2][2] == FREE_SPACE
        assert joined["marked_numbers"] == [FREE_SPACE]
        assert joined["started"] is False
        assert joined["reconnected"] is False
        assert joined["vote"] is None

    async def test_join_notifies_room_and_host(self, session_manager):
        room, host = await create_room(session_manager)
        first = await join_player(session_manager, room, "p1")

        await join_player(session_manager, room, "p2")

        assert first.messages_of_type(SessionMessageType.PLAYER_COUNT)[-1]["count"] == 2
        assert host.messages_of_type(SessionMessageType.PLAYER_COUNT)[-1]["count"] == 2
        update = host.messages_of_type(SessionMessageType.HOST_UPDATE)[-1]
        assert [entry["client_id"] for entry in update["top_players"]] == ["p1", "p2"]
        assert first.messages_of_type(SessionMessageType.HOST_UPDATE) == []

    async def test_default_names_follow_join_order(self, session_manager):
        room, _host = await create_room(session_manager)
        await join_player(session_manager, room, "p1")
        await join_player(session_manager, room, "p2")
        assert [p.name for p in room.players.values()] == ["Player 1", "Player 2"]

    async def test_default_name_not_reused_after_ban(self, session_manager):
        room, host = await create_room(session_manager)
        await join_player(session_manager, room, "p1")
        await join_player(session_manager, room, "p2")
        await session_manager.ban_player(host, room.room_code, HOST_CLIENT_ID, "p1")

        await join_player(session_manager, room, "p3")

        assert [p.name for p in room.players.values()] == ["Player 2", "Player 3"]

    async def test_rejoin_does_not_advance_default_names(self, session_manager):
        room, _host = await create_room(session_manager)
        await join_player(session_manager, room, "p1")
        await join_player(session_manager, room, "p1")
        await join_player(session_manager, room, "p2")
        assert room.players["p2"].name == "Player 2"

    async def test_unknown_room(self, session_manager):
        with pytest.raises(NotFoundError):
            await session_manager.join_room(MockConnection(), "NOPE1", "p1")

    async def test_new_player_after_start_rejected(self, session_manager):
        room, host = await create_room(session_manager)
        await session_manager.start_game(host, room.room_code)

        with pytest.raises(InvalidStateError, match="Game already started"):
            await session_manager.join_room(MockConnection(), room.room_code, "late")
        assert "late" not in room.players

    async def test_banned_id_rejected_even_before_start(self, session_manager):
        room, _host = await create_room(session_manager)
        room.banned_client_ids.add("p1")
        with pytest.raises(BannedError):
            await session_manager.join_room(MockConnection(), room.room_code, "p1")

    async def test_host_cannot_join_as_player(self, session_manager):
        room, _host = await create_room(session_manager)
        with pytest.raises(InvalidStateError):
            await session_manager.join_room(MockConnection(), room.room_code, HOST_CLIENT_ID)


class TestPlayerReconnect:
    async def test_rejoin_with_same_id_restores_seat(self, session_manager):
        room, _host = await create_room(session_manager)
        old = await join_player(session_manager, room, "p1", "Alice")
        card = room.players["p1"].card
        new = MockConnection()
        session_manager.register_connection(new)

        await session_manager.join_room(new, room.room_code, "p1", "Someone Else")

        assert room.player_count == 1
        assert room.players["p1"].card is card
        assert room.players["p1"].name == "Alice"
        assert room.players["p1"].connection is new
        joined = new.messages_of_type(SessionMessageType.JOINED)[0]
        assert joined["reconnected"] is True
        assert old.is_closed
        assert old.close_reason == "replaced_by_reconnect"
        assert session_manager.get_binding(old.connection_id) is None

    async def test_rejoin_allowed_after_start(self, session_manager):
        room, host = await create_room(session_manager)
        await join_player(session_manager, room, "p1")
        await session_manager.start_game(host, room.room_code)

        new = MockConnection()
        await session_manager.join_room(new, room.room_code, "p1")

        assert new.messages_of_type(SessionMessageType.JOINED)[0]["started"] is True

    async def test_reconnect_replays_marks_and_recent_draws(self, session_manager):
        room, _host = await create_room(session_manager)
        await join_player(session_manager, room, "p1")
        card = room.players["p1"].card
        force_called(room, *sorted(card.column(0)))
        force_called(room, card.rows[0][1], card.rows[0][3])
        room.players["p1"].mark(card.rows[0][0], room.called_numbers)

        new = MockConnection()
        await session_manager.reconnect(new, room.room_code, "p1")

        joined = new.last_message()
        assert joined["type"] == SessionMessageType.JOINED
        assert joined["marked_numbers"] == sorted({FREE_SPACE, card.rows[0][0]})
        assert joined["recent_numbers"] == room.called_numbers[-5:]

    async def test_reconnect_is_idempotent(self, session_manager):
        room, host = await create_room(session_manager)
        await join_player(session_manager, room, "p1")
        await session_manager.send_chat(host, room.room_code, HOST_CLIENT_ID, "welcome")

        first = MockConnection()
        await session_manager.reconnect(first, room.room_code, "p1")
        second = MockConnection()
        await session_manager.reconnect(second, room.room_code, "p1")

        assert room.player_count == 1
        assert len(room.chat) == 1
        assert first.messages_of_type(SessionMessageType.JOINED) == second.messages_of_type(SessionMessageType.JOINED)
        assert first.is_closed
        assert room.players["p1"].connection is second

    async def test_reconnect_unknown_player(self, session_manager):
        room, _host = await create_room(session_manager)
        with pytest.raises(NotFoundError):
            await session_manager.reconnect(MockConnection(), room.room_code, "ghost")

    async def test_reconnect_banned(self, session_manager):
        room, host = await create_room(session_manager)
        await join_player(session_manager, room, "p1")
        await session_manager.ban_player(host, room.room_code, HOST_CLIENT_ID, "p1")
        with pytest.raises(BannedError):
            await session_manager.reconnect(MockConnection(), room.room_code, "p1")

    async def test_reconnect_replays_active_vote(self, session_manager):
        room, host = await create_room(session_manager)
        conn = await join_player(session_manager, room, "p1")
        await session_manager.start_vote(host, room.room_code)
        await session_manager.submit_vote(conn, room.room_code, "p1", Letter.N)

        new = MockConnection()
        await session_manager.reconnect(new, room.room_code, "p1")

        vote = new.last_message()["vote"]
        assert vote["has_voted"] is True
        assert vote["counts"]["N"] == 1
        assert vote["deadline"] == room.vote.deadline
        session_manager.cancel_all_vote_timers()


class TestDisconnect:
    async def test_disconnect_keeps_player_record(self, session_manager):
        room, _host = await create_room(session_manager)
        conn = await join_player(session_manager, room, "p1")

        session_manager.unregister_connection(conn)

        assert "p1" in room.players
        assert room.players["p1"].connection is None
        assert room.connections() == [room.host.connection]

    async def test_disconnected_connection_cannot_act(self, session_manager):
        room, _host = await create_room(session_manager)
        conn = await join_player(session_manager, room, "p1")
        session_manager.unregister_connection(conn)

        with pytest.raises(NotFoundError):
            await session_manager.claim_bingo(conn, room.room_code, "p1")

    async def test_other_connection_cannot_act_for_player(self, session_manager):
        room, _host = await create_room(session_manager)
        await join_player(session_manager, room, "p1")
        intruder = await join_player(session_manager, room, "p2")

        with pytest.raises(NotFoundError):
            await session_manager.mark_number(intruder, room.room_code, "p1", FREE_SPACE, is_marking=True)


class TestHostReconnect:
    async def test_host_reconnect_restores_control(self, session_manager):
        room, old_host = await create_room(session_manager)
        await join_player(session_manager, room, "p1")
        await session_manager.start_game(old_host, room.room_code)
        await session_manager.draw_number(old_host, room.room_code)

        new_host = MockConnection()
        session_manager.register_connection(new_host)
        await session_manager.reconnect(new_host, room.room_code, HOST_CLIENT_ID)

        restored = new_host.messages_of_type(SessionMessageType.HOST_RECONNECTED)[0]
        assert restored["room_code"] == room.room_code
        assert restored["started"] is True
        assert restored["called_numbers"] == room.called_numbers
        assert restored["player_count"] == 1
        update = new_host.messages_of_type(SessionMessageType.HOST_UPDATE)[0]
        assert update["called_numbers"] == room.called_numbers
        assert old_host.is_closed

        with pytest.raises(UnauthorizedError):
            await session_manager.draw_number(old_host, room.room_code)
        assert await session_manager.draw_number(new_host, room.room_code) is not None

    async def test_host_reconnect_after_disconnect(self, session_manager):
        room, host = await create_room(session_manager)
        session_manager.unregister_connection(host)
        assert room.host.connection is None

        new_host = MockConnection()
        await session_manager.reconnect(new_host, room.room_code, HOST_CLIENT_ID)

        assert room.host.connection is new_host
        binding = session_manager.get_binding(new_host.connection_id)
        assert binding is not None
        assert binding.is_host
