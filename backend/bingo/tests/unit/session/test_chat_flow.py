import random

import pytest

from bingo.logic.exceptions import NotFoundError, RateLimitedError
from bingo.logic.settings import GameSettings
from bingo.messaging.types import SessionMessageType
from bingo.session.manager import SessionManager
from bingo.tests.helpers import HOST_CLIENT_ID, TEST_HOST_PASSWORD, create_room, join_player
from bingo.tests.mocks import MockConnection


@pytest.fixture
def unthrottled_manager():
    return SessionManager(
        host_password=TEST_HOST_PASSWORD,
        settings=GameSettings(chat_cooldown_seconds=0, chat_max_length=20),
        rng=random.Random(7),
    )


class TestSendChat:
    async def test_player_chat_broadcast(self, session_manager):
        room, host = await create_room(session_manager)
        alice = await join_player(session_manager, room, "p1", "Alice")
        bob = await join_player(session_manager, room, "p2", "Bob")

        await session_manager.send_chat(alice, room.room_code, "p1", "hi all")

        expected = {
            "type": "chat",
            "message": {"sender": "Alice", "text": "hi all", "is_host": False, "is_system": False},
        }
        for conn in (host, alice, bob):
            assert conn.messages_of_type(SessionMessageType.CHAT) == [expected]

    async def test_disallowed_terms_masked(self, session_manager):
        room, host = await create_room(session_manager)
        alice = await join_player(session_manager, room, "p1", "Alice")

        await session_manager.send_chat(alice, room.room_code, "p1", "Oh DARN, what the Heck")

        text = host.messages_of_type(SessionMessageType.CHAT)[0]["message"]["text"]
        assert text == "Oh ****, what the ****"
        assert room.chat.entries[0].text == text

    async def test_host_chat_labelled(self, session_manager):
        room, host = await create_room(session_manager)
        alice = await join_player(session_manager, room, "p1", "Alice")

        await session_manager.send_chat(host, room.room_code, HOST_CLIENT_ID, "welcome")

        message = alice.messages_of_type(SessionMessageType.CHAT)[0]["message"]
        assert message["sender"] == "Host"
        assert message["is_host"] is True

    async def test_player_cannot_pose_as_host(self, session_manager):
        room, _host = await create_room(session_manager)
        alice = await join_player(session_manager, room, "p1", "Alice")

        with pytest.raises(NotFoundError):
            await session_manager.send_chat(alice, room.room_code, HOST_CLIENT_ID, "I am the host")
        assert len(room.chat) == 0

    async def test_outsider_rejected(self, session_manager):
        room, _host = await create_room(session_manager)
        with pytest.raises(NotFoundError):
            await session_manager.send_chat(MockConnection(), room.room_code, "p9", "hello")


class TestSlowMode:
    async def test_second_message_inside_cooldown_rejected(self, session_manager):
        room, host = await create_room(session_manager)
        alice = await join_player(session_manager, room, "p1", "Alice")
        await session_manager.send_chat(alice, room.room_code, "p1", "one")

        with pytest.raises(RateLimitedError, match="Slow mode"):
            await session_manager.send_chat(alice, room.room_code, "p1", "two")

        assert [e.text for e in room.chat.entries] == ["one"]
        assert len(host.messages_of_type(SessionMessageType.CHAT)) == 1

    async def test_cooldown_is_per_sender(self, session_manager):
        room, host = await create_room(session_manager)
        alice = await join_player(session_manager, room, "p1", "Alice")
        bob = await join_player(session_manager, room, "p2", "Bob")

        await session_manager.send_chat(alice, room.room_code, "p1", "one")
        await session_manager.send_chat(bob, room.room_code, "p2", "two")
        await session_manager.send_chat(host, room.room_code, HOST_CLIENT_ID, "three")

        assert len(room.chat) == 3

    async def test_cooldown_elapsed(self, session_manager):
        room, _host = await create_room(session_manager)
        alice = await join_player(session_manager, room, "p1", "Alice")
        await session_manager.send_chat(alice, room.room_code, "p1", "one")
        room.players["p1"].last_chat_at -= 11

        await session_manager.send_chat(alice, room.room_code, "p1", "two")

        assert len(room.chat) == 2

    async def test_cooldown_survives_reconnect(self, session_manager):
        room, _host = await create_room(session_manager)
        alice = await join_player(session_manager, room, "p1", "Alice")
        await session_manager.send_chat(alice, room.room_code, "p1", "one")

        new = MockConnection()
        await session_manager.reconnect(new, room.room_code, "p1")

        with pytest.raises(RateLimitedError):
            await session_manager.send_chat(new, room.room_code, "p1", "two")


class TestChatLog:
    async def test_history_bounded_to_fifty(self, unthrottled_manager):
        room, _host = await create_room(unthrottled_manager)
        alice = await join_player(unthrottled_manager, room, "p1", "Alice")
        for i in range(60):
            await unthrottled_manager.send_chat(alice, room.room_code, "p1", f"msg {i}")

        assert len(room.chat) == 50
        assert room.chat.entries[0].text == "msg 10"

        late = MockConnection()
        await unthrottled_manager.reconnect(late, room.room_code, "p1")
        history = late.last_message()["chat_history"]
        assert len(history) == 50
        assert history[-1]["text"] == "msg 59"

    async def test_long_message_truncated(self, unthrottled_manager):
        room, _host = await create_room(unthrottled_manager)
        alice = await join_player(unthrottled_manager, room, "p1", "Alice")

        await unthrottled_manager.send_chat(alice, room.room_code, "p1", "x" * 50)

        assert room.chat.entries[0].text == "x" * 20
