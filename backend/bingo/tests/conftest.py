import random

import pytest

from bingo.logic.settings import GameSettings
from bingo.messaging.router import MessageRouter
from bingo.server.app import create_app
from bingo.server.settings import BingoServerSettings
from bingo.session.manager import SessionManager
from bingo.tests.helpers import TEST_HOST_PASSWORD
from bingo.tests.mocks import MockConnection


@pytest.fixture
def game_settings():
    return GameSettings(vote_duration_seconds=0.05, disallowed_terms=("darn", "heck"))


@pytest.fixture
def session_manager(game_settings):
    return SessionManager(
        host_password=TEST_HOST_PASSWORD,
        settings=game_settings,
        rng=random.Random(1234),
    )


@pytest.fixture
def message_router(session_manager):
    return MessageRouter(session_manager)


@pytest.fixture
def mock_connection():
    return MockConnection()


@pytest.fixture
def server_settings():
    return BingoServerSettings(host_password=TEST_HOST_PASSWORD, room_ttl_seconds=0)


@pytest.fixture
def app(server_settings, session_manager, message_router):
    return create_app(
        settings=server_settings,
        session_manager=session_manager,
        message_router=message_router,
    )
