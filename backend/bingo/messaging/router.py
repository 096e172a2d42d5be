from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from bingo.logic.exceptions import (
    BannedError,
    BingoError,
    InvalidClaimError,
    InvalidStateError,
    NotFoundError,
    RateLimitedError,
    UnauthorizedError,
)
from bingo.messaging.types import (
    BanPlayerMessage,
    BannedMessage,
    ClaimBingoMessage,
    CreateRoomMessage,
    DrawNumberMessage,
    ErrorMessage,
    JoinRoomMessage,
    MarkNumberMessage,
    PingMessage,
    ReconnectMessage,
    SendChatMessage,
    SessionErrorCode,
    StartGameMessage,
    StartVoteMessage,
    SubmitVoteMessage,
    parse_client_message,
)

if TYPE_CHECKING:
    from bingo.messaging.protocol import ConnectionProtocol
    from bingo.messaging.types import ClientMessage
    from bingo.session.manager import SessionManager

logger = structlog.get_logger()

_ERROR_CODES: dict[type[BingoError], SessionErrorCode] = {
    UnauthorizedError: SessionErrorCode.UNAUTHORIZED,
    NotFoundError: SessionErrorCode.NOT_FOUND,
    InvalidStateError: SessionErrorCode.INVALID_STATE,
    RateLimitedError: SessionErrorCode.RATE_LIMITED,
    InvalidClaimError: SessionErrorCode.INVALID_CLAIM,
}


def error_code_for(error: BingoError) -> SessionErrorCode:
    for error_type, code in _ERROR_CODES.items():
        if isinstance(error, error_type):
            return code
    return SessionErrorCode.INVALID_STATE


class MessageRouter:
    """
    Routes incoming messages to SessionManager operations.

    Rejections raised by the session layer are answered here, to the
    requesting connection only. This class contains no transport code and
    can be tested with mock connections.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self._session_manager = session_manager

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            # field paths only, never input values
            fields = []
            if isinstance(e, ValidationError):
                fields = sorted({".".join(map(str, err["loc"])) for err in e.errors()})
            logger.warning("invalid message", fields=fields, error_type=type(e).__name__)
            await connection.send_message(
                ErrorMessage(code=SessionErrorCode.INVALID_MESSAGE, message=str(e)).model_dump(),
            )
            return

        room_code = getattr(message, "room_code", None)
        log_context = {"room_code": room_code, "client_id": getattr(message, "client_id", None)}
        # scoped to this message; the socket's connection_id binding outlives it
        with structlog.contextvars.bound_contextvars(**{k: v for k, v in log_context.items() if v is not None}):
            try:
                await self._dispatch(connection, message)
            except BannedError:
                logger.warning("banned client rejected", connection_id=connection.connection_id)
                await connection.send_message(BannedMessage(room_code=room_code or "").model_dump())
            except BingoError as e:
                code = error_code_for(e)
                logger.warning("request rejected", message_type=message.type, error_code=code, reason=str(e))
                await connection.send_message(ErrorMessage(code=code, message=str(e)).model_dump())
            except Exception:
                logger.exception("unexpected error handling message", message_type=message.type)
                await connection.send_message(
                    ErrorMessage(code=SessionErrorCode.INTERNAL_ERROR, message="Something went wrong").model_dump(),
                )

    async def _dispatch(self, connection: ConnectionProtocol, message: ClientMessage) -> None:
        manager = self._session_manager
        if isinstance(message, CreateRoomMessage):
            await manager.create_room(connection, message.password, message.client_id)
        elif isinstance(message, JoinRoomMessage):
            await manager.join_room(connection, message.room_code, message.client_id, message.name)
        elif isinstance(message, ReconnectMessage):
            await manager.reconnect(connection, message.room_code, message.client_id)
        elif isinstance(message, StartGameMessage):
            await manager.start_game(connection, message.room_code)
        elif isinstance(message, DrawNumberMessage):
            await manager.draw_number(connection, message.room_code)
        elif isinstance(message, StartVoteMessage):
            await manager.start_vote(connection, message.room_code)
        elif isinstance(message, SubmitVoteMessage):
            await manager.submit_vote(connection, message.room_code, message.client_id, message.letter)
        elif isinstance(message, MarkNumberMessage):
            await manager.mark_number(
                connection,
                message.room_code,
                message.client_id,
                message.number,
                is_marking=message.is_marking,
            )
        elif isinstance(message, ClaimBingoMessage):
            await manager.claim_bingo(connection, message.room_code, message.client_id)
        elif isinstance(message, SendChatMessage):
            await manager.send_chat(connection, message.room_code, message.client_id, message.text)
        elif isinstance(message, BanPlayerMessage):
            await manager.ban_player(connection, message.room_code, message.client_id, message.target_client_id)
        elif isinstance(message, PingMessage):
            await manager.handle_ping(connection)

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        self._session_manager.register_connection(connection)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        self._session_manager.unregister_connection(connection)
