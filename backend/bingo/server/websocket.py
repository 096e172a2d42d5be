"""Starlette WebSocket transport for the bingo session engine."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect

from bingo.messaging.encoder import DecodeError, decode
from bingo.messaging.protocol import ConnectionProtocol
from bingo.messaging.types import ErrorMessage, SessionErrorCode
from bingo.server.rate_limit import TokenBucket

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from bingo.messaging.router import MessageRouter

logger = structlog.get_logger()

# Consecutive undecodable frames tolerated before the socket is closed
_MAX_DECODE_ERRORS = 5
_CLOSE_TOO_MANY_DECODE_ERRORS = 4004

# Decoded frames per second a single socket may sustain, and its burst allowance
_RATE_LIMIT_RATE = 20.0
_RATE_LIMIT_BURST = 40


class WebSocketConnection(ConnectionProtocol):
    """ConnectionProtocol over a Starlette WebSocket. A fresh id per socket."""

    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self._websocket = websocket
        self._connection_id = connection_id or uuid4().hex

    @property
    def connection_id(self) -> str:
        return self._connection_id

    async def send_bytes(self, data: bytes) -> None:
        try:
            await self._websocket.send_bytes(data)
        except WebSocketDisconnect as e:
            raise ConnectionError(f"socket closed ({e.code})") from None

    async def receive_bytes(self) -> bytes:
        try:
            return await self._websocket.receive_bytes()
        except WebSocketDisconnect as e:
            raise ConnectionError(f"socket closed ({e.code})") from None

    async def close(self, code: int = 1000, reason: str = "") -> None:
        with contextlib.suppress(WebSocketDisconnect, RuntimeError):
            await self._websocket.close(code=code, reason=reason)


async def _decoded_frames(connection: WebSocketConnection) -> AsyncIterator[dict[str, Any]]:
    """Yield decoded frames until the peer leaves or sends too much garbage.

    Each undecodable frame is answered with an invalid_message error; a good
    frame resets the strike count. Good frames beyond the socket's token
    bucket are answered with rate_limited and dropped. Garbage is decoded
    before the bucket is checked so that it always counts as a strike.
    """
    bucket = TokenBucket(rate=_RATE_LIMIT_RATE, burst=_RATE_LIMIT_BURST)
    strikes = 0
    while True:
        raw = await connection.receive_bytes()
        try:
            frame = decode(raw)
        except DecodeError as e:
            strikes += 1
            logger.warning("undecodable frame", error=str(e), strikes=strikes)
            await connection.send_message(
                ErrorMessage(code=SessionErrorCode.INVALID_MESSAGE, message=str(e)).model_dump(),
            )
            if strikes >= _MAX_DECODE_ERRORS:
                logger.info("closing socket after repeated undecodable frames")
                await connection.close(code=_CLOSE_TOO_MANY_DECODE_ERRORS, reason="too_many_decode_errors")
                return
            continue
        strikes = 0
        if not bucket.consume():
            logger.warning("frame rate limited", frame_type=frame.get("type"))
            await connection.send_message(
                ErrorMessage(
                    code=SessionErrorCode.RATE_LIMITED,
                    message="Too many messages, slow down",
                ).model_dump(),
            )
            continue
        yield frame


async def websocket_endpoint(websocket: WebSocket, router: MessageRouter) -> None:
    await websocket.accept()
    connection = WebSocketConnection(websocket)
    structlog.contextvars.bind_contextvars(connection_id=connection.connection_id)
    logger.info("socket opened")
    await router.handle_connect(connection)

    try:
        async for frame in _decoded_frames(connection):
            await router.handle_message(connection, frame)
    except (WebSocketDisconnect, RuntimeError, ConnectionError):  # fmt: skip
        pass
    finally:
        logger.info("socket closed")
        await router.handle_disconnect(connection)
        structlog.contextvars.clear_contextvars()
