"""Fire-and-forget fan-out to a set of connections."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from bingo.messaging.protocol import ConnectionProtocol


async def broadcast_to_connections(
    connections: Iterable[ConnectionProtocol],
    message: dict[str, Any],
) -> None:
    """Send a message to every connection.

    The iterable is snapshotted first so a disconnect handled while we yield
    on a send cannot mutate it underneath us. A failing recipient is skipped.
    """
    for connection in list(connections):
        with contextlib.suppress(RuntimeError, OSError, ConnectionError):
            await connection.send_message(message)
