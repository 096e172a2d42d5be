"""Transport-independent connection interface."""

from abc import ABC, abstractmethod
from typing import Any

from bingo.messaging.encoder import encode


class ConnectionProtocol(ABC):
    """A live client connection.

    The connection id is a volatile transport handle. It changes every time a
    client reconnects and is never used as player identity; rooms key players
    by the durable client id carried inside each message.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str: ...

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None: ...

    @abstractmethod
    async def receive_bytes(self) -> bytes: ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    async def send_message(self, data: dict[str, Any]) -> None:
        await self.send_bytes(encode(data))

