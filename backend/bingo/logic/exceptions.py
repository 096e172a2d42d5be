"""Typed domain exceptions for rejected room actions.

Every rejection in the session engine is a subclass of BingoError. They are
raised before any room state is touched and converted into a message for the
requesting connection by MessageRouter, so a rejection never reaches other
participants and never leaves a room half-mutated.
"""


class BingoError(Exception):
    """Base exception for an action the room refuses to perform."""


class UnauthorizedError(BingoError):
    """Bad room-creation password, or a non-host invoking a host-only action."""


class NotFoundError(BingoError):
    """Unknown room code, or a client id with no record in the room."""


class InvalidStateError(BingoError):
    """Action is not valid in the room's current state."""


class RateLimitedError(BingoError):
    """Chat sent before the sender's slow-mode cooldown elapsed."""

    def __init__(self, retry_after: float) -> None:
        self.retry_after = retry_after
        super().__init__(f"Slow mode is on. Wait {max(1, round(retry_after))}s before chatting again.")


class BannedError(BingoError):
    """A banned client tried to join or reconnect."""


class InvalidClaimError(BingoError):
    """Bingo claimed without a fully marked line."""
