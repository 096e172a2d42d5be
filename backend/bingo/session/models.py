from dataclasses import dataclass


@dataclass(frozen=True)
class ConnectionBinding:
    """What a live connection currently speaks for.

    A connection is bound to at most one seat (the host or one player) in one
    room. Bindings are dropped on disconnect, on ban, and when a reconnect from
    another connection takes the seat over.
    """

    room_code: str
    client_id: str
    is_host: bool = False
