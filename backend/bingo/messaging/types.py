from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from bingo.logic.chat import ChatEntry
from bingo.logic.enums import Letter
from bingo.logic.settings import FREE_SPACE, MIN_NUMBER

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F

_ROOM_CODE_FIELD = Field(min_length=1, max_length=12, pattern=r"^[A-Za-z0-9]+$")
_CLIENT_ID_FIELD = Field(min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_-]+$")


class ClientMessageType(StrEnum):
    CREATE_ROOM = "create_room"
    START_GAME = "start_game"
    DRAW_NUMBER = "draw_number"
    START_VOTE = "start_vote"
    SUBMIT_VOTE = "submit_vote"
    JOIN_ROOM = "join_room"
    RECONNECT = "reconnect"
    MARK_NUMBER = "mark_number"
    CLAIM_BINGO = "claim_bingo"
    SEND_CHAT = "send_chat"
    BAN_PLAYER = "ban_player"
    PING = "ping"


class SessionMessageType(StrEnum):
    ROOM_CREATED = "room_created"
    ERROR = "session_error"
    BANNED = "banned"
    GAME_STARTED = "game_started"
    NUMBER_DRAWN = "number_drawn"
    PLAYER_COUNT = "player_count"
    JOINED = "joined"
    HOST_UPDATE = "host_update"
    HOST_RECONNECTED = "host_reconnected"
    GAME_OVER = "game_over"
    VOTE_STARTED = "vote_started"
    VOTE_TALLY = "vote_tally"
    VOTE_ENDED = "vote_ended"
    CHAT = "chat"
    CHAT_HISTORY = "chat_history"
    PONG = "pong"


class SessionErrorCode(StrEnum):
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    RATE_LIMITED = "rate_limited"
    INVALID_CLAIM = "invalid_claim"
    INVALID_MESSAGE = "invalid_message"
    ROOM_EXPIRED = "room_expired"
    INTERNAL_ERROR = "internal_error"


class _RoomScopedMessage(BaseModel):
    room_code: str = _ROOM_CODE_FIELD

    @field_validator("room_code")
    @classmethod
    def _normalize_room_code(cls, v: str) -> str:
        return v.upper()


# --- Client -> server ---


class CreateRoomMessage(BaseModel):
    type: Literal[ClientMessageType.CREATE_ROOM] = ClientMessageType.CREATE_ROOM
    password: str = Field(max_length=200)
    client_id: str = _CLIENT_ID_FIELD


class StartGameMessage(_RoomScopedMessage):
    type: Literal[ClientMessageType.START_GAME] = ClientMessageType.START_GAME


class DrawNumberMessage(_RoomScopedMessage):
    type: Literal[ClientMessageType.DRAW_NUMBER] = ClientMessageType.DRAW_NUMBER


class StartVoteMessage(_RoomScopedMessage):
    type: Literal[ClientMessageType.START_VOTE] = ClientMessageType.START_VOTE


class SubmitVoteMessage(_RoomScopedMessage):
    type: Literal[ClientMessageType.SUBMIT_VOTE] = ClientMessageType.SUBMIT_VOTE
    client_id: str = _CLIENT_ID_FIELD
    letter: Letter


class JoinRoomMessage(_RoomScopedMessage):
    type: Literal[ClientMessageType.JOIN_ROOM] = ClientMessageType.JOIN_ROOM
    client_id: str = _CLIENT_ID_FIELD
    name: str = Field(default="", max_length=30)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        if any(ord(c) < _SPACE_ORD or ord(c) == _DEL_ORD for c in v):
            raise ValueError("name must not contain control characters")
        return v.strip()


class ReconnectMessage(_RoomScopedMessage):
    type: Literal[ClientMessageType.RECONNECT] = ClientMessageType.RECONNECT
    client_id: str = _CLIENT_ID_FIELD


class MarkNumberMessage(_RoomScopedMessage):
    type: Literal[ClientMessageType.MARK_NUMBER] = ClientMessageType.MARK_NUMBER
    client_id: str = _CLIENT_ID_FIELD
    number: int = Field(ge=MIN_NUMBER, le=FREE_SPACE)
    is_marking: bool = True


class ClaimBingoMessage(_RoomScopedMessage):
    type: Literal[ClientMessageType.CLAIM_BINGO] = ClientMessageType.CLAIM_BINGO
    client_id: str = _CLIENT_ID_FIELD


class SendChatMessage(_RoomScopedMessage):
    type: Literal[ClientMessageType.SEND_CHAT] = ClientMessageType.SEND_CHAT
    client_id: str = _CLIENT_ID_FIELD
    text: str = Field(min_length=1, max_length=1000)

    @field_validator("text")
    @classmethod
    def _validate_text(cls, v: str) -> str:
        if any((ord(c) < _SPACE_ORD and c not in ("\t", "\n", "\r")) or ord(c) == _DEL_ORD for c in v):
            raise ValueError("text must not contain control characters")
        if not v.strip():
            raise ValueError("text must not be blank")
        return v


class BanPlayerMessage(_RoomScopedMessage):
    type: Literal[ClientMessageType.BAN_PLAYER] = ClientMessageType.BAN_PLAYER
    client_id: str = _CLIENT_ID_FIELD
    target_client_id: str = _CLIENT_ID_FIELD


class PingMessage(BaseModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


ClientMessage = Annotated[
    CreateRoomMessage
    | StartGameMessage
    | DrawNumberMessage
    | StartVoteMessage
    | SubmitVoteMessage
    | JoinRoomMessage
    | ReconnectMessage
    | MarkNumberMessage
    | ClaimBingoMessage
    | SendChatMessage
    | BanPlayerMessage
    | PingMessage,
    Field(discriminator="type"),
]

_client_message_adapter = TypeAdapter(ClientMessage)


def parse_client_message(data: dict[str, Any]) -> ClientMessage:
    """Parse a raw decoded frame into a typed client message."""
    return _client_message_adapter.validate_python(data)


# --- Server -> client ---


class LeaderboardEntry(BaseModel):
    client_id: str
    name: str
    to_go: int


class VoteSnapshot(BaseModel):
    """Active vote state replayed to a (re)joining participant."""

    deadline: float
    counts: dict[str, int]
    has_voted: bool = False


class RoomCreatedMessage(BaseModel):
    type: Literal[SessionMessageType.ROOM_CREATED] = SessionMessageType.ROOM_CREATED
    room_code: str


class ErrorMessage(BaseModel):
    type: Literal[SessionMessageType.ERROR] = SessionMessageType.ERROR
    code: SessionErrorCode
    message: str


class BannedMessage(BaseModel):
    type: Literal[SessionMessageType.BANNED] = SessionMessageType.BANNED
    room_code: str


class GameStartedMessage(BaseModel):
    type: Literal[SessionMessageType.GAME_STARTED] = SessionMessageType.GAME_STARTED


class NumberDrawnMessage(BaseModel):
    type: Literal[SessionMessageType.NUMBER_DRAWN] = SessionMessageType.NUMBER_DRAWN
    number: int
    letter: Letter
    history: list[int]


class PlayerCountMessage(BaseModel):
    type: Literal[SessionMessageType.PLAYER_COUNT] = SessionMessageType.PLAYER_COUNT
    count: int


class JoinedMessage(BaseModel):
    """Sent on first join and replayed verbatim on every reconnect."""

    type: Literal[SessionMessageType.JOINED] = SessionMessageType.JOINED
    room_code: str
    name: str
    card: list[list[int]]
    marked_numbers: list[int]
    chat_history: list[ChatEntry]
    recent_numbers: list[int]
    started: bool
    winner_name: str | None = None
    vote: VoteSnapshot | None = None
    reconnected: bool = False


class HostUpdateMessage(BaseModel):
    type: Literal[SessionMessageType.HOST_UPDATE] = SessionMessageType.HOST_UPDATE
    top_players: list[LeaderboardEntry]
    called_numbers: list[int]


class HostReconnectedMessage(BaseModel):
    type: Literal[SessionMessageType.HOST_RECONNECTED] = SessionMessageType.HOST_RECONNECTED
    room_code: str
    started: bool
    called_numbers: list[int]
    player_count: int
    chat_history: list[ChatEntry]
    winner_name: str | None = None
    vote: VoteSnapshot | None = None


class GameOverMessage(BaseModel):
    type: Literal[SessionMessageType.GAME_OVER] = SessionMessageType.GAME_OVER
    winner_name: str


class VoteStartedMessage(BaseModel):
    type: Literal[SessionMessageType.VOTE_STARTED] = SessionMessageType.VOTE_STARTED
    deadline: float
    duration_seconds: float


class VoteTallyMessage(BaseModel):
    type: Literal[SessionMessageType.VOTE_TALLY] = SessionMessageType.VOTE_TALLY
    counts: dict[str, int]


class VoteEndedMessage(BaseModel):
    type: Literal[SessionMessageType.VOTE_ENDED] = SessionMessageType.VOTE_ENDED
    letter: Letter | None


class ChatBroadcastMessage(BaseModel):
    type: Literal[SessionMessageType.CHAT] = SessionMessageType.CHAT
    message: ChatEntry


class ChatHistoryMessage(BaseModel):
    type: Literal[SessionMessageType.CHAT_HISTORY] = SessionMessageType.CHAT_HISTORY
    messages: list[ChatEntry]


class PongMessage(BaseModel):
    type: Literal[SessionMessageType.PONG] = SessionMessageType.PONG
