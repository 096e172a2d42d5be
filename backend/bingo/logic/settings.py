"""Gameplay constants and per-room tunables."""

from pydantic import BaseModel, ConfigDict, Field

from bingo.logic.enums import Letter

CARD_SIZE = 5
COLUMN_SPAN = 30
MIN_NUMBER = 1
MAX_NUMBER = CARD_SIZE * COLUMN_SPAN  # 150
FREE_SPACE = MAX_NUMBER + 1  # sentinel for the center cell, never drawn
CENTER_INDEX = CARD_SIZE // 2

# Inclusive numeric range per column letter: B 1-30, I 31-60, ... O 121-150
LETTER_RANGES: dict[Letter, tuple[int, int]] = {
    letter: (MIN_NUMBER + i * COLUMN_SPAN, (i + 1) * COLUMN_SPAN) for i, letter in enumerate(Letter)
}


class GameSettings(BaseModel):
    """Tunables shared by every room on a server."""

    model_config = ConfigDict(frozen=True)

    vote_duration_seconds: float = Field(default=20, gt=0)
    chat_cooldown_seconds: float = Field(default=10, ge=0)
    chat_max_length: int = Field(default=200, ge=1)
    chat_history_limit: int = Field(default=50, ge=1)
    leaderboard_size: int = Field(default=10, ge=1)
    recent_numbers_on_join: int = Field(default=5, ge=0)
    disallowed_terms: tuple[str, ...] = ()
    host_label: str = "Host"
