"""Bingo server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bingo.logic.settings import GameSettings
from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class BingoServerSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BINGO_")

    # Shared secret that gates room creation
    host_password: str = Field(min_length=1)

    max_rooms: int = Field(default=500, ge=1)
    room_ttl_seconds: int = Field(default=7200, ge=0)  # idle time before eviction, 0 disables
    log_dir: str | None = None
    cors_origins: list[str] = ["http://localhost:3000"]

    vote_duration_seconds: float = Field(default=20, ge=5, le=120)
    chat_cooldown_seconds: float = Field(default=10, ge=0)
    chat_max_length: int = Field(default=200, ge=1, le=1000)
    disallowed_terms: list[str] = []

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v)

    @field_validator("disallowed_terms", mode="before")
    @classmethod
    def validate_disallowed_terms(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v, allow_empty=True)

    @field_validator("room_ttl_seconds")
    @classmethod
    def validate_room_ttl(cls, v: int) -> int:
        if 0 < v < 60:  # noqa: PLR2004
            raise ValueError("room_ttl_seconds must be 0 (disabled) or at least 60")
        return v

    def game_settings(self) -> GameSettings:
        """Build the per-room gameplay settings from server configuration."""
        return GameSettings(
            vote_duration_seconds=self.vote_duration_seconds,
            chat_cooldown_seconds=self.chat_cooldown_seconds,
            chat_max_length=self.chat_max_length,
            disallowed_terms=tuple(self.disallowed_terms),
        )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
