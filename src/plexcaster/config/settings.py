"""Application settings loaded from environment variables and `.env`.

Hey future me - every settings group has its own env prefix so the .env file stays readable:
TELEGRAM_BOT_TOKEN, PLEX_URL, PLEX_TOKEN, STORAGE_MUSIC_PATH, LOG_LEVEL, ...
Settings are read ONCE at startup (get_settings is cached) and never mutated afterwards.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from plexcaster.domain.exceptions import ConfigurationError


class TelegramSettings(BaseSettings):
    """Telegram bot configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TELEGRAM_", env_file=".env", extra="ignore"
    )

    bot_token: str = ""
    # Broadcast destination for announcements (channel username or numeric id)
    channel_id: str = "@dark_corner_ru"
    # Empty list = everybody may talk to the bot
    admin_ids: Annotated[list[int], NoDecode] = Field(default_factory=list)
    # Seconds to wait for the remaining messages of a media group
    media_group_wait: float = 1.5

    @field_validator("admin_ids", mode="before")
    @classmethod
    def _split_admin_ids(cls, value: object) -> object:
        # TELEGRAM_ADMIN_IDS=1,2,3 is friendlier than a JSON list
        if isinstance(value, str):
            return [int(part) for part in value.split(",") if part.strip()]
        if isinstance(value, int):
            return [value]
        return value


class PlexSettings(BaseSettings):
    """Plex Media Server connection settings."""

    model_config = SettingsConfigDict(env_prefix="PLEX_", env_file=".env", extra="ignore")

    url: str = ""
    token: str = ""
    section_id: int = 1
    # Base of the Plex web app used for links in captions, e.g.
    # http://host:32400/web/index.html#!/server/<machine id>
    web_url: str = ""
    # Plex needs a moment after a refresh before new items show up in recentlyAdded
    refresh_settle_seconds: float = 5.0
    timeout: float = 30.0

    @field_validator("url", "web_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class StorageSettings(BaseSettings):
    """Filesystem layout of the music library."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_", env_file=".env", extra="ignore"
    )

    music_path: Path = Path("/srv/music")
    # Files without usable album/year tags land here for manual sorting.
    # Must NOT be inside music_path or Plex will index half-tagged junk.
    holding_path: Path = Path("/srv/music-inbox")
    seven_zip_binary: str = "7z"


class ObservabilitySettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_", env_file=".env", extra="ignore")

    level: str = "INFO"
    json_format: bool = False


class Settings(BaseSettings):
    """Root settings object handed to every component that needs configuration."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "plexcaster"
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    plex: PlexSettings = Field(default_factory=PlexSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    def validate_required(self) -> None:
        """Fail fast on missing credentials before the bot starts polling.

        Raises:
            ConfigurationError: If a required value is empty
        """
        missing = [
            name
            for name, value in (
                ("TELEGRAM_BOT_TOKEN", self.telegram.bot_token),
                ("PLEX_URL", self.plex.url),
                ("PLEX_TOKEN", self.plex.token),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
