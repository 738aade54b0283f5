from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError

class Settings(BaseSettings):
    # Audiobookshelf
    ABS_BASE_URL: str = "http://localhost:13378"
    ABS_TOKEN: str = ""
    SESSIONS_PAGE_SIZE: int = 10
    COVER_PROVIDER: str = "audible"

    # Discord
    DISCORD_CLIENT_ID: str = ""
    SHOW_TIMESTAMPS: bool = False

    # Polling
    POLL_INTERVAL_SECONDS: int = 15

    # System
    LOG_LEVEL: str = "INFO"
    DRY_RUN: bool = False
    HTTP_SERVER_ENABLED: bool = False
    HTTP_SERVER_PORT: int = 8080
    HTTP_SERVER_TOKEN: Optional[str] = None
    REQUEST_TIMEOUT_SECONDS: int = 10

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    def validate_required(self):
        missing = [key for key in ("ABS_BASE_URL", "ABS_TOKEN", "DISCORD_CLIENT_ID") if not getattr(self, key)]
        if missing:
            raise ConfigError(
                f"Missing required settings: {', '.join(missing)}",
                details={"missing": missing}
            )

settings = Settings()
