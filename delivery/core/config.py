from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    # App
    APP_NAME: str = Field(default="delivery-service")
    LOG_LEVEL: str = Field(default="INFO")
    SQLITE_PATH: str = Field(default="./data/delivery.sqlite3")

    # Notifications
    MAILBOX_CAPACITY: int = Field(default=10, ge=1)
    SSE_KEEPALIVE_SECONDS: float | None = Field(default=None)  # None disables
    SSE_DISCONNECT_POLL_SECONDS: float | None = Field(default=1.0)

    # Auth & Rate limiting
    API_KEY: str | None = Field(default=None)
    RATE_LIMIT_PER_MINUTE: int = Field(default=120)
    RATE_LIMIT_WINDOW_SECONDS: int = Field(default=60)
    RATE_LIMIT_PATHS: list[str] = Field(default_factory=lambda: ["/sse/broadcast"])

    # CORS
    CORS_ALLOW_ORIGINS: list[str] = Field(default_factory=lambda: ["*"])


settings = Settings()
