"""
Application Configuration
"""
from pydantic_settings import BaseSettings
from pydantic import field_validator, model_validator
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    APP_NAME: str = "Sale Broker Bot"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/bot.db"

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def convert_database_url(cls, v: str) -> str:
        """Convert postgres:// or postgresql:// to postgresql+asyncpg:// for async support"""
        if v:
            if v.startswith("postgres://"):
                return v.replace("postgres://", "postgresql+asyncpg://", 1)
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    # Telegram
    TELEGRAM_BOT_TOKEN: Optional[str] = None
    # The single administrator allowed to approve/reject and broadcast
    TELEGRAM_ADMIN_CHAT_ID: Optional[int] = None
    TELEGRAM_WEBHOOK_SECRET_TOKEN: str = ""  # openssl rand -hex 32
    TELEGRAM_API_BASE_URL: str = "https://api.telegram.org"
    TELEGRAM_TIMEOUT_SECONDS: float = 30.0

    @field_validator("TELEGRAM_API_BASE_URL", mode="before")
    @classmethod
    def normalize_api_base_url(cls, v: str) -> str:
        return v.rstrip("/") if v else v

    # Post-approval reconciliation
    CONFIRMATION_TOKEN: str = "CONFIRM"

    # Broadcast pacing between consecutive sends
    BROADCAST_DELAY_SECONDS: float = 0.2

    @field_validator("BROADCAST_DELAY_SECONDS", mode="after")
    @classmethod
    def validate_broadcast_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("BROADCAST_DELAY_SECONDS must not be negative")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Cross-field checks.

        1. TELEGRAM_ADMIN_CHAT_ID missing outside DEBUG stops startup: nobody
           could ever approve a transaction.
        2. TELEGRAM_BOT_TOKEN missing only warns (outbound sends are skipped).
        3. TELEGRAM_WEBHOOK_SECRET_TOKEN empty warns (webhook is unauthenticated).
        """
        import warnings

        if self.TELEGRAM_ADMIN_CHAT_ID is None and not self.DEBUG:
            raise ValueError(
                "TELEGRAM_ADMIN_CHAT_ID is not set (DEBUG=False). "
                "Set it to the Telegram user id of the administrator."
            )

        if not self.TELEGRAM_BOT_TOKEN:
            warnings.warn(
                "TELEGRAM_BOT_TOKEN is empty - outbound Telegram messages will be skipped.",
                stacklevel=2,
            )
        elif not self.TELEGRAM_WEBHOOK_SECRET_TOKEN:
            warnings.warn(
                "TELEGRAM_WEBHOOK_SECRET_TOKEN is empty - the Telegram webhook is not authenticated. "
                "Set: export TELEGRAM_WEBHOOK_SECRET_TOKEN=$(openssl rand -hex 32) "
                "and pass the same secret_token to setWebhook.",
                stacklevel=2,
            )

        return self

    def is_admin(self, user_id: int | str | None) -> bool:
        """True when user_id is the configured administrator"""
        if user_id is None or self.TELEGRAM_ADMIN_CHAT_ID is None:
            return False
        try:
            return int(user_id) == self.TELEGRAM_ADMIN_CHAT_ID
        except (TypeError, ValueError):
            return False

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
