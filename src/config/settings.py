"""Application settings loaded from the environment.

Uses pydantic-settings; every credential comes from the environment or a
local ``.env`` file that is never committed. Missing required values raise
``ValidationError`` at startup, before the webhook accepts any delivery.
"""

from functools import lru_cache
from typing import Dict, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ChatIdentity(BaseModel):
    """Ledger identity bound to an allowed Telegram chat."""

    user_id: str  # app.current_user_id used for row-level security
    ledger_id: str  # default ledger for this chat


class Settings(BaseSettings):
    """Bot configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Telegram
    telegram_bot_token: SecretStr = Field(..., description="Token from @BotFather")
    webhook_secret: SecretStr = Field(
        ..., description="secret_token registered with setWebhook"
    )
    webhook_path: str = "/telegram/webhook"

    # Completion service (any OpenAI-compatible endpoint)
    llm_api_key: SecretStr = Field(..., description="Completion service API key")
    llm_base_url: Optional[str] = None
    llm_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = Field(default=20.0, gt=0, le=120)
    llm_max_tokens: int = Field(default=384, ge=64, le=4096)

    # Ledger engine
    database_url: str = Field(..., description="PostgreSQL DSN of the ledger")
    ledger_timeout_seconds: float = Field(default=5.0, gt=0, le=60)

    # Conversation state
    state_db_path: str = "data/bot_state.db"

    # Identity and accounts
    users: Dict[int, ChatIdentity] = Field(
        ..., description="chat_id -> {user_id, ledger_id}; also the allow-list"
    )
    accounts: Dict[str, str] = Field(
        default_factory=dict, description="keyword -> account id"
    )
    default_account_id: Optional[str] = None

    locale: str = "pt-BR"
    timezone: str = "America/Sao_Paulo"

    log_level: str = "INFO"
    log_json: bool = True

    @field_validator("users")
    @classmethod
    def validate_users(cls, v: Dict[int, ChatIdentity]) -> Dict[int, ChatIdentity]:
        """An empty allow-list would silently drop every message."""
        if not v:
            raise ValueError("USERS must map at least one chat id")
        return v

    @field_validator("webhook_path")
    @classmethod
    def validate_webhook_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("WEBHOOK_PATH must start with '/'")
        return v

    @property
    def telegram_bot_token_str(self) -> str:
        return self.telegram_bot_token.get_secret_value()

    @property
    def webhook_secret_str(self) -> str:
        return self.webhook_secret.get_secret_value()

    @property
    def llm_api_key_str(self) -> str:
        return self.llm_api_key.get_secret_value()


@lru_cache()
def get_settings() -> Settings:
    """Load settings once per process.

    Call ``get_settings.cache_clear()`` to reload.
    """
    return Settings()
