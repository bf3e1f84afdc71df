"""Test settings loading from the environment."""

import pytest
from pydantic import ValidationError

from src.config.settings import Settings

REQUIRED_ENV = {
    "TELEGRAM_BOT_TOKEN": "123:abc",
    "WEBHOOK_SECRET": "s3cret",
    "LLM_API_KEY": "sk-test",
    "DATABASE_URL": "postgresql://localhost/budget",
    "USERS": '{"1001": {"user_id": "alice", "ledger_id": "ledger-1"}}',
}


@pytest.fixture
def env(monkeypatch):
    for key, value in REQUIRED_ENV.items():
        monkeypatch.setenv(key, value)
    return monkeypatch


class TestSettings:
    def test_loads_from_environment(self, env) -> None:
        """Test that settings are read from environment variables with defaults."""
        env.setenv("ACCOUNTS", '{"nubank": "acc-nubank"}')

        settings = Settings(_env_file=None)

        assert settings.users[1001].user_id == "alice"
        assert settings.accounts == {"nubank": "acc-nubank"}
        assert settings.webhook_secret_str == "s3cret"
        assert settings.llm_model == "gpt-4o-mini"
        assert settings.locale == "pt-BR"

    def test_secrets_hidden_in_repr(self, env) -> None:
        """Test that secret values do not appear in the settings repr."""
        assert "sk-test" not in repr(Settings(_env_file=None))

    def test_missing_required_value_fails(self, env) -> None:
        """Test that a missing required variable fails validation."""
        env.delenv("WEBHOOK_SECRET")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_empty_allow_list_rejected(self, env) -> None:
        """Test that an empty chat allow-list is rejected."""
        env.setenv("USERS", "{}")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_webhook_path_must_be_absolute(self, env) -> None:
        """Test that a webhook path without a leading slash is rejected."""
        env.setenv("WEBHOOK_PATH", "telegram")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)
