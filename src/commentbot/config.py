"""Configuration management."""

from typing import Annotated

from pydantic import computed_field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Telegram
    telegram_bot_token: str = ""
    telegram_api_url: str = "https://api.telegram.org"
    public_base_url: str = ""  # Webhook is registered on startup when set
    allowed_chat_ids: Annotated[frozenset[int], NoDecode] = frozenset()

    # LLM (OpenAI-compatible chat completions)
    llm_base_url: str = "https://api.openai.com"
    llm_api_key: str = ""
    llm_model: str = "gpt-4o-mini"
    llm_timeout: float = 60.0

    # Reply behaviour
    max_context_messages: int = 20
    reply_probability: float = 0.2

    # Database (PostgreSQL) - constructed from parts
    memory_backend: str = "postgres"  # "postgres" or "memory"
    db_host: str = "localhost"
    db_port: str = "5432"
    db_name: str = "commentbot"
    db_user: str = "commentbot"
    db_password: str = ""

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    @computed_field
    @property
    def database_url(self) -> str:
        """Construct database URL from parts."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @computed_field
    @property
    def bot_id(self) -> int | None:
        """Bot user id, the numeric prefix of the bot token."""
        prefix, _, _ = self.telegram_bot_token.partition(":")
        return int(prefix) if prefix.isdigit() else None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("allowed_chat_ids", mode="before")
    @classmethod
    def parse_allowed_chat_ids(cls, value):
        """Accept a comma separated string; unparseable entries are skipped."""
        if value is None:
            return frozenset()
        if isinstance(value, str):
            ids = set()
            for part in value.split(","):
                part = part.strip()
                try:
                    ids.add(int(part))
                except ValueError:
                    continue
            return frozenset(ids)
        return value

    @field_validator("max_context_messages")
    @classmethod
    def clamp_max_context(cls, value: int) -> int:
        return max(4, value)

    @field_validator("reply_probability")
    @classmethod
    def clamp_reply_probability(cls, value: float) -> float:
        if value != value:  # NaN
            return 0.0
        return min(1.0, max(0.0, value))


# Global settings instance
settings = Settings()
