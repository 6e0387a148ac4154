# ABOUTME: Configuration settings for the loreweave session engine using Pydantic Settings.
# ABOUTME: Loads Redis, narration, chat and logging options from the environment with type-safe access.

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    # Redis Configuration
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL for the session store"
    )
    session_id: str = Field(
        default="main",
        description="Session identifier (one World per session, e.g. a chat group id)"
    )
    store_max_retries: int = Field(
        default=10,
        ge=1,
        description="Maximum attempts for a conflicting store transaction"
    )
    event_ttl_seconds: int = Field(
        default=86400,
        description="Time-to-live for the session event log"
    )

    # Chat Configuration
    admin_chat_id: str | None = Field(
        default=None,
        description="Chat id of the admin group allowed to run setup commands"
    )

    # Narration Configuration
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key for the narration backend"
    )
    openai_model: str = Field(
        default="gpt-4o",
        description="OpenAI model used to narrate rounds"
    )
    narration_backend: Literal["openai", "queue", "static"] = Field(
        default="static",
        description="Narrator implementation (openai, queue, static)"
    )
    narration_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Maximum seconds to wait for narration before falling back"
    )
    narration_queue_name: str = Field(
        default="narration",
        description="RQ queue used by the queued narration backend"
    )

    # Game Settings
    default_choice_options: str = Field(
        default="A,B,C",
        description="Choice alphabet for rounds (comma-separated)"
    )

    # Application Settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (None disables file logging)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def choice_options_list(self) -> list[str]:
        """Parse comma-separated choice alphabet into a list of labels"""
        return [x.strip().upper() for x in self.default_choice_options.split(",") if x.strip()]


# Singleton settings instance - lazy initialization to allow import without .env
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the singleton settings instance"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
