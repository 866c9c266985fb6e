"""Application configuration using pydantic-settings."""

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from groqbot.catalog import FALLBACK_MODEL_ID, is_supported_model

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. Follow the user's instructions carefully. "
    "Respond using markdown."
)
DEFAULT_TEMPERATURE = 1.0

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Upstream provider (Groq / OpenAI-compatible)
    # The key is optional: clients may send their own with each request
    openai_api_key: str = ""
    openai_api_host: str = "https://api.openai.com"
    openai_organization: str = ""

    # Chat defaults
    default_model: str = FALLBACK_MODEL_ID.value
    default_system_prompt: str = DEFAULT_SYSTEM_PROMPT
    default_temperature: float = DEFAULT_TEMPERATURE

    # Application Settings
    log_level: str = "INFO"
    environment: str = "development"

    # Timeout (seconds) for upstream connect/read; applies between stream chunks
    request_timeout: float = 60.0

    # JSON list in the environment, e.g. CORS_ORIGINS='["http://localhost:3000"]'
    cors_origins: list[str] = ["*"]

    @property
    def server_side_api_key_is_set(self) -> bool:
        return bool(self.openai_api_key)

    @field_validator("openai_api_host")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Allow OPENAI_API_HOST with or without a trailing slash."""
        v = v.strip().rstrip("/")
        if not v:
            raise ValueError("OPENAI_API_HOST cannot be empty")
        return v

    @field_validator("default_model")
    @classmethod
    def validate_default_model(cls, v: str) -> str:
        """Fall back to the default catalog model for unsupported ids."""
        v = v.strip()
        if not is_supported_model(v):
            logger.warning(
                f"DEFAULT_MODEL '{v}' is not supported, "
                f"falling back to '{FALLBACK_MODEL_ID.value}'"
            )
            return FALLBACK_MODEL_ID.value
        return v

    @field_validator("default_system_prompt")
    @classmethod
    def validate_default_system_prompt(cls, v: str) -> str:
        """An empty DEFAULT_SYSTEM_PROMPT means the built-in prompt."""
        return v if v.strip() else DEFAULT_SYSTEM_PROMPT

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log_level: '{v}'. "
                f"Must be one of: {', '.join(sorted(VALID_LOG_LEVELS))}"
            )
        return v


# Global settings instance
settings = Settings()
