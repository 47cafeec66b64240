"""Application and OpenAI configuration."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from elderease.pricing import DEFAULT_SERVICE_RATES, UnknownServicePolicy


class OpenAISettings(BaseSettings):
    """Settings for the chatbot's completion calls.

    Attributes:
        api_key: OpenAI API key; empty means the chatbot is not configured
        model_name: Chat completion model
        temperature: Sampling temperature
        max_tokens: Max output tokens per reply
        request_timeout: HTTP request timeout in seconds
    """

    model_config = SettingsConfigDict(
        env_prefix="OPENAI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_key: str = Field(default="", description="OpenAI API key")
    model_name: str = Field(
        default="gpt-4.1-mini",
        description="Chat completion model used by the FAQ chatbot",
    )
    temperature: float = Field(default=0.45, ge=0.0, le=2.0)
    max_tokens: int = Field(default=400, gt=0)
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="HTTP request timeout in seconds",
    )


class AppSettings(BaseSettings):
    """Settings for the ElderEase API.

    Attributes:
        cors_origins: Origins allowed to call the API from a browser
        service_rates: Base hourly rate per service name, the one rate table
            every receipt is priced from
        unknown_service_policy: Whether services missing from the rate table
            are priced at zero or rejected
    """

    model_config = SettingsConfigDict(
        env_prefix="ELDEREASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    )
    service_rates: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_SERVICE_RATES)
    )
    unknown_service_policy: UnknownServicePolicy = UnknownServicePolicy.ZERO_RATE


@lru_cache
def get_openai_settings() -> OpenAISettings:
    """Get cached OpenAI settings instance."""
    return OpenAISettings()


@lru_cache
def get_app_settings() -> AppSettings:
    """Get cached application settings instance."""
    return AppSettings()
