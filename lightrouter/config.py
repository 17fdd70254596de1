"""
Visual Light Router Configuration Module

This module manages application settings and environment variables using
pydantic-settings for type-safe configuration management.

Environment variables are loaded from .env file or system environment.
All sensitive values use SecretStr to prevent accidental logging.
"""

from functools import lru_cache
from typing import Literal
import logging
import sys

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Pydantic Settings automatically reads from:
    1. Environment variables
    2. .env file in working directory
    3. Default values defined here

    API keys use SecretStr to prevent accidental exposure in logs.
    Every key is optional: a backend without credentials simply
    contributes no usable descriptors.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown env vars
    )

    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Base URL of the local Ollama server (text models)",
    )

    comfyui_base_url: str = Field(
        default="http://localhost:8188",
        description="Base URL of the local ComfyUI server (image models)",
    )

    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="OpenAI-compatible base URL of the hosted gateway",
    )

    openrouter_api_key: SecretStr | None = Field(
        default=None, description="OpenRouter API key for gateway models (optional)"
    )

    groq_api_key: SecretStr | None = Field(
        default=None, description="Groq API key for direct vendor models (optional)"
    )

    gemini_api_key: SecretStr | None = Field(
        default=None, description="Gemini API key for direct Google models (optional)"
    )

    catalog_path: str | None = Field(
        default=None,
        description="Path to a JSON model catalog loaded in addition to the defaults",
    )

    use_default_catalog: bool = Field(
        default=True, description="Register the built-in model catalog at startup"
    )

    discover_local_models: bool = Field(
        default=True, description="Enumerate installed Ollama models at startup"
    )

    discover_gateway_models: bool = Field(
        default=False,
        description="Enumerate the gateway model list (requires an OpenRouter key)",
    )

    max_fallbacks: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Number of alternates tried after the primary model fails",
    )

    attempt_timeout_seconds: float | None = Field(
        default=120.0,
        description="Per-attempt timeout in seconds (None disables the timeout)",
    )

    comfyui_poll_interval_seconds: float = Field(
        default=1.0,
        gt=0.0,
        description="Delay between ComfyUI job history polls",
    )

    comfyui_max_polls: int = Field(
        default=60, gt=0, description="Polls before a ComfyUI job counts as timed out"
    )

    video_poll_interval_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Delay between polls of a direct video generation job",
    )

    video_max_polls: int = Field(
        default=60, gt=0, description="Polls before a direct video job counts as timed out"
    )

    metrics_max_history: int = Field(
        default=10000, gt=0, description="Maximum metrics records retained overall"
    )

    metrics_window_seconds: float | None = Field(
        default=86400.0,
        description="Rolling window for per-model aggregates (None = all retained)",
    )

    track_costs: bool = Field(
        default=True, description="Estimate and record the cost of each attempt"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Application log level"
    )

    host: str = Field(default="0.0.0.0", description="Server bind host")

    port: int = Field(default=8000, description="Server bind port")

    debug: bool = Field(default=False, description="Enable debug mode")

    @field_validator("attempt_timeout_seconds", "metrics_window_seconds")
    @classmethod
    def validate_positive_or_none(cls, v: float | None) -> float | None:
        """Durations are either disabled (None) or strictly positive."""
        if v is not None and v <= 0:
            raise ValueError("must be a positive number of seconds or unset")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Returns cached settings instance.

    Using lru_cache ensures settings are loaded once and reused,
    avoiding repeated file reads and environment parsing.

    Returns:
        Settings: The application settings singleton.
    """
    return Settings()


def configure_logging(settings: Settings) -> None:
    """
    Configure application logging based on settings.

    Sets up structured logging with timestamps and reduces noise
    from third-party HTTP libraries.

    Args:
        settings: The application settings instance.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("groq").setLevel(logging.WARNING)
    logging.getLogger("google_genai").setLevel(logging.WARNING)
