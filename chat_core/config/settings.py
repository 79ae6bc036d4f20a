"""Configuration management.

Settings are loaded from (highest priority first) explicit overrides such
as CLI flags, environment variables, a .env file and config.yaml.
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chat_core.domain.exceptions import ConfigurationError
from chat_core.prompts import DEFAULT_SYSTEM_PROMPT


def _load_config_from_yaml() -> Dict[str, Any]:
    """Load config.yaml if one exists."""
    candidates = []
    explicit = os.getenv("CHAT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.append(Path.cwd() / "config.yaml")

    seen: set[Path] = set()
    for path in candidates:
        if path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """Client settings."""

    # ---- endpoint ----
    openai_api_endpoint: Optional[str] = Field(default=None, description="Chat endpoint base URL")
    openai_api_key: Optional[str] = Field(default=None, description="API key sent with every request")
    openai_api_model: str = Field(default="gpt-35-turbo", description="Deployment or model name")
    openai_api_version: str = Field(
        default="2025-01-01-preview",
        description="api-version query parameter (azure provider only)",
    )
    provider: Literal["azure", "openai"] = Field(
        default="azure",
        description="Wire flavour: azure deployments or plain /chat/completions",
    )

    # ---- request ----
    stream: bool = Field(default=True, description="Stream the reply as it is generated")
    temperature: Optional[float] = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=1000, ge=1)
    top_p: Optional[float] = Field(default=None, gt=0.0, le=1.0)
    system_prompt: str = Field(
        default=DEFAULT_SYSTEM_PROMPT,
        description="Seed system message, or @path to read it from a file",
    )

    # ---- transport ----
    http_timeout: float = Field(default=60.0, ge=1.0, description="Read timeout in seconds")
    connect_timeout: float = Field(default=10.0, ge=1.0, description="Connect timeout in seconds")

    # ---- logging ----
    log_dir: str = Field(default="logs", description="Log directory")
    log_level: str = Field(default="INFO", description="Log level of the chat_core logger")
    log_redact_content: bool = Field(default=False, description="Truncate logged messages")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("openai_api_endpoint", "openai_api_key")
    @classmethod
    def strip_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        return v or None

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )

    def validate_required(self) -> None:
        """Fail before any network call when the endpoint config is incomplete."""
        missing: List[str] = []
        if not self.openai_api_endpoint:
            missing.append("endpoint (--endpoint or OPENAI_API_ENDPOINT)")
        if not self.openai_api_key:
            missing.append("API key (--api-key or OPENAI_API_KEY)")
        if not self.openai_api_model or not self.openai_api_model.strip():
            missing.append("model (--model or OPENAI_API_MODEL)")
        if missing:
            raise ConfigurationError(
                code="MISSING_CONFIG",
                message="Missing required configuration: " + ", ".join(missing),
            )
        if not self.openai_api_endpoint.startswith(("http://", "https://")):
            raise ConfigurationError(
                code="INVALID_ENDPOINT",
                message=f"Endpoint must be an http(s) URL, got {self.openai_api_endpoint!r}",
            )


def load_settings(**overrides: Any) -> Settings:
    """Build Settings, letting non-None overrides win over every other source."""
    return Settings(**{k: v for k, v in overrides.items() if v is not None})
