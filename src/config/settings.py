# src/config/settings.py — v2
"""Typed process configuration loaded from the environment via pydantic-settings.

Per-call options (partner id, pd, consent...) live in config/options.py;
this module only covers deployment concerns: endpoints, storage, logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from id5resolver.core.errors import Id5Error


class ConfigurationError(Id5Error):
    """Raised when configuration is missing or internally inconsistent."""


class Settings(BaseSettings):
    """Process settings loaded from ID5_* environment variables or .env."""

    model_config = SettingsConfigDict(
        env_prefix="ID5_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Identity service ===
    api_scheme: Literal["https", "http"] = "https"
    api_host: str = "id5-sync.com"
    request_timeout_s: float = 5.0

    # === Storage ===
    storage_backend: Literal["memory", "json", "sqlite"] = "memory"
    storage_path: Path = Path("~/.id5resolver/storage")
    legacy_storage_path: str = ""

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: str = ""
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("request_timeout_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:  # noqa: N805
        if v <= 0:
            raise ValueError("request_timeout_s must be > 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Cross-field consistency rules."""
        errors: list[str] = []

        if self.storage_backend != "memory" and not str(self.storage_path).strip():
            errors.append(
                f"STORAGE_BACKEND={self.storage_backend} requires STORAGE_PATH"
            )
        if not self.api_host.strip():
            errors.append("API_HOST must not be empty")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def api_base_url(self) -> str:
        return f"{self.api_scheme}://{self.api_host}"


def load_settings(**overrides: object) -> Settings:
    """Load settings from the environment with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
