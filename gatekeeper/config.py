"""
Application configuration.

Loads settings from environment variables (prefixed `GATEKEEPER_`) with
sensible defaults. Guard rules live in the YAML file named by
`guards_config`; see `gatekeeper.config_loader`.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="GATEKEEPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # ==========================================================================
    # Guards
    # ==========================================================================

    guards_config: str = "config/gatekeeper.yaml"

    # Role used for requests without an identity
    default_role: str = "guest"

    # ==========================================================================
    # Failure strategy
    # ==========================================================================

    # "unauthorized" (render a 403 page) or "redirect"
    unauthorized_strategy: str = "unauthorized"
    template: str = "error/403"
    redirect_route: str = "login"
    redirect_uri: str | None = None

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
