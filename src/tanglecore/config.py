"""
Centralized configuration for tanglecore.

Uses Pydantic BaseSettings for environment variable integration
and validation.

Configuration sources (in order of precedence):
1. Explicit constructor arguments
2. Environment variables (TANGLECORE_*)
3. .env file
4. Default values

Example:
    from tanglecore.config import get_config

    config = get_config()
    print(config.tie_break)  # From TANGLECORE_TIE_BREAK or default

    # Override at runtime
    config = get_config(max_messages=500)
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TangleCoreConfig(BaseSettings):
    """
    Central configuration for tanglecore.

    All settings can be overridden via environment variables
    prefixed with TANGLECORE_.

    Example:
        export TANGLECORE_TIE_BREAK=input
        export TANGLECORE_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="TANGLECORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Ordering
    default_tangle: str = Field(
        default="post",
        description="Tangle name used when none is given (empty selects legacy root/branch)",
    )
    tie_break: Literal["identity", "input"] = Field(
        default="identity",
        description="Order of equal-depth concurrent messages: ref byte order or input order",
    )
    strict_root: bool = Field(
        default=False,
        description="Fail instead of warn when a message declares a different tangle root",
    )
    max_messages: int = Field(
        default=10000,
        ge=1,
        description="Largest message set a TangleSorter accepts",
    )

    # Logging
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Logging level for tanglecore",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log output format (json for Loki, text for console)",
    )

    @field_validator("log_level", "log_format", "tie_break", mode="before")
    @classmethod
    def lowercase(cls, v: str) -> str:
        """Accept DEBUG / Json / ... from the environment."""
        return v.lower() if isinstance(v, str) else v


# Global singleton
_config: Optional[TangleCoreConfig] = None


def get_config(**overrides) -> TangleCoreConfig:
    """
    Get the global configuration instance.

    Creates a singleton on first call. Subsequent calls return
    the same instance unless overrides are provided.

    Args:
        **overrides: Override any config values

    Returns:
        TangleCoreConfig instance
    """
    global _config

    if overrides or _config is None:
        _config = TangleCoreConfig(**overrides)

    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
