"""
Runtime settings for FQDN fact resolution.

Settings are read from the environment with the ``FQDN_FACTS_`` prefix using
Pydantic v2 ``BaseSettings``. The debug switch also honours a bare ``DEBUG``
variable so existing deployments that export it keep receiving match and
assembly traces.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import InvalidConfiguration

__all__ = [
    "LogFormat",
    "FqdnFactsSettings",
    "get_settings",
    "invalidate_settings_cache",
]

_FALSE_VALUES = {"0", "false", "no", "off"}


class LogFormat(str, Enum):
    """Supported log output formats."""

    CONSOLE = "console"
    JSON = "json"


class FqdnFactsSettings(BaseSettings):
    """Environment-backed configuration for matching and fact assembly."""

    model_config = SettingsConfigDict(
        env_prefix="FQDN_FACTS_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    debug: bool = Field(
        False,
        validation_alias=AliasChoices("FQDN_FACTS_DEBUG", "DEBUG", "debug"),
        description="Emit match and assembly trace lines at DEBUG level",
    )
    log_level: str = Field("WARNING", description="Level used when debug is off")
    log_format: LogFormat = Field(LogFormat.CONSOLE, description="Console text or JSON lines")
    max_resolution_passes: int = Field(
        100,
        ge=1,
        description="Upper bound on fixed-point passes over dynamic facts",
    )

    @field_validator("debug", mode="before")
    @classmethod
    def coerce_debug(cls, value: Any) -> Any:
        """Treat the mere presence of the variable as enabling debug output."""
        if isinstance(value, str):
            return value.strip().lower() not in _FALSE_VALUES
        return value

    @field_validator("log_level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        upper = value.upper()
        if upper not in valid_levels:
            raise ValueError(f"log_level must be one of {sorted(valid_levels)}")
        return upper

    @property
    def effective_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level


_SETTINGS_LOCK = threading.Lock()
_SETTINGS_CACHE: Optional[FqdnFactsSettings] = None


def get_settings() -> FqdnFactsSettings:
    """Return memoised settings constructed from the current environment.

    Raises:
        InvalidConfiguration: If an ``FQDN_FACTS_*`` or ``DEBUG`` variable
            holds an invalid value.
    """

    global _SETTINGS_CACHE  # noqa: PLW0603

    with _SETTINGS_LOCK:
        if _SETTINGS_CACHE is None:
            try:
                _SETTINGS_CACHE = FqdnFactsSettings()
            except ValidationError as exc:
                raise InvalidConfiguration(f"invalid FqdnFacts settings: {exc}") from exc
        return _SETTINGS_CACHE


def invalidate_settings_cache() -> None:
    """Drop the cached settings so the next access re-reads the environment."""

    global _SETTINGS_CACHE  # noqa: PLW0603

    with _SETTINGS_LOCK:
        _SETTINGS_CACHE = None
