"""
Settings for widgetlink.

Values come from WIDGETLINK_* environment variables. get_settings() is
cached; call get_settings.cache_clear() after changing the environment.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from pydantic import BaseModel, Field


class WidgetSettings(BaseModel):
    """
    Settings model.

    Attributes:
        environment: "development" makes invalid specs log at ERROR
        debug_mode: Default for widget debug overlays
        strict_specs: Log invalid specs at ERROR regardless of environment
        log_level: Level for the diagnostics app
    """

    service_name: str = "widgetlink"
    environment: str = "development"
    debug_mode: bool = False
    strict_specs: bool = False
    log_level: str = Field(default="INFO", description="Logging level name")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def invalid_spec_log_level(self) -> int:
        """Invalid specs are loud in development."""
        if self.strict_specs or self.is_development:
            return logging.ERROR
        return logging.WARNING


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@lru_cache()
def get_settings() -> WidgetSettings:
    """
    Get settings from environment.

    Uses lru_cache for singleton pattern.
    """
    return WidgetSettings(
        service_name=os.getenv("WIDGETLINK_SERVICE_NAME", "widgetlink"),
        environment=os.getenv("WIDGETLINK_ENVIRONMENT", "development"),
        debug_mode=_env_flag("WIDGETLINK_DEBUG_MODE"),
        strict_specs=_env_flag("WIDGETLINK_STRICT_SPECS"),
        log_level=os.getenv("WIDGETLINK_LOG_LEVEL", "INFO").upper(),
    )
