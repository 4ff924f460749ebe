"""
widgetlink configuration.

Environment-driven settings.
"""

from .settings import WidgetSettings, get_settings

__all__ = [
    "WidgetSettings",
    "get_settings",
]
