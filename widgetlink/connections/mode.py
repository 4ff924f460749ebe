"""Binding mode of a widget: static (dumb) or connected."""

from __future__ import annotations

from enum import Enum
from typing import Any

from .specs import StaticConnection


class ConnectionMode(str, Enum):
    STATIC = "static"
    CONNECTED = "connected"


def detect_mode(spec: Any) -> ConnectionMode:
    """
    Classify a spec.

    StaticConnection is the only static variant; every other variant is
    connected.
    """
    if isinstance(spec, StaticConnection):
        return ConnectionMode.STATIC
    return ConnectionMode.CONNECTED


def is_static(spec: Any) -> bool:
    return detect_mode(spec) == ConnectionMode.STATIC
