"""
Debug overlay data.

Widgets rendered with debug_mode show a small overlay naming their
binding mode, their source and any loading/error state. This module only
produces the data; markup is the rendering layer's business.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .mode import detect_mode
from .specs import Connection, ConnectionKind, SubscriptionConnection
from .state import ResolvedState

_LABELS = {
    ConnectionKind.STATIC: "Static (Dumb Mode)",
    ConnectionKind.INTERFACE: "Interface Query",
    ConnectionKind.RESOURCE_QUERY: "Resource Query",
    ConnectionKind.STREAM: "Stream",
    ConnectionKind.FORM_CREATE: "Create Form",
    ConnectionKind.FORM_UPDATE: "Update Form",
    ConnectionKind.ACTION: "Domain Action",
    ConnectionKind.SUBSCRIPTION: "Subscription",
}


def describe_connection(spec: Any) -> str:
    """Human-readable label for a connection kind."""
    if isinstance(spec, SubscriptionConnection) and spec.filter is not None:
        return "Filtered Subscription"
    if isinstance(spec, Connection):
        return _LABELS.get(spec.kind, "Unknown")
    return "Unknown"


@dataclass(frozen=True, slots=True)
class DebugInfo:
    widget_name: str
    mode: str
    connection_type: str
    source: dict[str, Any]
    loading: bool = False
    error: str | None = None

    def lines(self) -> list[str]:
        lines = [
            self.widget_name,
            f"Mode: {self.mode}",
            f"Source: {self.connection_type}",
        ]
        if self.loading:
            lines.append("Loading...")
        if self.error:
            lines.append(f"Error: {self.error}")
        return lines

    def to_dict(self) -> dict[str, Any]:
        return {
            "widget_name": self.widget_name,
            "mode": self.mode,
            "connection_type": self.connection_type,
            "source": self.source,
            "loading": self.loading,
            "error": self.error,
        }


def debug_info(
    spec: Any,
    state: ResolvedState | None = None,
    widget_name: str = "widget",
) -> DebugInfo:
    """Collect overlay data for one widget."""
    return DebugInfo(
        widget_name=widget_name,
        mode=detect_mode(spec).value,
        connection_type=describe_connection(spec),
        source=spec.to_dict() if isinstance(spec, Connection) else {"repr": repr(spec)},
        loading=state.loading if state else False,
        error=state.error.message if state and state.error else None,
    )
