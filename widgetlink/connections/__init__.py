"""
Widget connections.

A widget declares where its data comes from with a ConnectionSpec. The
ConnectionResolver turns that declaration plus the session's
capabilities into a ResolvedState, and ConnectedWidget drives the
resolver through the widget's lifecycle.

Connection kinds:
    static          data supplied by the caller
    interface       named domain function
    resource_query  filter/sort/load/limit read query
    stream          host-owned incrementally updated collection
    form_create     form bound to a create action
    form_update     form bound to an existing record
    action          declared command, executed on a user event
    subscription    broadcast topic registration
"""

from .debug import DebugInfo, debug_info, describe_connection
from .errors import (
    ConnectionKindChangedError,
    DomainError,
    DomainLookupError,
    ErrorInfo,
    ErrorKind,
    FunctionNotFoundError,
    InvalidSpecError,
    QueryError,
    RecordNotFoundError,
    UnknownActionError,
    UnknownResourceError,
    WidgetBusyError,
    WidgetLinkError,
    WidgetTornDownError,
    format_error,
)
from .lifecycle import ConnectedWidget, WidgetSession, WidgetStatus
from .mode import ConnectionMode, detect_mode, is_static
from .resolver import ConnectionResolver, get_resolver, resolve
from .schemas import ConnectionDefinition, parse_connection, parse_definition
from .specs import (
    STATIC,
    ActionConnection,
    Connection,
    ConnectionKind,
    ConnectionSpec,
    FormCreateConnection,
    FormUpdateConnection,
    InterfaceConnection,
    ResourceQueryConnection,
    StaticConnection,
    StreamConnection,
    SubscriptionConnection,
)
from .state import ActionConfig, Effect, EffectType, Resolution, ResolvedState

__all__ = [
    # Specs
    "Connection",
    "ConnectionKind",
    "ConnectionSpec",
    "STATIC",
    "StaticConnection",
    "InterfaceConnection",
    "ResourceQueryConnection",
    "StreamConnection",
    "FormCreateConnection",
    "FormUpdateConnection",
    "ActionConnection",
    "SubscriptionConnection",
    # Declarative
    "ConnectionDefinition",
    "parse_connection",
    "parse_definition",
    # Mode
    "ConnectionMode",
    "detect_mode",
    "is_static",
    # State
    "ResolvedState",
    "ActionConfig",
    "Effect",
    "EffectType",
    "Resolution",
    # Resolver
    "ConnectionResolver",
    "get_resolver",
    "resolve",
    # Lifecycle
    "ConnectedWidget",
    "WidgetSession",
    "WidgetStatus",
    # Debug
    "DebugInfo",
    "debug_info",
    "describe_connection",
    # Errors
    "ErrorKind",
    "ErrorInfo",
    "format_error",
    "WidgetLinkError",
    "InvalidSpecError",
    "ConnectionKindChangedError",
    "WidgetTornDownError",
    "WidgetBusyError",
    "DomainError",
    "DomainLookupError",
    "FunctionNotFoundError",
    "UnknownResourceError",
    "UnknownActionError",
    "RecordNotFoundError",
    "QueryError",
]
