"""
widgetlink - data connections for UI widgets.

A widget declares where its data comes from with a small closed set of
connection specs. widgetlink resolves a spec against the session's
capabilities into render-ready state:

- **Connection specs**: static, interface, resource query, stream, forms,
  actions and subscriptions
- **Resolver**: per-kind dispatch that never raises, returning state plus
  pending subscribe/unsubscribe effects
- **Lifecycle**: mount, update, refresh and teardown for widget instances,
  with idempotent re-resolution of unchanged specs
- **Session capabilities**: domain function registry, query executor,
  pubsub and host-owned streams

Quick Start:
    >>> from widgetlink import ConnectedWidget, InterfaceConnection, SessionContext
    >>> from widgetlink.session import Domain
    >>>
    >>> domain = Domain()
    >>> domain.register("list_users", lambda: ["ada", "grace"])
    >>> widget = ConnectedWidget(InterfaceConnection(function_name="list_users"))
    >>> widget.mount(SessionContext(domain=domain)).data
    ['ada', 'grace']
"""

__version__ = "0.1.0"
__license__ = "MIT"

from widgetlink.connections import (
    STATIC,
    ActionConnection,
    ConnectedWidget,
    ConnectionMode,
    ConnectionResolver,
    ConnectionSpec,
    ErrorInfo,
    ErrorKind,
    FormCreateConnection,
    FormUpdateConnection,
    InterfaceConnection,
    Resolution,
    ResolvedState,
    ResourceQueryConnection,
    StaticConnection,
    StreamConnection,
    SubscriptionConnection,
    WidgetSession,
    detect_mode,
    parse_connection,
)
from widgetlink.session import SessionContext

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Specs
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
    "parse_connection",
    # Resolution
    "ConnectionResolver",
    "ConnectionMode",
    "detect_mode",
    "Resolution",
    "ResolvedState",
    "ErrorInfo",
    "ErrorKind",
    # Lifecycle
    "ConnectedWidget",
    "WidgetSession",
    # Session
    "SessionContext",
]
