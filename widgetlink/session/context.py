"""
Session context for widget connections.

The context is the explicit carrier of ambient capabilities for one UI
session. It is passed on every resolve call and shared read-only by all
widget instances in the session; the resolver never mutates it.

Capabilities are Protocols. The in-process implementations in this
package (Domain, InMemoryQueryExecutor, InMemoryPubSub, StreamStore) are
one way to satisfy them; hosts can plug in their own.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from widgetlink.forms.handle import FormHandle

    from .query import Query, QueryResult
    from .streams import StreamStore


@runtime_checkable
class DomainHandle(Protocol):
    """Named business-logic entry points callable by the resolver."""

    def has_function(self, name: str, arity: int) -> bool:
        """Check a function with this exact arity is registered."""
        ...

    def invoke(self, name: str, args: Sequence[Any]) -> Any:
        """Invoke a function. May raise, or return an awaitable."""
        ...

    def create_form(self, resource_id: str, action: str) -> FormHandle:
        """Build an unvalidated form bound to a create action."""
        ...

    def update_form(self, record_ref: Any, action: str) -> FormHandle:
        """Build an unvalidated form bound to an existing record."""
        ...


@runtime_checkable
class ActionRunner(Protocol):
    """Optional domain capability used to execute declared actions."""

    def run_action(self, action: str, record_ref: Any, params: dict[str, Any]) -> Any:
        ...


class QueryExecutor(Protocol):
    """Executes read queries against named resource collections."""

    def execute(self, resource_id: str, query: Query) -> QueryResult:
        ...


class PubSubClient(Protocol):
    """Topic registration. Delivery happens through the host's inbox."""

    def subscribe(self, topic: str) -> None:
        ...

    def unsubscribe(self, topic: str) -> None:
        ...


@dataclass(frozen=True)
class SessionContext:
    """
    Capabilities available to the resolver for one session.

    Attributes:
        domain: Domain handle, absent in pre-render/static-only contexts
        connected: Whether a live session exists (subscriptions allowed)
        pubsub: Client used to apply subscribe/unsubscribe effects
        query_executor: Executor for resource queries
        streams: Host-owned stream collections, bound by name
        session_id: Identifier used in logs

    A missing capability is a normal state. It only matters when a spec
    needs it.
    """

    domain: DomainHandle | None = None
    connected: bool = False
    pubsub: PubSubClient | None = None
    query_executor: QueryExecutor | None = None
    streams: StreamStore | None = None
    session_id: str = ""

    @classmethod
    def static(cls) -> SessionContext:
        """Context for pre-render passes: no domain, not connected."""
        return cls()

    def with_connected(self, connected: bool = True) -> SessionContext:
        return replace(self, connected=connected)

    def describe(self) -> dict[str, Any]:
        """Summary of available capabilities for logs and diagnostics."""
        return {
            "session_id": self.session_id,
            "connected": self.connected,
            "domain": self.domain is not None,
            "pubsub": self.pubsub is not None,
            "query_executor": self.query_executor is not None,
            "streams": self.streams is not None,
        }
