"""
Session capabilities.

The SessionContext carries what a widget connection may use: a domain
handle, a query executor, a pubsub client and the host's streams. The
in-process implementations here back tests and single-process hosts.
"""

from .context import (
    ActionRunner,
    DomainHandle,
    PubSubClient,
    QueryExecutor,
    SessionContext,
)
from .domain import ActionType, Domain, FunctionDescriptor, RecordRef, ResourceAction
from .pubsub import InMemoryPubSub
from .query import InMemoryQueryExecutor, Query, QueryResult, normalize_sort
from .streams import StreamCollection, StreamRef, StreamStore

__all__ = [
    # Context
    "SessionContext",
    "DomainHandle",
    "ActionRunner",
    "QueryExecutor",
    "PubSubClient",
    # Domain
    "Domain",
    "ActionType",
    "FunctionDescriptor",
    "RecordRef",
    "ResourceAction",
    # Query
    "Query",
    "QueryResult",
    "InMemoryQueryExecutor",
    "normalize_sort",
    # PubSub
    "InMemoryPubSub",
    # Streams
    "StreamRef",
    "StreamCollection",
    "StreamStore",
]
