"""
Connection specifications.

A ConnectionSpec declares where a widget's data comes from. The set of
variants is closed: the resolver handles exactly these eight classes and
treats anything else as an invalid spec.

Specs are immutable values. They are supplied fresh by the caller on every
render and compared structurally, so an unchanged declaration resolves to
the previous state without repeating side effects.

Usage:
    spec = InterfaceConnection(function_name="list_users", args=("active",))
    spec = ResourceQueryConnection(resource_id="users", filter={"active": True}, limit=10)
    spec = SubscriptionConnection(topic="orders")
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, TypeAlias


class ConnectionKind(str, Enum):
    """Tag of a connection variant."""

    STATIC = "static"
    INTERFACE = "interface"
    RESOURCE_QUERY = "resource_query"
    STREAM = "stream"
    FORM_CREATE = "form_create"
    FORM_UPDATE = "form_update"
    ACTION = "action"
    SUBSCRIPTION = "subscription"


@dataclass(frozen=True, kw_only=True, slots=True)
class Connection:
    """
    Base class for all connection variants.

    Subclasses set ``kind`` and define their payload fields.
    ``key_payload`` names the identity of the bound resource: when it
    changes, handles and registrations from the old binding are released.
    """

    kind: ClassVar[ConnectionKind]

    @property
    def key_payload(self) -> tuple[Any, ...]:
        return ()

    def validate(self) -> str | None:
        """Return a description of the first payload problem, or None."""
        return None

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value}


def _require_name(value: Any, field_name: str) -> str | None:
    if not isinstance(value, str) or not value.strip():
        return f"'{field_name}' must be a non-empty string"
    return None


@dataclass(frozen=True, kw_only=True, slots=True)
class StaticConnection(Connection):
    """Data is supplied directly by the caller; nothing to resolve."""

    kind: ClassVar[ConnectionKind] = ConnectionKind.STATIC


@dataclass(frozen=True, kw_only=True, slots=True)
class InterfaceConnection(Connection):
    """Invoke a named function on the session's domain handle."""

    kind: ClassVar[ConnectionKind] = ConnectionKind.INTERFACE

    function_name: str
    args: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        # Accept lists from declarations; keep the value immutable.
        if isinstance(self.args, list):
            object.__setattr__(self, "args", tuple(self.args))

    @property
    def key_payload(self) -> tuple[Any, ...]:
        return (self.function_name,)

    @property
    def arity(self) -> int:
        return len(self.args)

    def validate(self) -> str | None:
        problem = _require_name(self.function_name, "function_name")
        if problem:
            return problem
        if not isinstance(self.args, tuple):
            return "'args' must be a sequence"
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "function_name": self.function_name,
            "args": list(self.args),
        }


@dataclass(frozen=True, kw_only=True, slots=True)
class ResourceQueryConnection(Connection):
    """
    Build and execute a read query against a named resource collection.

    Attributes:
        resource_id: Collection name
        filter: Field equality mapping (or predicate) applied first
        sort: Field name(s); prefix with "-" for descending
        load: Related fields to load after filter/sort
        limit: Maximum rows, applied last

    A mapping filter compares by value, so rebuilding the connection on
    every render keeps the previous result. A predicate compares by
    identity: define it once (e.g. at module level) or every rebuild
    re-runs the query.
    """

    kind: ClassVar[ConnectionKind] = ConnectionKind.RESOURCE_QUERY

    resource_id: str
    filter: Mapping[str, Any] | Callable[[Any], bool] | None = None
    sort: str | Sequence[str] | Mapping[str, str] | None = None
    load: Sequence[str] | None = None
    limit: int | None = None

    @property
    def key_payload(self) -> tuple[Any, ...]:
        return (self.resource_id,)

    def validate(self) -> str | None:
        problem = _require_name(self.resource_id, "resource_id")
        if problem:
            return problem
        if self.limit is not None and (
            isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit < 0
        ):
            return "'limit' must be a non-negative integer"
        if self.filter is not None and not (
            isinstance(self.filter, Mapping) or callable(self.filter)
        ):
            return "'filter' must be a mapping or a predicate"
        if self.load is not None and isinstance(self.load, str | bytes):
            return "'load' must be a sequence of field names"
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "resource_id": self.resource_id,
            "filter": self.filter if isinstance(self.filter, Mapping) else repr(self.filter),
            "sort": self.sort,
            "load": list(self.load) if self.load else None,
            "limit": self.limit,
        }


@dataclass(frozen=True, kw_only=True, slots=True)
class StreamConnection(Connection):
    """Bind to a named collection maintained by the host session."""

    kind: ClassVar[ConnectionKind] = ConnectionKind.STREAM

    stream_name: str

    @property
    def key_payload(self) -> tuple[Any, ...]:
        return (self.stream_name,)

    def validate(self) -> str | None:
        return _require_name(self.stream_name, "stream_name")

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "stream_name": self.stream_name}


@dataclass(frozen=True, kw_only=True, slots=True)
class FormCreateConnection(Connection):
    """Materialize a new editable form bound to a create action."""

    kind: ClassVar[ConnectionKind] = ConnectionKind.FORM_CREATE

    resource_id: str
    action: str

    @property
    def key_payload(self) -> tuple[Any, ...]:
        return (self.resource_id,)

    def validate(self) -> str | None:
        return _require_name(self.resource_id, "resource_id") or _require_name(
            self.action, "action"
        )

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "resource_id": self.resource_id, "action": self.action}


@dataclass(frozen=True, kw_only=True, slots=True)
class FormUpdateConnection(Connection):
    """Materialize an editable form bound to an existing record."""

    kind: ClassVar[ConnectionKind] = ConnectionKind.FORM_UPDATE

    record_ref: Any
    action: str

    @property
    def key_payload(self) -> tuple[Any, ...]:
        return (self.record_ref,)

    def validate(self) -> str | None:
        if self.record_ref is None:
            return "'record_ref' is required"
        return _require_name(self.action, "action")

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "record_ref": repr(self.record_ref), "action": self.action}


@dataclass(frozen=True, kw_only=True, slots=True)
class ActionConnection(Connection):
    """
    Declare a pending command against a record.

    Resolution never executes the action. A later user event does, using
    the same action/record pair (see widgetlink.actions).
    """

    kind: ClassVar[ConnectionKind] = ConnectionKind.ACTION

    action: str
    record_ref: Any = None

    @property
    def key_payload(self) -> tuple[Any, ...]:
        return (self.action, self.record_ref)

    def validate(self) -> str | None:
        return _require_name(self.action, "action")

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "action": self.action, "record_ref": repr(self.record_ref)}


@dataclass(frozen=True, kw_only=True, slots=True)
class SubscriptionConnection(Connection):
    """
    Register interest in a broadcast topic.

    The optional filter is applied to delivered messages only. It is
    excluded from equality: a fresh lambda on every render must not count
    as a changed declaration.
    """

    kind: ClassVar[ConnectionKind] = ConnectionKind.SUBSCRIPTION

    topic: str
    filter: Callable[[Any], bool] | None = field(default=None, compare=False)

    @property
    def key_payload(self) -> tuple[Any, ...]:
        return (self.topic,)

    def validate(self) -> str | None:
        problem = _require_name(self.topic, "topic")
        if problem:
            return problem
        if self.filter is not None and not callable(self.filter):
            return "'filter' must be callable"
        return None

    def accepts(self, message: Any) -> bool:
        """Check a delivered message against the filter."""
        return self.filter is None or bool(self.filter(message))

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "topic": self.topic,
            "filtered": self.filter is not None,
        }


ConnectionSpec: TypeAlias = (
    StaticConnection
    | InterfaceConnection
    | ResourceQueryConnection
    | StreamConnection
    | FormCreateConnection
    | FormUpdateConnection
    | ActionConnection
    | SubscriptionConnection
)

CONNECTION_TYPES: tuple[type[Connection], ...] = (
    StaticConnection,
    InterfaceConnection,
    ResourceQueryConnection,
    StreamConnection,
    FormCreateConnection,
    FormUpdateConnection,
    ActionConnection,
    SubscriptionConnection,
)

STATIC = StaticConnection()


def same_binding(old: Any, new: Any) -> bool:
    """True when both specs are the same kind with the same key payload."""
    if type(old) is not type(new) or not isinstance(new, Connection):
        return False
    return old.key_payload == new.key_payload
