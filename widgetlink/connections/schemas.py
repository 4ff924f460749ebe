"""
Declarative connection schema.

JSON-serializable definitions of widget connections, for widget
declarations stored in configuration files or sent by a page builder.
A definition is validated with pydantic and turned into a runtime
ConnectionSpec with to_spec().

Subscription filters and query predicates are code, so they cannot be
declared here; use the dataclasses directly for those.

Usage:
    spec = parse_connection({"kind": "resource_query", "resource_id": "users", "limit": 10})
    spec = parse_connection({"kind": "subscription", "topic": "orders"})
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .errors import InvalidSpecError
from .specs import (
    STATIC,
    ActionConnection,
    ConnectionSpec,
    FormCreateConnection,
    FormUpdateConnection,
    InterfaceConnection,
    ResourceQueryConnection,
    StreamConnection,
    SubscriptionConnection,
)


class StaticDefinition(BaseModel):
    kind: Literal["static"] = "static"

    def to_spec(self) -> ConnectionSpec:
        return STATIC


class InterfaceDefinition(BaseModel):
    kind: Literal["interface"] = "interface"
    function_name: str = Field(..., min_length=1, description="Domain function name")
    args: list[Any] = Field(default_factory=list, description="Positional arguments")

    def to_spec(self) -> ConnectionSpec:
        return InterfaceConnection(function_name=self.function_name, args=tuple(self.args))


class ResourceQueryDefinition(BaseModel):
    kind: Literal["resource_query"] = "resource_query"
    resource_id: str = Field(..., min_length=1, description="Resource collection")
    filter: dict[str, Any] | None = Field(None, description="Field equality filter")
    sort: str | list[str] | dict[str, Literal["asc", "desc"]] | None = Field(
        None, description="Sort fields, '-' prefix for descending"
    )
    load: list[str] | None = Field(None, description="Related fields to load")
    limit: int | None = Field(None, ge=0, description="Maximum rows")

    def to_spec(self) -> ConnectionSpec:
        sort = tuple(self.sort) if isinstance(self.sort, list) else self.sort
        return ResourceQueryConnection(
            resource_id=self.resource_id,
            filter=self.filter,
            sort=sort,
            load=tuple(self.load) if self.load is not None else None,
            limit=self.limit,
        )


class StreamDefinition(BaseModel):
    kind: Literal["stream"] = "stream"
    stream_name: str = Field(..., min_length=1)

    def to_spec(self) -> ConnectionSpec:
        return StreamConnection(stream_name=self.stream_name)


class FormCreateDefinition(BaseModel):
    kind: Literal["form_create"] = "form_create"
    resource_id: str = Field(..., min_length=1)
    action: str = Field(..., min_length=1)

    def to_spec(self) -> ConnectionSpec:
        return FormCreateConnection(resource_id=self.resource_id, action=self.action)


class FormUpdateDefinition(BaseModel):
    kind: Literal["form_update"] = "form_update"
    record_ref: Any = Field(..., description="Record identity understood by the domain")
    action: str = Field(..., min_length=1)

    def to_spec(self) -> ConnectionSpec:
        return FormUpdateConnection(record_ref=_freeze(self.record_ref), action=self.action)


class ActionDefinition(BaseModel):
    kind: Literal["action"] = "action"
    action: str = Field(..., min_length=1)
    record_ref: Any = None

    def to_spec(self) -> ConnectionSpec:
        return ActionConnection(action=self.action, record_ref=_freeze(self.record_ref))


class SubscriptionDefinition(BaseModel):
    kind: Literal["subscription"] = "subscription"
    topic: str = Field(..., min_length=1)

    def to_spec(self) -> ConnectionSpec:
        return SubscriptionConnection(topic=self.topic)


ConnectionDefinition = Annotated[
    StaticDefinition
    | InterfaceDefinition
    | ResourceQueryDefinition
    | StreamDefinition
    | FormCreateDefinition
    | FormUpdateDefinition
    | ActionDefinition
    | SubscriptionDefinition,
    Field(discriminator="kind"),
]

_adapter: TypeAdapter[Any] = TypeAdapter(ConnectionDefinition)


def _freeze(value: Any) -> Any:
    # Record refs are used as key payload; lists from JSON become tuples
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


def parse_definition(data: Any) -> Any:
    """
    Validate raw data into a connection definition model.

    Raises:
        InvalidSpecError: If the data is not a valid definition
    """
    if data is None or data == "static":
        return StaticDefinition()
    try:
        return _adapter.validate_python(data)
    except ValidationError as e:
        raise InvalidSpecError(f"Invalid connection definition: {e}") from e


def parse_connection(data: Any) -> ConnectionSpec:
    """
    Parse raw data (dict, None or "static") into a ConnectionSpec.

    Raises:
        InvalidSpecError: If the data is not a valid definition
    """
    return parse_definition(data).to_spec()
