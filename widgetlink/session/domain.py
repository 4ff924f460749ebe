"""
Domain registry.

Domain is the in-process DomainHandle: an explicit registry of named
functions (keyed by name and arity) plus resources with their actions.
Widgets reach business logic only through what is registered here; there
is no lookup by reflection.

Design Principle:
    Functions are registered once at startup and immutable during a
    session. A function name may be registered at several arities, and
    each (name, arity) pair is a separate entry.

Usage:
    domain = Domain()

    @domain.function()
    def list_users(status):
        return repo.users(status=status)

    domain.register_resource("users", User, fetch=repo.get_user)

    @domain.action("users", "register", type=ActionType.CREATE)
    def register(user: User) -> User:
        return repo.insert(user)

    domain.has_function("list_users", 1)  # True
    domain.invoke("list_users", ["active"])
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel

from widgetlink.connections.errors import (
    DomainError,
    FunctionNotFoundError,
    RecordNotFoundError,
    UnknownActionError,
    UnknownResourceError,
)
from widgetlink.forms.handle import FormHandle, MapForm, ModelForm

logger = logging.getLogger(__name__)


class ActionType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"


@dataclass(frozen=True, slots=True)
class FunctionDescriptor:
    """A registered callable with a fixed parameter count."""

    name: str
    func: Callable[..., Any]
    arity: int
    description: str = ""

    def __call__(self, *args: Any) -> Any:
        return self.func(*args)


@dataclass(frozen=True, slots=True)
class ResourceAction:
    """
    Action bound to a resource.

    Calling conventions:
        create:  func(data) -> record
        update:  func(record, data) -> record
        destroy: func(record) -> Any

    ``data`` is a model instance when the resource has a model, otherwise
    a plain dict.
    """

    name: str
    type: ActionType
    func: Callable[..., Any]


@dataclass
class ResourceDefinition:
    resource_id: str
    model: type[BaseModel] | None = None
    fetch: Callable[[Any], Any] | None = None
    actions: dict[str, ResourceAction] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RecordRef:
    """Reference to a stored record by resource and id."""

    resource_id: str
    record_id: Any


def positional_arity(func: Callable[..., Any]) -> int:
    """
    Count the positional parameters of a callable.

    Raises:
        DomainError: If the callable takes *args (no fixed arity)
    """
    params = inspect.signature(func).parameters.values()
    if any(p.kind == inspect.Parameter.VAR_POSITIONAL for p in params):
        raise DomainError(
            f"Cannot infer arity of {getattr(func, '__name__', func)!r}: "
            "pass arity explicitly"
        )
    return sum(
        1
        for p in params
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    )


class Domain:
    """
    Registry of functions and resources exposed to widgets.

    Satisfies DomainHandle and ActionRunner.
    """

    def __init__(self, name: str = "domain") -> None:
        self.name = name
        self._functions: dict[tuple[str, int], FunctionDescriptor] = {}
        self._resources: dict[str, ResourceDefinition] = {}

    # ==================== Functions ====================

    def register(
        self,
        name: str,
        func: Callable[..., Any],
        *,
        arity: int | None = None,
        description: str = "",
    ) -> FunctionDescriptor:
        """
        Register a function.

        Args:
            name: Name widgets use in InterfaceConnection.function_name
            func: The callable
            arity: Parameter count; inferred from the signature if omitted
            description: Shown in diagnostics

        Raises:
            DomainError: If (name, arity) is already registered
        """
        if not name or not isinstance(name, str):
            raise DomainError(f"Function must have a valid name: {func!r}")

        arity = positional_arity(func) if arity is None else arity
        key = (name, arity)
        if key in self._functions:
            raise DomainError(f"Function '{name}/{arity}' already registered")

        descriptor = FunctionDescriptor(name=name, func=func, arity=arity, description=description)
        self._functions[key] = descriptor
        logger.info(f"[domain] Registered function: {name}/{arity}")
        return descriptor

    def function(
        self,
        name: str | None = None,
        *,
        arity: int | None = None,
        description: str = "",
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of register()."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.register(name or func.__name__, func, arity=arity, description=description)
            return func

        return decorator

    def unregister(self, name: str, arity: int) -> bool:
        if (name, arity) in self._functions:
            del self._functions[(name, arity)]
            logger.info(f"[domain] Unregistered function: {name}/{arity}")
            return True
        return False

    def has_function(self, name: str, arity: int) -> bool:
        return (name, arity) in self._functions

    def get_function(self, name: str, arity: int) -> FunctionDescriptor | None:
        return self._functions.get((name, arity))

    def invoke(self, name: str, args: Sequence[Any]) -> Any:
        """
        Invoke a registered function.

        Raises:
            FunctionNotFoundError: If (name, len(args)) is not registered
            Exception: Whatever the function raises
        """
        descriptor = self._functions.get((name, len(args)))
        if descriptor is None:
            raise FunctionNotFoundError(name, len(args))
        return descriptor(*args)

    def list_functions(self) -> list[str]:
        return [f"{name}/{arity}" for name, arity in self._functions]

    # ==================== Resources ====================

    def register_resource(
        self,
        resource_id: str,
        model: type[BaseModel] | None = None,
        *,
        fetch: Callable[[Any], Any] | None = None,
    ) -> ResourceDefinition:
        """
        Register a resource.

        Args:
            resource_id: Name used in connections
            model: pydantic model for forms; None gives schema-less forms
            fetch: Loads a record by id, returning None when absent
        """
        if resource_id in self._resources:
            raise DomainError(f"Resource '{resource_id}' already registered")
        definition = ResourceDefinition(resource_id=resource_id, model=model, fetch=fetch)
        self._resources[resource_id] = definition
        logger.info(f"[domain] Registered resource: {resource_id}")
        return definition

    def register_action(
        self,
        resource_id: str,
        name: str,
        func: Callable[..., Any],
        *,
        type: ActionType = ActionType.UPDATE,
    ) -> ResourceAction:
        resource = self.get_resource(resource_id)
        if name in resource.actions:
            raise DomainError(f"Action '{resource_id}.{name}' already registered")
        action = ResourceAction(name=name, type=ActionType(type), func=func)
        resource.actions[name] = action
        logger.info(f"[domain] Registered action: {resource_id}.{name} ({action.type.value})")
        return action

    def action(
        self,
        resource_id: str,
        name: str | None = None,
        *,
        type: ActionType = ActionType.UPDATE,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of register_action()."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.register_action(resource_id, name or func.__name__, func, type=type)
            return func

        return decorator

    def get_resource(self, resource_id: str) -> ResourceDefinition:
        resource = self._resources.get(resource_id)
        if resource is None:
            available = list(self._resources.keys())
            raise UnknownResourceError(
                f"Resource '{resource_id}' not found. Available resources: {available}"
            )
        return resource

    def get_action(
        self,
        resource: ResourceDefinition,
        name: str,
        *,
        types: tuple[ActionType, ...] | None = None,
    ) -> ResourceAction:
        action = resource.actions.get(name)
        if action is None or (types is not None and action.type not in types):
            raise UnknownActionError(
                f"Resource '{resource.resource_id}' has no "
                f"{'/'.join(t.value for t in types) + ' ' if types else ''}action '{name}'"
            )
        return action

    def resolve_record(self, record_ref: Any) -> tuple[ResourceDefinition, Any]:
        """
        Find the resource and record a reference points at.

        A reference is a RecordRef, or a model instance of a registered
        resource.

        Raises:
            UnknownResourceError: If no resource matches
            RecordNotFoundError: If fetch returns None
        """
        if isinstance(record_ref, RecordRef):
            resource = self.get_resource(record_ref.resource_id)
            if resource.fetch is None:
                raise UnknownResourceError(
                    f"Resource '{resource.resource_id}' does not support fetching records"
                )
            record = resource.fetch(record_ref.record_id)
            if record is None:
                raise RecordNotFoundError(
                    f"Record '{record_ref.record_id}' not found in '{resource.resource_id}'"
                )
            return resource, record

        for resource in self._resources.values():
            if resource.model is not None and isinstance(record_ref, resource.model):
                return resource, record_ref

        raise UnknownResourceError(f"No resource registered for record {record_ref!r}")

    # ==================== Forms ====================

    def create_form(self, resource_id: str, action: str) -> FormHandle:
        resource = self.get_resource(resource_id)
        bound = self.get_action(resource, action, types=(ActionType.CREATE,))

        if resource.model is None:
            return MapForm(action, commit=bound.func)
        return ModelForm(resource.model, action, commit=bound.func)

    def update_form(self, record_ref: Any, action: str) -> FormHandle:
        resource, record = self.resolve_record(record_ref)
        bound = self.get_action(resource, action, types=(ActionType.UPDATE,))

        def commit(data: Any) -> Any:
            return bound.func(record, data)

        if resource.model is None:
            return MapForm(action, values=_as_dict(record), commit=commit)
        return ModelForm(resource.model, action, commit=commit, record=record)

    # ==================== Actions ====================

    def run_action(self, action: str, record_ref: Any, params: Mapping[str, Any]) -> Any:
        """
        Execute a declared action.

        ``record_ref`` may be a resource id (for create actions), a
        RecordRef or a model instance.
        """
        if isinstance(record_ref, str):
            resource = self.get_resource(record_ref)
            bound = self.get_action(resource, action, types=(ActionType.CREATE,))
            return bound.func(self._build_data(resource, dict(params)))

        resource, record = self.resolve_record(record_ref)
        bound = self.get_action(resource, action)

        if bound.type == ActionType.DESTROY:
            return bound.func(record)
        if bound.type == ActionType.UPDATE:
            return bound.func(record, self._build_data(resource, {**_as_dict(record), **params}))
        return bound.func(self._build_data(resource, dict(params)))

    def _build_data(self, resource: ResourceDefinition, values: dict[str, Any]) -> Any:
        if resource.model is None:
            return values
        return resource.model.model_validate(values)

    def __contains__(self, name: str) -> bool:
        return any(fn_name == name for fn_name, _ in self._functions)

    def __repr__(self) -> str:
        return f"<Domain name={self.name!r} functions={self.list_functions()}>"


def _as_dict(record: Any) -> dict[str, Any]:
    if isinstance(record, BaseModel):
        return record.model_dump()
    if isinstance(record, Mapping):
        return dict(record)
    return {}
