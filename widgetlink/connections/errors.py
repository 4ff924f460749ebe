"""
Error taxonomy for connection resolution.

Resolution failures never propagate as exceptions out of the resolver.
They are captured as ErrorInfo values on ResolvedState so the widget can
render an error affordance without crashing the session.

The exception classes below are raised by collaborators (domain handle,
query executor, declarative parser) and by lifecycle misuse. The resolver
catches the collaborator ones and maps them to an ErrorKind.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Classification of resolution errors."""

    # Recoverable, display-only
    FUNCTION_NOT_FOUND = "function_not_found"
    INVOCATION_FAILED = "invocation_failed"
    QUERY_FAILED = "query_failed"

    # Programmer error, still rendered at the widget boundary
    INVALID_SPEC = "invalid_spec"


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    """
    Error carried in ResolvedState.error.

    Attributes:
        kind: Classification used for handling decisions
        message: Human-readable description
        details: Extra context (function name, query params, exception class)
    """

    kind: ErrorKind
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def recoverable(self) -> bool:
        """Every resolution error is recoverable at the widget boundary."""
        return True

    @property
    def is_programmer_error(self) -> bool:
        """Invalid specs point at a bug or session misconfiguration."""
        return self.kind == ErrorKind.INVALID_SPEC

    @classmethod
    def function_not_found(cls, name: str, arity: int) -> ErrorInfo:
        return cls(
            kind=ErrorKind.FUNCTION_NOT_FOUND,
            message=f"Function '{name}/{arity}' not found on domain",
            details={"function_name": name, "arity": arity},
        )

    @classmethod
    def invocation_failed(cls, exc: Exception, **details: Any) -> ErrorInfo:
        return cls(
            kind=ErrorKind.INVOCATION_FAILED,
            message=str(exc) or type(exc).__name__,
            details={"exception_type": type(exc).__name__, **details},
        )

    @classmethod
    def query_failed(cls, message: str, **details: Any) -> ErrorInfo:
        return cls(kind=ErrorKind.QUERY_FAILED, message=message, details=details)

    @classmethod
    def invalid_spec(cls, description: str, **details: Any) -> ErrorInfo:
        return cls(kind=ErrorKind.INVALID_SPEC, message=description, details=details)

    def format_user_message(self) -> str:
        """Format a message suitable for the widget's error affordance."""
        if self.kind == ErrorKind.FUNCTION_NOT_FOUND:
            return "This widget is connected to a function that does not exist."
        elif self.kind == ErrorKind.INVOCATION_FAILED:
            return f"Could not load data: {self.message}"
        elif self.kind == ErrorKind.QUERY_FAILED:
            return f"Query failed: {self.message}"
        else:
            return "This widget is misconfigured."

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
        }


def format_error(reason: Any) -> str:
    """
    Normalise an arbitrary failure reason into a display string.

    Example:
        format_error("boom")        # "boom"
        format_error("not_found")   # "Resource not found"
    """
    if isinstance(reason, ErrorInfo):
        return reason.message
    if reason == "not_found":
        return "Resource not found"
    if reason == "unknown_data_source":
        return "Unknown data source type"
    if isinstance(reason, str):
        return reason
    if isinstance(reason, Exception):
        return str(reason) or type(reason).__name__
    return repr(reason)


# =============================================================================
# Exceptions
# =============================================================================


class WidgetLinkError(Exception):
    """Base error for widgetlink."""

    pass


class InvalidSpecError(WidgetLinkError):
    """A connection declaration could not be turned into a ConnectionSpec."""

    pass


class ConnectionKindChangedError(WidgetLinkError):
    """A widget instance was handed a spec of a different connection kind."""

    def __init__(self, old_kind: str, new_kind: str):
        super().__init__(
            f"Connection kind changed from '{old_kind}' to '{new_kind}'; "
            "recreate the widget instead of updating it"
        )
        self.old_kind = old_kind
        self.new_kind = new_kind


class WidgetTornDownError(WidgetLinkError):
    """A lifecycle call was made on a widget that has been torn down."""

    pass


class WidgetBusyError(WidgetLinkError):
    """A resolution was started while another one is still outstanding."""

    pass


class DomainError(WidgetLinkError):
    """Error raised by a domain handle."""

    pass


class FunctionNotFoundError(DomainError):
    """Named function with the requested arity is not registered."""

    def __init__(self, name: str, arity: int):
        super().__init__(f"Function '{name}/{arity}' is not registered")
        self.name = name
        self.arity = arity


class DomainLookupError(DomainError, LookupError):
    """A resource, action or record the domain was asked for does not exist."""

    pass


class UnknownResourceError(DomainLookupError):
    pass


class UnknownActionError(DomainLookupError):
    pass


class RecordNotFoundError(DomainLookupError):
    pass


class QueryError(WidgetLinkError):
    """Raised by query executors for malformed queries."""

    def __init__(self, message: str, *, resource_id: str = "", **details: Any):
        super().__init__(message)
        self.resource_id = resource_id
        self.details = details
