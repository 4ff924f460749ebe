"""
Resolved state and pending effects.

ResolvedState is the single output shape consumed by rendering. The
resolver never mutates a state; it returns a new one, or the previous one
verbatim when the spec has not changed.

Effects are the side effects the caller must apply after a resolution
(subscribe/unsubscribe on the session's pubsub client). Keeping them out
of the resolver lets it stay free of I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from widgetlink.forms.handle import FormHandle
    from widgetlink.session.streams import StreamRef

    from .errors import ErrorInfo
    from .specs import ConnectionSpec


@dataclass(frozen=True, slots=True)
class ActionConfig:
    """Declared action/record pair, executed later by a user event."""

    action: str
    record_ref: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.action, "record_ref": self.record_ref}


@dataclass(frozen=True, kw_only=True, slots=True)
class ResolvedState:
    """
    Render-ready state for one widget.

    Invariants:
    - error is not None implies loading is False
    - has_data is True only after a successful interface or query resolution

    ``source`` is the spec this state was resolved from, used to detect
    structurally unchanged declarations. ``deferred`` marks a resolution
    that was postponed for lack of a capability (a subscription while
    disconnected, or a domain call with no domain handle); deferred states
    are never reused.
    """

    loading: bool = False
    error: ErrorInfo | None = None
    data: Any = None
    has_data: bool = False
    form: FormHandle | None = None
    stream: StreamRef | None = None
    action_config: ActionConfig | None = None
    subscription_topic: str | None = None
    source: ConnectionSpec | None = None
    deferred: bool = False

    def __post_init__(self) -> None:
        if self.error is not None and self.loading:
            raise ValueError("ResolvedState cannot be loading and failed at the same time")

    @classmethod
    def pending(cls, source: ConnectionSpec | None = None) -> ResolvedState:
        """State a host shows while an async capability is outstanding."""
        return cls(loading=True, source=source)

    @classmethod
    def failed(cls, error: ErrorInfo, source: Any = None) -> ResolvedState:
        return cls(loading=False, error=error, source=source)

    @property
    def ok(self) -> bool:
        return self.error is None and not self.loading

    def with_source(self, source: ConnectionSpec) -> ResolvedState:
        return replace(self, source=source)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for rendering and diagnostics."""
        return {
            "loading": self.loading,
            "error": self.error.to_dict() if self.error else None,
            "data": self.data if self.has_data else None,
            "has_data": self.has_data,
            "has_form": self.form is not None,
            "stream": self.stream.name if self.stream else None,
            "action_config": self.action_config.to_dict() if self.action_config else None,
            "subscription_topic": self.subscription_topic,
            "deferred": self.deferred,
        }


class EffectType(str, Enum):
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"


@dataclass(frozen=True, slots=True)
class Effect:
    """A side effect the caller applies after resolution or teardown."""

    type: EffectType
    topic: str

    @classmethod
    def subscribe(cls, topic: str) -> Effect:
        return cls(EffectType.SUBSCRIBE, topic)

    @classmethod
    def unsubscribe(cls, topic: str) -> Effect:
        return cls(EffectType.UNSUBSCRIBE, topic)

    def apply(self, pubsub: Any) -> None:
        if self.type == EffectType.SUBSCRIBE:
            pubsub.subscribe(self.topic)
        else:
            pubsub.unsubscribe(self.topic)


@dataclass(frozen=True, slots=True)
class Resolution:
    """Result of a resolve call: the new state plus effects to apply."""

    state: ResolvedState
    effects: tuple[Effect, ...] = field(default=())
    # True when the previous state was returned verbatim
    reused: bool = False
