"""
Connection Resolver.

Turns a ConnectionSpec plus a SessionContext into a ResolvedState and a
list of pending effects.

Design Principle:
    The resolver never raises. Every failure is captured into
    ResolvedState.error and returned normally; the host decides whether
    to display it, log it or retry.

Flow:
    1. If the spec is structurally equal to the one the previous state was
       resolved from, return the previous state verbatim (no capability
       calls, no effects)
    2. Dispatch on the variant class to its handler
    3. Handlers that call a capability (interface, resource query) return
       a pending call; resolve() runs it directly and resolve_async()
       awaits it when the capability is asynchronous
    4. Return Resolution(state, effects)

Usage:
    resolver = ConnectionResolver()

    resolution = resolver.resolve(spec, context)
    for effect in resolution.effects:
        effect.apply(context.pubsub)

    # Next render with the same declaration: nothing is re-run
    again = resolver.resolve(spec, context, previous=resolution.state)
    assert again.state is resolution.state
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from widgetlink.config import WidgetSettings, get_settings
from widgetlink.session.query import Query, QueryResult
from widgetlink.session.streams import StreamRef

from .errors import DomainLookupError, ErrorInfo, FunctionNotFoundError, QueryError
from .mode import ConnectionMode, detect_mode
from .specs import (
    ActionConnection,
    Connection,
    FormCreateConnection,
    FormUpdateConnection,
    InterfaceConnection,
    ResourceQueryConnection,
    StaticConnection,
    StreamConnection,
    SubscriptionConnection,
)
from .state import ActionConfig, Effect, Resolution, ResolvedState

if TYPE_CHECKING:
    from widgetlink.session.context import SessionContext

    from .specs import ConnectionSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _PendingCall:
    """A capability call prepared by a handler, run by resolve()/resolve_async()."""

    run: Callable[[], Any]
    complete: Callable[[Any], ResolvedState]
    fail: Callable[[Exception], ResolvedState]


Handler = Callable[[Any, "SessionContext"], "Resolution | _PendingCall"]


class ConnectionResolver:
    """
    Resolves connection specs against a session context.

    Stateless apart from settings: one resolver can serve every widget in
    every session.
    """

    def __init__(self, *, settings: WidgetSettings | None = None):
        self._settings = settings if settings is not None else get_settings()
        self._handlers: dict[type, Handler] = {
            StaticConnection: self._resolve_static,
            InterfaceConnection: self._resolve_interface,
            ResourceQueryConnection: self._resolve_resource_query,
            StreamConnection: self._resolve_stream,
            FormCreateConnection: self._resolve_form_create,
            FormUpdateConnection: self._resolve_form_update,
            ActionConnection: self._resolve_action,
            SubscriptionConnection: self._resolve_subscription,
        }

    # =========================================================================
    # Public API
    # =========================================================================

    def resolve(
        self,
        spec: ConnectionSpec,
        context: SessionContext,
        previous: ResolvedState | None = None,
        *,
        force: bool = False,
    ) -> Resolution:
        """
        Resolve a spec synchronously.

        Args:
            spec: Connection declaration
            context: Session capabilities
            previous: State from the last resolution of this widget
            force: Re-resolve even if the spec is unchanged (refresh)

        Returns:
            Resolution with the new state and effects to apply
        """
        if self.can_reuse(spec, previous, force=force):
            logger.debug(f"[resolver] Reusing state for unchanged {type(spec).__name__}")
            return Resolution(state=previous, reused=True)

        step = self._dispatch(spec, context)
        if isinstance(step, Resolution):
            return step

        try:
            result = step.run()
        except Exception as e:
            return Resolution(state=step.fail(e))

        if inspect.isawaitable(result):
            if hasattr(result, "close"):
                result.close()
            return Resolution(
                state=self._invalid(
                    spec,
                    "Capability returned an awaitable; use resolve_async() for async sessions",
                )
            )

        return Resolution(state=self._complete(step, result))

    async def resolve_async(
        self,
        spec: ConnectionSpec,
        context: SessionContext,
        previous: ResolvedState | None = None,
        *,
        force: bool = False,
    ) -> Resolution:
        """
        Resolve a spec, awaiting asynchronous capabilities.

        The only suspension point is the awaited domain/query call. Hosts
        show ResolvedState.pending(spec) until this returns.
        """
        if self.can_reuse(spec, previous, force=force):
            logger.debug(f"[resolver] Reusing state for unchanged {type(spec).__name__}")
            return Resolution(state=previous, reused=True)

        step = self._dispatch(spec, context)
        if isinstance(step, Resolution):
            return step

        try:
            result = step.run()
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            return Resolution(state=step.fail(e))

        return Resolution(state=self._complete(step, result))

    def teardown(self, state: ResolvedState | None) -> tuple[Effect, ...]:
        """
        Effects to apply when a widget is destroyed or rebound.

        Exactly one unsubscribe for an active subscription; nothing
        otherwise. Form and stream references are simply dropped.
        """
        if state is not None and state.subscription_topic:
            return (Effect.unsubscribe(state.subscription_topic),)
        return ()

    def can_reuse(
        self,
        spec: Any,
        previous: ResolvedState | None,
        *,
        force: bool = False,
    ) -> bool:
        """
        Check whether the previous state stands for this spec.

        Pending and deferred states are never reused: they describe work
        that has not happened yet. A state that failed for lack of a
        context capability is deferred too.
        """
        if force or previous is None or previous.source is None:
            return False
        if previous.loading or previous.deferred:
            return False
        return type(previous.source) is type(spec) and previous.source == spec

    def mode(self, spec: Any) -> ConnectionMode:
        return detect_mode(spec)

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _dispatch(self, spec: Any, context: SessionContext) -> Resolution | _PendingCall:
        handler = next(
            (self._handlers[cls] for cls in type(spec).__mro__ if cls in self._handlers),
            None,
        )
        if handler is None:
            return Resolution(
                state=self._invalid(spec, f"Unknown connection type: {type(spec).__name__}")
            )

        problem = spec.validate()
        if problem:
            return Resolution(state=self._invalid(spec, problem))

        try:
            return handler(spec, context)
        except Exception as e:
            logger.error(
                f"[resolver] Unexpected error resolving {type(spec).__name__}: {e}",
                exc_info=True,
            )
            return Resolution(state=self._invalid(spec, f"Could not resolve connection: {e}"))

    def _complete(self, step: _PendingCall, result: Any) -> ResolvedState:
        try:
            return step.complete(result)
        except Exception as e:
            return step.fail(e)

    def _invalid(self, spec: Any, description: str) -> ResolvedState:
        logger.log(
            self._settings.invalid_spec_log_level,
            f"[resolver] Invalid connection spec {spec!r}: {description}",
        )
        source = spec if isinstance(spec, Connection) else None
        return ResolvedState.failed(ErrorInfo.invalid_spec(description), source=source)

    def _missing_capability(self, spec: Any, description: str) -> ResolvedState:
        # Retried on the next update; a live context may supply the capability
        return replace(self._invalid(spec, description), deferred=True)

    # =========================================================================
    # Handlers
    # =========================================================================

    def _resolve_static(self, spec: StaticConnection, context: SessionContext) -> Resolution:
        return Resolution(state=ResolvedState(source=spec))

    def _resolve_interface(
        self,
        spec: InterfaceConnection,
        context: SessionContext,
    ) -> Resolution | _PendingCall:
        domain = context.domain
        if domain is None:
            return Resolution(
                state=self._missing_capability(
                    spec, "Interface connection requires a domain handle"
                )
            )

        if not domain.has_function(spec.function_name, spec.arity):
            logger.info(
                f"[resolver] Function not found: {spec.function_name}/{spec.arity}"
            )
            return Resolution(
                state=ResolvedState.failed(
                    ErrorInfo.function_not_found(spec.function_name, spec.arity),
                    source=spec,
                )
            )

        def fail(exc: Exception) -> ResolvedState:
            if isinstance(exc, FunctionNotFoundError):
                error = ErrorInfo.function_not_found(spec.function_name, spec.arity)
            else:
                logger.warning(
                    f"[resolver] {spec.function_name}/{spec.arity} failed: "
                    f"{type(exc).__name__}: {exc}"
                )
                error = ErrorInfo.invocation_failed(exc, function_name=spec.function_name)
            return ResolvedState.failed(error, source=spec)

        return _PendingCall(
            run=lambda: domain.invoke(spec.function_name, spec.args),
            complete=lambda data: ResolvedState(data=data, has_data=True, source=spec),
            fail=fail,
        )

    def _resolve_resource_query(
        self,
        spec: ResourceQueryConnection,
        context: SessionContext,
    ) -> Resolution | _PendingCall:
        if context.domain is None:
            return Resolution(
                state=self._missing_capability(spec, "Resource query requires a domain handle")
            )
        executor = context.query_executor
        if executor is None:
            return Resolution(
                state=self._missing_capability(spec, "Resource query requires a query executor")
            )

        try:
            query = Query.from_connection(spec)
        except QueryError as e:
            return Resolution(
                state=ResolvedState.failed(
                    ErrorInfo.query_failed(str(e), resource_id=spec.resource_id),
                    source=spec,
                )
            )

        def complete(result: QueryResult) -> ResolvedState:
            if not result.ok:
                logger.info(f"[resolver] Query on {spec.resource_id} failed: {result.error}")
                return ResolvedState.failed(
                    ErrorInfo.query_failed(
                        result.error or "Query failed",
                        **{**result.details, "resource_id": spec.resource_id},
                    ),
                    source=spec,
                )
            return ResolvedState(data=list(result.rows), has_data=True, source=spec)

        def fail(exc: Exception) -> ResolvedState:
            logger.warning(
                f"[resolver] Query executor raised for {spec.resource_id}: "
                f"{type(exc).__name__}: {exc}"
            )
            return ResolvedState.failed(
                ErrorInfo.query_failed(
                    str(exc) or type(exc).__name__,
                    resource_id=spec.resource_id,
                    exception_type=type(exc).__name__,
                ),
                source=spec,
            )

        return _PendingCall(
            run=lambda: executor.execute(spec.resource_id, query),
            complete=complete,
            fail=fail,
        )

    def _resolve_stream(self, spec: StreamConnection, context: SessionContext) -> Resolution:
        if context.streams is not None:
            ref = context.streams.bind(spec.stream_name)
        else:
            ref = StreamRef(name=spec.stream_name)
        return Resolution(state=ResolvedState(stream=ref, source=spec))

    def _resolve_form_create(
        self,
        spec: FormCreateConnection,
        context: SessionContext,
    ) -> Resolution:
        if context.domain is None:
            return Resolution(
                state=self._missing_capability(spec, "Form connection requires a domain handle")
            )
        return self._build_form(
            spec, lambda: context.domain.create_form(spec.resource_id, spec.action)
        )

    def _resolve_form_update(
        self,
        spec: FormUpdateConnection,
        context: SessionContext,
    ) -> Resolution:
        if context.domain is None:
            return Resolution(
                state=self._missing_capability(spec, "Form connection requires a domain handle")
            )
        return self._build_form(
            spec, lambda: context.domain.update_form(spec.record_ref, spec.action)
        )

    def _build_form(self, spec: Any, build: Callable[[], Any]) -> Resolution:
        try:
            form = build()
        except DomainLookupError as e:
            return Resolution(state=self._invalid(spec, str(e)))
        except Exception as e:
            logger.warning(f"[resolver] Form construction failed: {type(e).__name__}: {e}")
            return Resolution(
                state=ResolvedState.failed(ErrorInfo.invocation_failed(e), source=spec)
            )
        return Resolution(state=ResolvedState(form=form, source=spec))

    def _resolve_action(self, spec: ActionConnection, context: SessionContext) -> Resolution:
        config = ActionConfig(action=spec.action, record_ref=spec.record_ref)
        return Resolution(state=ResolvedState(action_config=config, source=spec))

    def _resolve_subscription(
        self,
        spec: SubscriptionConnection,
        context: SessionContext,
    ) -> Resolution:
        if not context.connected:
            # Pre-render and static phases must not register on the network
            logger.debug(f"[resolver] Deferring subscription to {spec.topic}: not connected")
            return Resolution(
                state=ResolvedState(subscription_topic=None, deferred=True, source=spec)
            )

        return Resolution(
            state=ResolvedState(subscription_topic=spec.topic, source=spec),
            effects=(Effect.subscribe(spec.topic),),
        )


_default_resolver: ConnectionResolver | None = None


def get_resolver() -> ConnectionResolver:
    """Shared resolver instance using the cached settings."""
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = ConnectionResolver()
    return _default_resolver


def resolve(
    spec: ConnectionSpec,
    context: SessionContext,
    previous: ResolvedState | None = None,
    *,
    force: bool = False,
) -> Resolution:
    """Module-level shortcut for get_resolver().resolve()."""
    return get_resolver().resolve(spec, context, previous, force=force)
