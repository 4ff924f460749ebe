"""
Widget lifecycle.

ConnectedWidget is the default implementation a concrete widget delegates
to for its data connection. It calls the resolver at the right points and
owns what the resolution hands out: the active subscription, the form
handle and the stream binding.

States:
    UNINITIALIZED -> RESOLVING -> RESOLVED -> TORN_DOWN
                         ^            |
                         +------------+  (spec change, refresh, invalidate)

Rules:
- The connection kind of an instance never changes. A spec of another
  kind raises ConnectionKindChangedError; WidgetSession recreates the
  widget instead.
- When the key payload changes (topic, resource, record), the old binding
  is released before the new spec is resolved.
- An async resolution that completes after teardown is discarded.
- Teardown releases the subscription exactly once and drops handles.

Usage:
    widget = ConnectedWidget(SubscriptionConnection(topic="orders"))
    widget.mount(context)
    widget.deliver("orders", {"id": 1})
    widget.teardown()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from .debug import DebugInfo, debug_info
from .errors import (
    ConnectionKindChangedError,
    WidgetBusyError,
    WidgetLinkError,
    WidgetTornDownError,
)
from .mode import ConnectionMode, detect_mode
from .resolver import ConnectionResolver, get_resolver
from .specs import SubscriptionConnection, same_binding
from .state import Effect, EffectType, Resolution, ResolvedState

if TYPE_CHECKING:
    from widgetlink.session.context import PubSubClient, SessionContext

    from .specs import ConnectionSpec

logger = logging.getLogger(__name__)

MessageCallback = Callable[["ConnectedWidget", Any], Any]


class WidgetStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    TORN_DOWN = "torn_down"


class ConnectedWidget:
    """
    Connection lifecycle for one widget instance.

    Args:
        spec: Connection declaration
        widget_id: Identifier used in logs and diagnostics
        widget_name: Name shown in the debug overlay
        resolver: Resolver to use (shared default if omitted)
        on_message: Called with (widget, message) for accepted deliveries
    """

    def __init__(
        self,
        spec: ConnectionSpec,
        *,
        widget_id: str | None = None,
        widget_name: str = "widget",
        resolver: ConnectionResolver | None = None,
        on_message: MessageCallback | None = None,
    ):
        self.widget_id = widget_id or uuid4().hex[:8]
        self.widget_name = widget_name
        self.on_message = on_message
        self.last_message: Any = None
        self.messages_received = 0

        self._spec = spec
        self._resolver = resolver or get_resolver()
        self._status = WidgetStatus.UNINITIALIZED
        self._state: ResolvedState | None = None
        self._stale = False
        self._in_flight = False

        # What is actually registered on the pubsub client
        self._active_topic: str | None = None
        self._pubsub: PubSubClient | None = None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def spec(self) -> ConnectionSpec:
        return self._spec

    @property
    def state(self) -> ResolvedState | None:
        return self._state

    @property
    def status(self) -> WidgetStatus:
        return self._status

    @property
    def mode(self) -> ConnectionMode:
        return detect_mode(self._spec)

    @property
    def active_topic(self) -> str | None:
        return self._active_topic

    @property
    def is_torn_down(self) -> bool:
        return self._status == WidgetStatus.TORN_DOWN

    # =========================================================================
    # Lifecycle (sync)
    # =========================================================================

    def mount(self, context: SessionContext) -> ResolvedState:
        """First resolution, with no previous state."""
        self._ensure_alive()
        if self._status != WidgetStatus.UNINITIALIZED:
            raise WidgetLinkError(f"Widget '{self.widget_id}' is already mounted")

        logger.debug(f"[widget:{self.widget_id}] mount {type(self._spec).__name__}")
        self._status = WidgetStatus.RESOLVING
        resolution = self._resolver.resolve(self._spec, context, None)
        return self._accept(resolution, context)

    def update(self, spec: ConnectionSpec, context: SessionContext) -> ResolvedState:
        """
        Re-resolve with a freshly supplied spec.

        Structurally equal specs return the current state untouched.

        Raises:
            ConnectionKindChangedError: If the spec is of another kind
            WidgetTornDownError: If the widget was torn down
        """
        previous = self._prepare_update(spec)
        if self._status == WidgetStatus.UNINITIALIZED:
            return self.mount(context)

        self._status = WidgetStatus.RESOLVING
        resolution = self._resolver.resolve(self._spec, context, previous, force=self._stale)
        return self._accept(resolution, context)

    def refresh(self, context: SessionContext) -> ResolvedState:
        """Re-resolve the current spec even though it has not changed."""
        self.invalidate()
        return self.update(self._spec, context)

    def invalidate(self) -> None:
        """Mark the cached state stale; the next update re-resolves."""
        self._ensure_alive()
        self._stale = True

    def teardown(self) -> tuple[Effect, ...]:
        """
        Destroy the instance.

        Returns:
            Effects applied on the way out (at most one unsubscribe)
        """
        if self._status == WidgetStatus.TORN_DOWN:
            return ()

        effects = self._release()
        self._state = None
        self._status = WidgetStatus.TORN_DOWN
        logger.debug(f"[widget:{self.widget_id}] torn down")
        return effects

    # =========================================================================
    # Lifecycle (async)
    # =========================================================================

    async def mount_async(self, context: SessionContext) -> ResolvedState | None:
        """Async mount; returns None if the widget was torn down meanwhile."""
        self._ensure_alive()
        if self._status != WidgetStatus.UNINITIALIZED:
            raise WidgetLinkError(f"Widget '{self.widget_id}' is already mounted")
        return await self._resolve_async(context, None, force=False)

    async def update_async(
        self,
        spec: ConnectionSpec,
        context: SessionContext,
    ) -> ResolvedState | None:
        previous = self._prepare_update(spec)
        if self._status == WidgetStatus.UNINITIALIZED:
            return await self.mount_async(context)
        return await self._resolve_async(context, previous, force=self._stale)

    async def _resolve_async(
        self,
        context: SessionContext,
        previous: ResolvedState | None,
        *,
        force: bool,
    ) -> ResolvedState | None:
        if self._in_flight:
            raise WidgetBusyError(f"Widget '{self.widget_id}' already has a resolution in flight")

        spec = self._spec
        self._in_flight = True
        self._status = WidgetStatus.RESOLVING
        if not self._resolver.can_reuse(spec, previous, force=force):
            self._state = ResolvedState.pending(spec)
        try:
            resolution = await self._resolver.resolve_async(spec, context, previous, force=force)
        finally:
            self._in_flight = False

        if self._status == WidgetStatus.TORN_DOWN:
            logger.debug(f"[widget:{self.widget_id}] discarding result after teardown")
            return None
        return self._accept(resolution, context)

    # =========================================================================
    # Delivery
    # =========================================================================

    def deliver(self, topic: str, message: Any) -> bool:
        """
        Offer a published message to this widget.

        Accepted only when the widget is subscribed to the topic and the
        subscription filter passes. Delivery never re-resolves.
        """
        if self.is_torn_down or topic != self._active_topic:
            return False

        spec = self._spec
        if isinstance(spec, SubscriptionConnection) and not spec.accepts(message):
            return False

        self.last_message = message
        self.messages_received += 1
        if self.on_message is not None:
            self.on_message(self, message)
        return True

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def debug_info(self) -> DebugInfo:
        return debug_info(self._spec, self._state, self.widget_name)

    def describe(self) -> dict[str, Any]:
        return {
            "widget_id": self.widget_id,
            "widget_name": self.widget_name,
            "status": self._status.value,
            "mode": self.mode.value,
            "active_topic": self._active_topic,
            "state": self._state.to_dict() if self._state else None,
            "debug": self.debug_info().to_dict(),
        }

    # =========================================================================
    # Internals
    # =========================================================================

    def _ensure_alive(self) -> None:
        if self._status == WidgetStatus.TORN_DOWN:
            raise WidgetTornDownError(f"Widget '{self.widget_id}' has been torn down")

    def _prepare_update(self, spec: ConnectionSpec) -> ResolvedState | None:
        """Swap in the new spec, releasing the old binding if its key changed."""
        self._ensure_alive()
        if type(spec) is not type(self._spec):
            raise ConnectionKindChangedError(
                type(self._spec).__name__, type(spec).__name__
            )

        previous = self._state
        if self._status != WidgetStatus.UNINITIALIZED and not same_binding(self._spec, spec):
            logger.debug(f"[widget:{self.widget_id}] key payload changed, releasing binding")
            self._release()
            previous = None

        self._spec = spec
        return previous

    def _accept(self, resolution: Resolution, context: SessionContext) -> ResolvedState:
        self._apply(resolution.effects, context)
        self._state = resolution.state
        self._stale = False
        self._status = WidgetStatus.RESOLVED
        return resolution.state

    def _apply(self, effects: tuple[Effect, ...], context: SessionContext) -> None:
        for effect in effects:
            if effect.type == EffectType.SUBSCRIBE:
                if self._active_topic == effect.topic:
                    continue
                if context.pubsub is None:
                    logger.warning(
                        f"[widget:{self.widget_id}] cannot subscribe to {effect.topic}: "
                        "session has no pubsub client"
                    )
                    continue
                if self._active_topic is not None:
                    self._release()
                effect.apply(context.pubsub)
                self._active_topic = effect.topic
                self._pubsub = context.pubsub
            elif effect.topic == self._active_topic:
                self._release()

    def _release(self) -> tuple[Effect, ...]:
        """Undo the active registration; drop handle references."""
        if self._active_topic is None:
            return ()

        resolved = self._state if self._state and not self._state.loading else None
        effects = tuple(
            e for e in self._resolver.teardown(resolved) if e.topic == self._active_topic
        ) or (Effect.unsubscribe(self._active_topic),)

        for effect in effects:
            if self._pubsub is not None:
                effect.apply(self._pubsub)
        self._active_topic = None
        self._pubsub = None
        return effects

    def __repr__(self) -> str:
        return (
            f"ConnectedWidget(id='{self.widget_id}', "
            f"spec={type(self._spec).__name__}, status={self._status.value})"
        )


class WidgetSession:
    """
    All connected widgets of one UI session.

    Processes one event at a time. Routes published messages to
    subscribed widgets and recreates widgets whose connection kind changes.

    Example:
        session = WidgetSession(context)
        session.mount("orders-table", ResourceQueryConnection(resource_id="orders"))
        session.mount("feed", SubscriptionConnection(topic="orders"))
        pubsub.add_listener(session.deliver)
        session.close()
    """

    def __init__(
        self,
        context: SessionContext,
        *,
        resolver: ConnectionResolver | None = None,
    ):
        self._context = context
        self._resolver = resolver or get_resolver()
        self._widgets: dict[str, ConnectedWidget] = {}

    @property
    def context(self) -> SessionContext:
        return self._context

    def mount(
        self,
        widget_id: str,
        spec: ConnectionSpec,
        *,
        widget_name: str = "widget",
        on_message: MessageCallback | None = None,
    ) -> ResolvedState:
        widget = self._create(widget_id, spec, widget_name, on_message)
        return widget.mount(self._context)

    async def mount_async(
        self,
        widget_id: str,
        spec: ConnectionSpec,
        *,
        widget_name: str = "widget",
        on_message: MessageCallback | None = None,
    ) -> ResolvedState | None:
        widget = self._create(widget_id, spec, widget_name, on_message)
        return await widget.mount_async(self._context)

    def update(self, widget_id: str, spec: ConnectionSpec) -> ResolvedState:
        widget = self.get(widget_id)
        try:
            return widget.update(spec, self._context)
        except ConnectionKindChangedError as e:
            logger.info(f"[session] Recreating widget '{widget_id}': {e}")
            return self._recreate(widget, spec).mount(self._context)

    async def update_async(self, widget_id: str, spec: ConnectionSpec) -> ResolvedState | None:
        widget = self.get(widget_id)
        try:
            return await widget.update_async(spec, self._context)
        except ConnectionKindChangedError as e:
            logger.info(f"[session] Recreating widget '{widget_id}': {e}")
            return await self._recreate(widget, spec).mount_async(self._context)

    def refresh(self, widget_id: str) -> ResolvedState:
        return self.get(widget_id).refresh(self._context)

    def reconnect(self, context: SessionContext) -> None:
        """
        Swap the session context (e.g. after the live connection opens).

        Every widget is re-resolved against the new context; unchanged
        widgets reuse their state. Deferred widgets (subscriptions, or
        widgets that lacked a capability) resolve again now.
        """
        self._context = context
        for widget in list(self._widgets.values()):
            widget.update(widget.spec, context)

    def deliver(self, topic: str, message: Any) -> int:
        """Route a message to subscribed widgets. Returns how many accepted it."""
        accepted = 0
        for widget in list(self._widgets.values()):
            if widget.deliver(topic, message):
                accepted += 1
        return accepted

    def teardown(self, widget_id: str) -> tuple[Effect, ...]:
        widget = self._widgets.pop(widget_id, None)
        if widget is None:
            return ()
        return widget.teardown()

    def close(self) -> None:
        for widget_id in list(self._widgets.keys()):
            self.teardown(widget_id)
        logger.debug("[session] closed")

    def get(self, widget_id: str) -> ConnectedWidget:
        widget = self._widgets.get(widget_id)
        if widget is None:
            raise WidgetLinkError(
                f"Widget '{widget_id}' not found. Mounted widgets: {list(self._widgets.keys())}"
            )
        return widget

    def describe(self) -> list[dict[str, Any]]:
        return [widget.describe() for widget in self._widgets.values()]

    def _create(
        self,
        widget_id: str,
        spec: ConnectionSpec,
        widget_name: str,
        on_message: MessageCallback | None,
    ) -> ConnectedWidget:
        if widget_id in self._widgets:
            raise WidgetLinkError(f"Widget '{widget_id}' already mounted")
        widget = ConnectedWidget(
            spec,
            widget_id=widget_id,
            widget_name=widget_name,
            resolver=self._resolver,
            on_message=on_message,
        )
        self._widgets[widget_id] = widget
        return widget

    def _recreate(self, widget: ConnectedWidget, spec: ConnectionSpec) -> ConnectedWidget:
        widget.teardown()
        del self._widgets[widget.widget_id]
        return self._create(widget.widget_id, spec, widget.widget_name, widget.on_message)

    def __len__(self) -> int:
        return len(self._widgets)

    def __contains__(self, widget_id: str) -> bool:
        return widget_id in self._widgets

    def __repr__(self) -> str:
        return f"<WidgetSession widgets={list(self._widgets.keys())}>"
