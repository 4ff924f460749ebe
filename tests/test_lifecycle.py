"""
Tests for ConnectedWidget and WidgetSession.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from widgetlink.connections import (
    ConnectedWidget,
    ConnectionKindChangedError,
    ConnectionResolver,
    Effect,
    ErrorKind,
    FormCreateConnection,
    InterfaceConnection,
    ResourceQueryConnection,
    StaticConnection,
    StreamConnection,
    SubscriptionConnection,
    WidgetBusyError,
    WidgetLinkError,
    WidgetSession,
    WidgetStatus,
    WidgetTornDownError,
)
from widgetlink.session import SessionContext


class TestWidgetMount:
    """Tests for mount/update/refresh."""

    def test_mount_resolves(self, resolver, context):
        widget = ConnectedWidget(InterfaceConnection(function_name="list_users"), resolver=resolver)

        state = widget.mount(context)

        assert widget.status == WidgetStatus.RESOLVED
        assert state.has_data is True
        assert len(state.data) == 2

    def test_mount_twice_rejected(self, resolver, context):
        widget = ConnectedWidget(StaticConnection(), resolver=resolver)
        widget.mount(context)

        with pytest.raises(WidgetLinkError, match="already mounted"):
            widget.mount(context)

    def test_update_before_mount_mounts(self, resolver, context):
        widget = ConnectedWidget(StreamConnection(stream_name="a"), resolver=resolver)

        state = widget.update(StreamConnection(stream_name="b"), context)

        assert state.stream.name == "b"
        assert widget.status == WidgetStatus.RESOLVED

    def test_update_with_equal_spec_reuses_state(self, context):
        resolver = MagicMock(wraps=ConnectionResolver())
        widget = ConnectedWidget(
            ResourceQueryConnection(resource_id="users", limit=2), resolver=resolver
        )
        first = widget.mount(context)

        second = widget.update(ResourceQueryConnection(resource_id="users", limit=2), context)

        assert second is first
        assert len(context.query_executor.executed) == 1

    def test_refresh_forces_resolution(self, resolver, context):
        widget = ConnectedWidget(ResourceQueryConnection(resource_id="users"), resolver=resolver)
        first = widget.mount(context)

        second = widget.refresh(context)

        assert second is not first
        assert second.data == first.data
        assert len(context.query_executor.executed) == 2

    def test_invalidate_makes_next_update_reresolve(self, resolver, context):
        spec = ResourceQueryConnection(resource_id="users")
        widget = ConnectedWidget(spec, resolver=resolver)
        widget.mount(context)

        widget.invalidate()
        widget.update(spec, context)
        widget.update(spec, context)

        assert len(context.query_executor.executed) == 2

    def test_kind_change_raises(self, resolver, context):
        widget = ConnectedWidget(StaticConnection(), resolver=resolver)
        widget.mount(context)

        with pytest.raises(ConnectionKindChangedError) as exc_info:
            widget.update(StreamConnection(stream_name="users"), context)

        assert exc_info.value.old_kind == "StaticConnection"
        assert exc_info.value.new_kind == "StreamConnection"

    def test_failed_resolution_does_not_raise(self, resolver, context):
        widget = ConnectedWidget(InterfaceConnection(function_name="nope"), resolver=resolver)

        state = widget.mount(context)

        assert state.error.kind == ErrorKind.FUNCTION_NOT_FOUND
        assert widget.status == WidgetStatus.RESOLVED


class TestWidgetSubscriptions:
    """Subscription effects applied through the widget."""

    def test_mount_subscribes_once(self, resolver, context, pubsub):
        widget = ConnectedWidget(SubscriptionConnection(topic="orders"), resolver=resolver)

        widget.mount(context)
        widget.update(SubscriptionConnection(topic="orders"), context)
        widget.refresh(context)

        assert pubsub.history == [("subscribe", "orders")]
        assert widget.active_topic == "orders"

    def test_teardown_unsubscribes_exactly_once(self, resolver, context, pubsub):
        widget = ConnectedWidget(SubscriptionConnection(topic="orders"), resolver=resolver)
        widget.mount(context)

        effects = widget.teardown()
        again = widget.teardown()

        assert effects == (Effect.unsubscribe("orders"),)
        assert again == ()
        assert pubsub.history == [("subscribe", "orders"), ("unsubscribe", "orders")]
        assert not pubsub.is_subscribed("orders")

    def test_no_resolution_after_teardown(self, context):
        resolver = MagicMock(wraps=ConnectionResolver())
        widget = ConnectedWidget(SubscriptionConnection(topic="orders"), resolver=resolver)
        widget.mount(context)
        widget.teardown()

        with pytest.raises(WidgetTornDownError):
            widget.update(SubscriptionConnection(topic="orders"), context)
        with pytest.raises(WidgetTornDownError):
            widget.refresh(context)

        assert resolver.resolve.call_count == 1
        assert widget.state is None

    def test_topic_change_releases_old_binding(self, resolver, context, pubsub):
        widget = ConnectedWidget(SubscriptionConnection(topic="orders"), resolver=resolver)
        widget.mount(context)

        state = widget.update(SubscriptionConnection(topic="invoices"), context)

        assert state.subscription_topic == "invoices"
        assert pubsub.history == [
            ("subscribe", "orders"),
            ("unsubscribe", "orders"),
            ("subscribe", "invoices"),
        ]
        assert pubsub.topics == ["invoices"]

    def test_deferred_then_connected(self, resolver, context, pubsub):
        widget = ConnectedWidget(SubscriptionConnection(topic="orders"), resolver=resolver)

        deferred = widget.mount(context.with_connected(False))
        assert deferred.subscription_topic is None
        assert pubsub.history == []

        live = widget.update(SubscriptionConnection(topic="orders"), context)
        assert live.subscription_topic == "orders"
        assert pubsub.history == [("subscribe", "orders")]

    def test_teardown_of_deferred_emits_nothing(self, resolver, pubsub):
        widget = ConnectedWidget(SubscriptionConnection(topic="orders"), resolver=resolver)
        widget.mount(SessionContext(pubsub=pubsub))

        assert widget.teardown() == ()
        assert pubsub.history == []

    def test_connected_without_pubsub_client(self, resolver):
        widget = ConnectedWidget(SubscriptionConnection(topic="orders"), resolver=resolver)

        state = widget.mount(SessionContext(connected=True))

        assert state.subscription_topic == "orders"
        assert widget.active_topic is None
        assert widget.teardown() == ()

    def test_two_widgets_share_topic(self, resolver, context, pubsub):
        a = ConnectedWidget(SubscriptionConnection(topic="orders"), resolver=resolver)
        b = ConnectedWidget(SubscriptionConnection(topic="orders"), resolver=resolver)
        a.mount(context)
        b.mount(context)

        a.teardown()

        assert pubsub.is_subscribed("orders")
        b.teardown()
        assert not pubsub.is_subscribed("orders")


class TestWidgetDelivery:
    """Message delivery to subscribed widgets."""

    def test_deliver_matching_topic(self, resolver, context):
        received = []
        widget = ConnectedWidget(
            SubscriptionConnection(topic="orders"),
            resolver=resolver,
            on_message=lambda w, m: received.append(m),
        )
        widget.mount(context)

        assert widget.deliver("orders", {"id": 1}) is True
        assert widget.deliver("invoices", {"id": 2}) is False

        assert received == [{"id": 1}]
        assert widget.last_message == {"id": 1}
        assert widget.messages_received == 1

    def test_filter_applies_to_delivery(self, resolver, context):
        spec = SubscriptionConnection(topic="orders", filter=lambda m: m["total"] > 100)
        widget = ConnectedWidget(spec, resolver=resolver)
        widget.mount(context)

        assert widget.deliver("orders", {"total": 50}) is False
        assert widget.deliver("orders", {"total": 500}) is True
        assert widget.messages_received == 1

    def test_updated_filter_takes_effect_without_resubscribe(self, resolver, context, pubsub):
        widget = ConnectedWidget(
            SubscriptionConnection(topic="orders", filter=lambda m: False), resolver=resolver
        )
        widget.mount(context)

        widget.update(SubscriptionConnection(topic="orders", filter=lambda m: True), context)

        assert widget.deliver("orders", {"id": 1}) is True
        assert pubsub.history == [("subscribe", "orders")]

    def test_deferred_widget_ignores_messages(self, resolver, static_context):
        widget = ConnectedWidget(SubscriptionConnection(topic="orders"), resolver=resolver)
        widget.mount(static_context)

        assert widget.deliver("orders", {"id": 1}) is False

    def test_torn_down_widget_ignores_messages(self, resolver, context):
        widget = ConnectedWidget(SubscriptionConnection(topic="orders"), resolver=resolver)
        widget.mount(context)
        widget.teardown()

        assert widget.deliver("orders", {"id": 1}) is False


class TestWidgetAsync:
    """Async lifecycle: pending state, discard after teardown, busy guard."""

    @staticmethod
    def gated_domain(gate):
        domain = MagicMock()
        domain.has_function.return_value = True

        async def invoke(name, args):
            await gate.wait()
            return ["ada"]

        domain.invoke.side_effect = invoke
        return domain

    @pytest.mark.asyncio
    async def test_pending_then_resolved(self, resolver):
        gate = asyncio.Event()
        ctx = SessionContext(domain=self.gated_domain(gate))
        widget = ConnectedWidget(InterfaceConnection(function_name="list_users"), resolver=resolver)

        task = asyncio.create_task(widget.mount_async(ctx))
        await asyncio.sleep(0)

        assert widget.status == WidgetStatus.RESOLVING
        assert widget.state.loading is True

        gate.set()
        state = await task

        assert state.loading is False
        assert state.data == ["ada"]

    @pytest.mark.asyncio
    async def test_result_discarded_after_teardown(self, resolver):
        gate = asyncio.Event()
        ctx = SessionContext(domain=self.gated_domain(gate))
        widget = ConnectedWidget(InterfaceConnection(function_name="list_users"), resolver=resolver)

        task = asyncio.create_task(widget.mount_async(ctx))
        await asyncio.sleep(0)
        widget.teardown()
        gate.set()

        assert await task is None
        assert widget.state is None
        assert widget.status == WidgetStatus.TORN_DOWN

    @pytest.mark.asyncio
    async def test_overlapping_resolution_rejected(self, resolver):
        gate = asyncio.Event()
        ctx = SessionContext(domain=self.gated_domain(gate))
        spec = InterfaceConnection(function_name="list_users")
        widget = ConnectedWidget(spec, resolver=resolver)

        task = asyncio.create_task(widget.mount_async(ctx))
        await asyncio.sleep(0)

        with pytest.raises(WidgetBusyError):
            await widget.update_async(spec, ctx)

        gate.set()
        await task

    @pytest.mark.asyncio
    async def test_update_async_reuses_unchanged(self, resolver, context):
        widget = ConnectedWidget(ResourceQueryConnection(resource_id="users"), resolver=resolver)
        first = await widget.mount_async(context)

        second = await widget.update_async(ResourceQueryConnection(resource_id="users"), context)

        assert second is first
        assert len(context.query_executor.executed) == 1


class TestWidgetSession:
    """Tests for WidgetSession."""

    def test_mount_and_describe(self, resolver, context):
        session = WidgetSession(context, resolver=resolver)
        session.mount("users", InterfaceConnection(function_name="list_users"), widget_name="Users")
        session.mount("title", StaticConnection())

        described = {w["widget_id"]: w for w in session.describe()}

        assert len(session) == 2
        assert "users" in session
        assert described["users"]["mode"] == "connected"
        assert described["title"]["mode"] == "static"
        assert described["users"]["debug"]["connection_type"] == "Interface Query"

    def test_duplicate_widget_id_rejected(self, resolver, context):
        session = WidgetSession(context, resolver=resolver)
        session.mount("a", StaticConnection())

        with pytest.raises(WidgetLinkError):
            session.mount("a", StaticConnection())

    def test_unknown_widget(self, resolver, context):
        session = WidgetSession(context, resolver=resolver)
        with pytest.raises(WidgetLinkError, match="not found"):
            session.get("missing")

    def test_kind_change_recreates_widget(self, resolver, context, pubsub):
        session = WidgetSession(context, resolver=resolver)
        session.mount("feed", SubscriptionConnection(topic="orders"))
        original = session.get("feed")

        state = session.update("feed", StreamConnection(stream_name="orders"))

        assert state.stream.name == "orders"
        assert original.is_torn_down
        assert session.get("feed") is not original
        assert pubsub.history == [("subscribe", "orders"), ("unsubscribe", "orders")]

    def test_deliver_routes_to_subscribers(self, resolver, context, pubsub):
        session = WidgetSession(context, resolver=resolver)
        session.mount("a", SubscriptionConnection(topic="orders"))
        session.mount("b", SubscriptionConnection(topic="orders", filter=lambda m: m["id"] > 5))
        session.mount("c", SubscriptionConnection(topic="invoices"))
        pubsub.add_listener(session.deliver)

        assert pubsub.publish("orders", {"id": 1}) == 1
        assert session.get("a").messages_received == 1
        assert session.get("b").messages_received == 0
        assert session.get("c").messages_received == 0

        assert session.deliver("orders", {"id": 9}) == 2

    def test_reconnect_registers_deferred_subscriptions(self, resolver, context, pubsub):
        session = WidgetSession(context.with_connected(False), resolver=resolver)
        session.mount("feed", SubscriptionConnection(topic="orders"))
        session.mount("table", ResourceQueryConnection(resource_id="users"))
        assert pubsub.history == []

        session.reconnect(context)

        assert pubsub.history == [("subscribe", "orders")]
        assert session.get("feed").active_topic == "orders"
        # Unchanged query widget keeps its state
        assert len(context.query_executor.executed) == 1

    def test_reconnect_resolves_widgets_mounted_without_domain(self, resolver, context):
        session = WidgetSession(SessionContext(), resolver=resolver)
        session.mount("users", InterfaceConnection(function_name="list_users"))
        session.mount("signup", FormCreateConnection(resource_id="users", action="register"))
        assert session.get("users").state.error.kind == ErrorKind.INVALID_SPEC

        session.reconnect(context)

        users = session.get("users").state
        signup = session.get("signup").state
        assert users.error is None
        assert users.has_data is True
        assert signup.error is None
        assert signup.form is not None

    def test_close_tears_down_everything(self, resolver, context, pubsub):
        session = WidgetSession(context, resolver=resolver)
        session.mount("a", SubscriptionConnection(topic="orders"))
        session.mount("b", SubscriptionConnection(topic="invoices"))

        session.close()

        assert len(session) == 0
        assert pubsub.topics == []

    def test_teardown_unknown_widget_is_noop(self, resolver, context):
        session = WidgetSession(context, resolver=resolver)
        assert session.teardown("missing") == ()

    @pytest.mark.asyncio
    async def test_async_mount_and_kind_change(self, resolver, context):
        session = WidgetSession(context, resolver=resolver)
        await session.mount_async("w", StaticConnection())

        state = await session.update_async("w", InterfaceConnection(function_name="list_users"))

        assert state.has_data is True
