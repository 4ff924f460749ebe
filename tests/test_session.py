"""
Tests for session capabilities: domain registry, queries, streams, pubsub.
"""

import pytest
from pydantic import ValidationError

from widgetlink.connections import (
    DomainError,
    FunctionNotFoundError,
    QueryError,
    RecordNotFoundError,
    ResourceQueryConnection,
    UnknownActionError,
    UnknownResourceError,
)
from widgetlink.session import (
    ActionType,
    Domain,
    InMemoryPubSub,
    InMemoryQueryExecutor,
    Query,
    RecordRef,
    SessionContext,
    StreamCollection,
    StreamStore,
    normalize_sort,
)
from widgetlink.session.context import ActionRunner, DomainHandle


class TestDomainFunctions:
    """Function registry keyed by (name, arity)."""

    def test_register_infers_arity(self):
        domain = Domain()

        @domain.function()
        def list_users(status, limit):
            return [status, limit]

        assert domain.has_function("list_users", 2)
        assert not domain.has_function("list_users", 1)
        assert domain.invoke("list_users", ["active", 5]) == ["active", 5]

    def test_same_name_different_arity(self):
        domain = Domain()
        domain.register("users", lambda: "all")
        domain.register("users", lambda status: status)

        assert domain.invoke("users", []) == "all"
        assert domain.invoke("users", ["active"]) == "active"
        assert domain.list_functions() == ["users/0", "users/1"]
        assert "users" in domain

    def test_duplicate_registration_rejected(self):
        domain = Domain()
        domain.register("users", lambda: [])

        with pytest.raises(DomainError, match="already registered"):
            domain.register("users", lambda: [])

    def test_varargs_need_explicit_arity(self):
        domain = Domain()

        with pytest.raises(DomainError, match="arity"):
            domain.register("sum", lambda *values: sum(values))

        domain.register("sum", lambda *values: sum(values), arity=3)
        assert domain.invoke("sum", (1, 2, 3)) == 6

    def test_invoke_missing_function(self):
        with pytest.raises(FunctionNotFoundError) as exc_info:
            Domain().invoke("missing", [1])

        assert exc_info.value.name == "missing"
        assert exc_info.value.arity == 1

    def test_unregister(self):
        domain = Domain()
        domain.register("users", lambda: [])

        assert domain.unregister("users", 0) is True
        assert domain.unregister("users", 0) is False
        assert not domain.has_function("users", 0)

    def test_satisfies_protocols(self, domain):
        assert isinstance(domain, DomainHandle)
        assert isinstance(domain, ActionRunner)


class TestDomainResources:
    """Resources, actions and records."""

    def test_unknown_resource(self, domain):
        with pytest.raises(UnknownResourceError, match="orders"):
            domain.get_resource("orders")

    def test_action_type_mismatch(self, domain):
        resource = domain.get_resource("users")

        with pytest.raises(UnknownActionError):
            domain.get_action(resource, "rename", types=(ActionType.CREATE,))

    def test_resolve_record_by_ref(self, domain, user_store):
        resource, record = domain.resolve_record(RecordRef("users", 2))

        assert resource.resource_id == "users"
        assert record is user_store[2]

    def test_resolve_record_by_instance(self, domain, user_model):
        user = user_model(id=9, name="Edsger", email="edsger@example.com")

        _, record = domain.resolve_record(user)

        assert record is user

    def test_missing_record(self, domain):
        with pytest.raises(RecordNotFoundError):
            domain.resolve_record(RecordRef("users", 42))

    def test_lookup_errors_are_lookup_errors(self, domain):
        with pytest.raises(LookupError):
            domain.resolve_record("not a record")

    def test_run_create_action(self, domain, user_store, user_model):
        created = domain.run_action(
            "register", "users", {"id": 3, "name": "Alan", "email": "alan@example.com"}
        )

        assert isinstance(created, user_model)
        assert user_store[3].name == "Alan"

    def test_run_update_action_merges_record(self, domain, user_store):
        updated = domain.run_action("rename", RecordRef("users", 1), {"name": "Ada L."})

        assert updated.name == "Ada L."
        assert updated.email == "ada@example.com"

    def test_run_destroy_action(self, domain, user_store):
        domain.run_action("destroy", RecordRef("users", 2), {})
        assert 2 not in user_store

    def test_run_action_validates_params(self, domain):
        with pytest.raises(ValidationError):
            domain.run_action("register", "users", {"id": 3, "name": ""})


class TestQuery:
    """Query building and the in-memory executor."""

    def test_normalize_sort(self):
        assert normalize_sort(None) == ()
        assert normalize_sort("name") == (("name", False),)
        assert normalize_sort(["-age", "name"]) == (("age", True), ("name", False))
        assert normalize_sort({"age": "DESC"}) == (("age", True),)

    @pytest.mark.parametrize("sort", [{"age": "up"}, ["-"], [3], 3.5])
    def test_normalize_sort_rejects_garbage(self, sort):
        with pytest.raises(QueryError):
            normalize_sort(sort)

    def test_steps_follow_fixed_order(self):
        query = Query.for_resource("users").limited(3).loading(["orders"]).sorted("name")

        assert query.steps == ("sort", "load", "limit")

    def test_from_connection(self):
        spec = ResourceQueryConnection(
            resource_id="users", filter={"active": True}, sort=["-age"], load=["orders"], limit=1
        )

        query = Query.from_connection(spec)

        assert query.steps == ("filter", "sort", "load", "limit")
        assert query.to_dict() == {
            "resource_id": "users",
            "filter": {"active": True},
            "sort": ["-age"],
            "load": ["orders"],
            "limit": 1,
        }

    def test_execute_all_steps(self, executor):
        executor.register_loader("users", "orders", lambda user: [f"order-{user['id']}"])
        query = (
            Query.for_resource("users")
            .filtered(lambda row: row["age"] > 30)
            .sorted("name")
            .loading(["orders"])
            .limited(2)
        )

        result = executor.execute("users", query)

        assert result.ok
        assert [row["name"] for row in result.rows] == ["Ada", "Barbara"]
        assert result.rows[0]["orders"] == ["order-1"]

    def test_multi_key_sort(self):
        executor = InMemoryQueryExecutor(
            {"t": [{"a": 1, "b": 2}, {"a": 2, "b": 1}, {"a": 1, "b": 1}]}
        )

        result = executor.execute("t", Query.for_resource("t").sorted(["a", "-b"]))

        assert result.rows == [{"a": 1, "b": 2}, {"a": 1, "b": 1}, {"a": 2, "b": 1}]

    def test_missing_loader_fails(self, executor):
        result = executor.execute("users", Query.for_resource("users").loading(["orders"]))

        assert not result.ok
        assert "orders" in result.error

    def test_model_rows(self, user_store):
        executor = InMemoryQueryExecutor({"users": list(user_store.values())})

        result = executor.execute("users", Query.for_resource("users").filtered({"active": True}))

        assert [user.name for user in result.rows] == ["Ada"]

    def test_unknown_resource(self, executor):
        result = executor.execute("orders", Query.for_resource("orders"))

        assert not result.ok
        assert result.details == {"resource_id": "orders"}


class TestStreams:
    """Host-owned stream collections."""

    def test_insert_update_delete(self):
        users = StreamCollection("users")
        users.reset([{"id": 1, "name": "Ada"}, {"id": 2, "name": "Grace"}])

        users.insert({"id": 3, "name": "Linus"}, at=0)
        users.insert({"id": 1, "name": "Ada L."})

        assert [u["name"] for u in users] == ["Linus", "Ada L.", "Grace"]
        assert users.delete(2) is True
        assert users.delete(2) is False
        assert len(users) == 2
        assert 3 in users

    def test_custom_identity(self):
        tags = StreamCollection("tags", identity=lambda tag: tag)
        tags.insert("python")
        tags.insert("python")
        assert tags.items() == ["python"]

    def test_store_binding(self):
        store = StreamStore()
        ref = store.bind("users")
        store.collection("users").insert({"id": 1})

        assert store.items(ref) == [{"id": 1}]
        assert store.collection("users") is store.collection("users")


class TestPubSub:
    """Reference-counted topic registration."""

    def test_reference_counting(self):
        pubsub = InMemoryPubSub()
        pubsub.subscribe("orders")
        pubsub.subscribe("orders")

        pubsub.unsubscribe("orders")
        assert pubsub.subscriber_count("orders") == 1

        pubsub.unsubscribe("orders")
        assert not pubsub.is_subscribed("orders")
        assert pubsub.topics == []

    def test_unsubscribe_inactive_topic_is_ignored(self, caplog):
        pubsub = InMemoryPubSub()
        pubsub.unsubscribe("orders")

        assert pubsub.history == []
        assert "inactive topic" in caplog.text

    def test_publish_only_to_subscribed_topics(self):
        pubsub = InMemoryPubSub()
        seen = []
        pubsub.add_listener(lambda topic, message: seen.append((topic, message)))

        assert pubsub.publish("orders", 1) == 0
        pubsub.subscribe("orders")
        assert pubsub.publish("orders", 2) == 1
        assert seen == [("orders", 2)]


class TestSessionContext:
    def test_static_context_has_no_capabilities(self):
        ctx = SessionContext.static()

        assert ctx.domain is None
        assert ctx.connected is False
        assert ctx.describe()["pubsub"] is False

    def test_with_connected_copies(self, context):
        offline = context.with_connected(False)

        assert offline.connected is False
        assert context.connected is True
        assert offline.domain is context.domain
