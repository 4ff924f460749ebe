"""
Pytest configuration and fixtures for widgetlink tests.
"""

import sys
from pathlib import Path

import pytest
from pydantic import BaseModel, Field

# Add the repository root to path for imports
# This allows `from widgetlink.connections import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from widgetlink.config import WidgetSettings  # noqa: E402
from widgetlink.connections import ConnectionResolver  # noqa: E402
from widgetlink.session import (  # noqa: E402
    ActionType,
    Domain,
    InMemoryPubSub,
    InMemoryQueryExecutor,
    SessionContext,
    StreamStore,
)


class User(BaseModel):
    id: int
    name: str = Field(..., min_length=1)
    email: str
    active: bool = True


@pytest.fixture
def user_model():
    return User


@pytest.fixture
def users():
    """Sample user rows."""
    return [
        {"id": 1, "name": "Ada", "email": "ada@example.com", "active": True, "age": 36},
        {"id": 2, "name": "Grace", "email": "grace@example.com", "active": False, "age": 45},
        {"id": 3, "name": "Linus", "email": "linus@example.com", "active": True, "age": 28},
        {"id": 4, "name": "Barbara", "email": "barbara@example.com", "active": True, "age": 52},
    ]


@pytest.fixture
def user_store():
    """In-memory user records keyed by id."""
    return {
        1: User(id=1, name="Ada", email="ada@example.com"),
        2: User(id=2, name="Grace", email="grace@example.com", active=False),
    }


@pytest.fixture
def domain(user_store):
    """Domain with a few functions and a users resource."""
    domain = Domain("test")
    domain.register("list_users", lambda: list(user_store.values()))
    domain.register("get_user", lambda user_id: user_store.get(user_id))
    domain.register("fail", lambda: 1 / 0)

    domain.register_resource("users", User, fetch=user_store.get)

    @domain.action("users", "register", type=ActionType.CREATE)
    def register(user):
        user_store[user.id] = user
        return user

    @domain.action("users", "rename", type=ActionType.UPDATE)
    def rename(record, data):
        updated = record.model_copy(update={"name": data.name})
        user_store[record.id] = updated
        return updated

    @domain.action("users", "destroy", type=ActionType.DESTROY)
    def destroy(record):
        return user_store.pop(record.id)

    return domain


@pytest.fixture
def executor(users):
    return InMemoryQueryExecutor({"users": users})


@pytest.fixture
def pubsub():
    return InMemoryPubSub()


@pytest.fixture
def context(domain, executor, pubsub):
    """Connected session context with every capability."""
    return SessionContext(
        domain=domain,
        connected=True,
        pubsub=pubsub,
        query_executor=executor,
        streams=StreamStore(),
        session_id="test-session",
    )


@pytest.fixture
def static_context():
    """Pre-render context: no domain, not connected."""
    return SessionContext.static()


@pytest.fixture
def settings():
    return WidgetSettings(environment="test")


@pytest.fixture
def resolver(settings):
    return ConnectionResolver(settings=settings)
