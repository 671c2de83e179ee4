"""Shared test fixtures and configuration for backend tests."""
import pytest
from fastapi.testclient import TestClient

from collabflow.config import AppConfig, ChatSettings, DatabaseSettings, JWTSecrets, Secrets
from collabflow.main import create_app
from collabflow.runtime import runtime_for
from collabflow.storage import Database

from helpers import TEST_SECRET, make_token


@pytest.fixture(autouse=True)
def reset_database():
    """Give every test a fresh in-memory DuckDB."""
    Database.reset_instance()
    yield
    Database.reset_instance()


@pytest.fixture
def config():
    return AppConfig(
        database=DatabaseSettings(path=":memory:"),
        chat=ChatSettings(),
        secrets=Secrets(jwt=JWTSecrets(secret_key=TEST_SECRET)),
    )


@pytest.fixture
def app(config):
    return create_app(config)


@pytest.fixture
def api_client(app):
    """Provide a TestClient for a freshly built app.

    Used as a context manager so every request and WebSocket session shares
    one event loop (the room router is single-loop state).
    """
    with TestClient(app) as client:
        yield client


@pytest.fixture
def runtime(app):
    return runtime_for(app)


@pytest.fixture
def db():
    return Database.get_instance(":memory:")


@pytest.fixture
def seeded(runtime):
    """Two users; only alice is a member of workspace ws-1.

    Returns:
        Dict with user ids, workspace id and tokens.
    """
    directory = runtime.directory
    alice = directory.create_user("alice@example.com", name="Alice", user_id="u-alice")
    bob = directory.create_user("bob@example.com", name="Bob", user_id="u-bob")
    workspace = directory.create_workspace("Design", owner_id=alice.id, workspace_id="ws-1")
    return {
        "alice": alice,
        "bob": bob,
        "workspace": workspace,
        "alice_token": make_token(alice.id, alice.email),
        "bob_token": make_token(bob.id, bob.email),
    }
