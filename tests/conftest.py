from datetime import timedelta

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session, create_engine
from sqlmodel.pool import StaticPool

from backend.client import create_client
from backend.database import init_db
from backend.main import app, get_client
from backend.models import Category, Todo
from backend.repository import TableRepository, UserRepository
from backend.security import create_access_token, get_password_hash
from frontend.auth import AuthStore
from frontend.context import AppContext
from frontend.todos import TodoStore

load_dotenv()

TEST_EMAIL = "test@example.com"
TEST_PASSWORD = "testpassword"


# Use in-memory SQLite for testing
@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="bare_engine")
def bare_engine_fixture():
    """In-memory database whose tables were never created."""
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(engine):
    app.dependency_overrides = {}
    app.dependency_overrides[get_client] = lambda: create_client(engine)

    yield TestClient(app)

    app.dependency_overrides = {}


@pytest.fixture(name="test_user")
def test_user_fixture(session):
    """Registered account with TEST_PASSWORD."""
    user_repo = UserRepository(session)
    user = user_repo.get_by_email(TEST_EMAIL)
    if not user:
        user = user_repo.create(TEST_EMAIL, get_password_hash(TEST_PASSWORD))
    return user


@pytest.fixture(name="other_user")
def other_user_fixture(session):
    return UserRepository(session).create("other@example.com", get_password_hash("otherpassword"))


@pytest.fixture(name="test_todo")
def test_todo_fixture(session, test_user):
    return TableRepository(session, Todo).create({
        "title": "Test Todo",
        "description": "This is a test todo",
        "user_id": test_user.id,
    })


@pytest.fixture(name="test_category")
def test_category_fixture(session, test_user):
    return TableRepository(session, Category).create({
        "name": "Work",
        "color": "#3b82f6",
        "user_id": test_user.id,
    })


@pytest.fixture(name="user_token_headers")
def user_token_headers_fixture(test_user):
    """Authorization headers with the test user's access token."""
    access_token = create_access_token(
        data={"sub": test_user.id, "email": test_user.email},
        expires_delta=timedelta(minutes=30)
    )
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture(name="backend")
def backend_fixture(engine):
    """Backend client without a session."""
    return create_client(engine)


@pytest_asyncio.fixture(name="auth_store")
async def auth_store_fixture(backend):
    routes = []
    store = AuthStore(backend, navigate=routes.append)
    store.routes = routes
    yield store
    await store.close()


@pytest_asyncio.fixture(name="signed_in")
async def signed_in_fixture(auth_store, test_user):
    """Auth store signed in as the test user."""
    result = await auth_store.sign_in(TEST_EMAIL, TEST_PASSWORD)
    assert result.error is None
    return auth_store


@pytest_asyncio.fixture(name="todo_store")
async def todo_store_fixture(backend, signed_in):
    return TodoStore(backend, signed_in)


@pytest_asyncio.fixture(name="app_context")
async def app_context_fixture(backend):
    ctx = AppContext(backend)
    await ctx.start()
    yield ctx
    await ctx.close()
