import pytest
from sqlmodel import Session

from backend.models import Priority, Todo
from backend.repository import TableRepository, UserRepository
from backend.security import get_password_hash


def test_user_repository_create(session: Session):
    """Test creating a user."""
    user_repo = UserRepository(session)

    user = user_repo.create("newuser@example.com", get_password_hash("testpassword"))

    assert user.id is not None
    assert user.email == "newuser@example.com"
    assert user.verify_password("testpassword")
    assert user.created_at is not None


def test_user_repository_duplicate_email(session: Session, test_user):
    user_repo = UserRepository(session)

    with pytest.raises(ValueError, match="already registered"):
        user_repo.create(test_user.email, get_password_hash("whatever"))


def test_user_repository_get_by_email(session: Session, test_user):
    """Test getting a user by email."""
    user_repo = UserRepository(session)

    user = user_repo.get_by_email(test_user.email)
    assert user is not None
    assert user.id == test_user.id

    assert user_repo.get_by_email("nonexistent@example.com") is None


def test_todo_repository_create_defaults(session: Session, test_user):
    todo_repo = TableRepository(session, Todo)

    todo = todo_repo.create({"title": "New Todo", "user_id": test_user.id})

    assert todo.id is not None
    assert todo.completed is False
    assert todo.priority == Priority.medium
    assert todo.description is None
    assert todo.category is None


def test_todo_repository_find_filters_and_orders(session: Session, test_user, other_user):
    todo_repo = TableRepository(session, Todo)
    first = todo_repo.create({"title": "First", "user_id": test_user.id})
    second = todo_repo.create({"title": "Second", "user_id": test_user.id, "completed": True})
    todo_repo.create({"title": "Not mine", "user_id": other_user.id})

    todos = todo_repo.find([("user_id", test_user.id)], order=("created_at", False))
    assert [t.id for t in todos] == [second.id, first.id]

    done = todo_repo.find([("user_id", test_user.id), ("completed", True)])
    assert [t.id for t in done] == [second.id]


def test_todo_repository_unknown_column(session: Session):
    todo_repo = TableRepository(session, Todo)

    with pytest.raises(ValueError, match="todos.owner does not exist"):
        todo_repo.find([("owner", "x")])


def test_todo_repository_update(session: Session, test_user, test_todo):
    """Partial updates touch only the given fields and refresh updated_at."""
    todo_repo = TableRepository(session, Todo)
    before = test_todo.updated_at

    updated = todo_repo.update([("id", test_todo.id)], {"completed": True})

    assert len(updated) == 1
    assert updated[0].completed is True
    assert updated[0].title == "Test Todo"
    assert updated[0].description == "This is a test todo"
    assert updated[0].updated_at >= before


def test_todo_repository_update_missing(session: Session, test_user):
    todo_repo = TableRepository(session, Todo)

    assert todo_repo.update([("id", "missing")], {"completed": True}) == []


def test_todo_repository_delete(session: Session, test_user, test_todo):
    todo_repo = TableRepository(session, Todo)
    todo_id = test_todo.id

    deleted = todo_repo.delete([("id", todo_id)])

    assert [row["id"] for row in deleted] == [todo_id]
    assert todo_repo.get(todo_id) is None
