from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class Priority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class User(SQLModel, table=True):
    """Identity provider account."""
    __tablename__ = "users"

    id: str = Field(default_factory=new_id, primary_key=True)
    email: str = Field(index=True, unique=True)
    hashed_password: str
    created_at: datetime = Field(default_factory=utc_now)
    last_sign_in_at: Optional[datetime] = Field(default=None)

    def verify_password(self, password: str) -> bool:
        """Verify password against the stored hash."""
        # Import here to avoid circular imports
        from .security import verify_password
        return verify_password(password, self.hashed_password)


class TodoBase(SQLModel):
    """Columns shared by the todos table and its read schema."""
    title: str = Field(index=True)
    description: Optional[str] = Field(default=None)
    completed: bool = Field(default=False)
    # Soft reference to categories.id, not enforced
    category: Optional[str] = Field(default=None, index=True)
    priority: Priority = Field(default=Priority.medium)
    due_date: Optional[datetime] = Field(default=None)


class Todo(TodoBase, table=True):
    __tablename__ = "todos"

    id: str = Field(default_factory=new_id, primary_key=True)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)
    user_id: str = Field(foreign_key="users.id", index=True)


class CategoryBase(SQLModel):
    name: str
    color: str


class Category(CategoryBase, table=True):
    __tablename__ = "categories"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=utc_now, index=True)
