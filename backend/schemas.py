from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from sqlmodel import SQLModel

from .models import CategoryBase, Priority, TodoBase

PASSWORD_MIN_LENGTH = 6


class UserCreate(BaseModel):
    """Credentials accepted by sign-up."""
    email: EmailStr
    password: str

    @field_validator("password")
    def password_min_length(cls, v):
        if len(v) < PASSWORD_MIN_LENGTH:
            raise ValueError(f"Password should be at least {PASSWORD_MIN_LENGTH} characters")
        return v


class AuthUser(SQLModel):
    """User as reported by the identity provider."""
    id: str
    email: str
    created_at: datetime
    last_sign_in_at: Optional[datetime] = None


class AuthSession(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    expires_at: int
    user: AuthUser


class AuthResponse(BaseModel):
    user: Optional[AuthUser] = None
    session: Optional[AuthSession] = None


class UserRead(SQLModel):
    """Local user record held by the client for the current session."""
    id: str
    email: str
    created_at: datetime


class TodoInsert(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    completed: bool = False
    category: Optional[str] = None
    priority: Priority = Priority.medium
    due_date: Optional[datetime] = None
    user_id: Optional[str] = None


class TodoUpdate(BaseModel):
    """Partial update; id and user_id are not writable."""
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    completed: Optional[bool] = None
    category: Optional[str] = None
    priority: Optional[Priority] = None
    due_date: Optional[datetime] = None


class TodoRead(TodoBase):
    id: str
    created_at: datetime
    updated_at: datetime
    user_id: str


class CategoryInsert(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=50)
    color: str
    user_id: Optional[str] = None


class CategoryUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    color: Optional[str] = None


class CategoryRead(CategoryBase):
    id: str
    user_id: str
    created_at: datetime


class TodoStats(BaseModel):
    total: int
    completed: int
    active: int
