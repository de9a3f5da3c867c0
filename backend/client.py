"""
In-process backend-as-a-service.

`BackendClient` exposes the identity provider (`client.auth`) and a
query-builder over the per-user data tables (`client.table(name)`). Every
call resolves to a `Result(data, error)` pair; errors are returned, never
raised, so callers decide whether to propagate them.

    client = create_client()
    await client.auth.sign_in_with_password("me@example.com", "secret")
    result = await (client.table("todos").select()
                    .eq("completed", False)
                    .order("created_at", ascending=False)
                    .execute())

Table access is row-level scoped: a query only ever sees rows whose
``user_id`` is the signed-in user's id.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple, Type

from jose import JWTError
from pydantic import BaseModel, ValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel

from logger import logger
from .database import engine as default_engine, get_db_session
from .models import Category, Todo, User
from .repository import TableRepository, UserRepository
from .schemas import (
    AuthResponse, AuthSession, AuthUser, UserCreate,
    CategoryInsert, CategoryUpdate, TodoInsert, TodoUpdate
)
from .security import (
    ACCESS_TOKEN_EXPIRE_MINUTES, create_access_token, decode_access_token, get_password_hash
)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"

AuthListener = Callable[[str, Optional[AuthSession]], None]


class BackendError(Exception):
    """Error reported by the identity provider or the data store."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class Result(NamedTuple):
    data: Any = None
    error: Optional[BackendError] = None


def validation_message(exc: ValidationError) -> str:
    """First pydantic error as a one-line message."""
    error = exc.errors()[0]
    message = error["msg"].removeprefix("Value error, ")
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {message}" if location else message


def database_error(exc: SQLAlchemyError) -> BackendError:
    """Wrap a storage failure so it is returned like any other backend error."""
    message = str(getattr(exc, "orig", None) or exc)
    logger.error(f"Database error: {message}")
    return BackendError(f"Database error: {message}", code="unexpected_failure")


class Subscription:
    """Handle returned by `AuthClient.on_auth_state_change`."""

    def __init__(self, listeners: List[AuthListener], callback: AuthListener):
        self._listeners = listeners
        self.callback = callback
        listeners.append(callback)

    def unsubscribe(self) -> None:
        if self.callback in self._listeners:
            self._listeners.remove(self.callback)


class AuthClient:
    """Identity provider: accounts, sessions and auth state notifications."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session: Optional[AuthSession] = None
        self._listeners: List[AuthListener] = []

    def _emit(self, event: str, session: Optional[AuthSession]) -> None:
        for callback in list(self._listeners):
            callback(event, session)

    @staticmethod
    def _auth_user(db_user: User) -> AuthUser:
        return AuthUser(
            id=db_user.id,
            email=db_user.email,
            created_at=db_user.created_at,
            last_sign_in_at=db_user.last_sign_in_at,
        )

    def _new_session(self, db_user: User) -> AuthSession:
        expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
        token = create_access_token({"sub": db_user.id, "email": db_user.email}, expires_delta)
        return AuthSession(
            access_token=token,
            expires_in=int(expires_delta.total_seconds()),
            expires_at=int((datetime.now(timezone.utc) + expires_delta).timestamp()),
            user=self._auth_user(db_user),
        )

    def _resolve_token(self, access_token: str) -> Tuple[Dict[str, Any], AuthUser]:
        try:
            claims = decode_access_token(access_token)
        except JWTError as e:
            raise BackendError(f"invalid JWT: {str(e)}", code="bad_jwt")
        user_id = claims.get("sub")
        try:
            with get_db_session(self.engine) as db:
                db_user = UserRepository(db).get(user_id) if user_id else None
                if db_user is None:
                    raise BackendError("User from sub claim in JWT does not exist", code="user_not_found")
                return claims, self._auth_user(db_user)
        except SQLAlchemyError as e:
            raise database_error(e)

    async def sign_up(self, email: str, password: str) -> Result:
        try:
            credentials = UserCreate(email=email, password=password)
        except ValidationError as e:
            return Result(error=BackendError(validation_message(e), code="validation_failed"))

        try:
            with get_db_session(self.engine) as db:
                repo = UserRepository(db)
                if repo.get_by_email(credentials.email):
                    raise ValueError("User already registered")
                db_user = repo.create(credentials.email, get_password_hash(credentials.password))
                session = self._new_session(repo.touch_sign_in(db_user))
        except ValueError as e:
            logger.warning(f"Sign-up rejected for {email}: {e}")
            return Result(error=BackendError(str(e), code="user_already_exists"))
        except SQLAlchemyError as e:
            return Result(error=database_error(e))

        logger.info(f"Registered user {session.user.id}")
        self.session = session
        self._emit(SIGNED_IN, session)
        return Result(AuthResponse(user=session.user, session=session))

    async def sign_in_with_password(self, email: str, password: str) -> Result:
        try:
            with get_db_session(self.engine) as db:
                repo = UserRepository(db)
                db_user = repo.get_by_email(email)
                if db_user is None or not db_user.verify_password(password):
                    logger.warning(f"Failed sign-in for {email}")
                    return Result(error=BackendError("Invalid login credentials", code="invalid_credentials"))
                session = self._new_session(repo.touch_sign_in(db_user))
        except SQLAlchemyError as e:
            return Result(error=database_error(e))

        self.session = session
        self._emit(SIGNED_IN, session)
        return Result(AuthResponse(user=session.user, session=session))

    async def sign_out(self) -> Result:
        self.session = None
        self._emit(SIGNED_OUT, None)
        return Result()

    async def get_user(self) -> Result:
        """User of the current session, or `Result(None)` without one."""
        if self.session is None:
            return Result()
        try:
            _, user = self._resolve_token(self.session.access_token)
        except BackendError as e:
            return Result(error=e)
        return Result(user)

    async def set_session(self, access_token: str) -> Result:
        """Adopt an access token issued earlier, e.g. one sent as a bearer token."""
        try:
            claims, user = self._resolve_token(access_token)
        except BackendError as e:
            return Result(error=e)

        expires_at = int(claims["exp"])
        now = int(datetime.now(timezone.utc).timestamp())
        self.session = AuthSession(
            access_token=access_token,
            expires_in=max(expires_at - now, 0),
            expires_at=expires_at,
            user=user,
        )
        self._emit(TOKEN_REFRESHED, self.session)
        return Result(self.session)

    def on_auth_state_change(self, callback: AuthListener) -> Subscription:
        """Call `callback(event, session)` on every sign-in, sign-out and session change."""
        return Subscription(self._listeners, callback)


class TableSpec(NamedTuple):
    model: Type[SQLModel]
    insert_schema: Type[BaseModel]
    update_schema: Type[BaseModel]


TABLES: Dict[str, TableSpec] = {
    "todos": TableSpec(Todo, TodoInsert, TodoUpdate),
    "categories": TableSpec(Category, CategoryInsert, CategoryUpdate),
}


class QueryBuilder:
    """Chainable query on one table, run with `await builder.execute()`."""

    def __init__(self, client: "BackendClient", table: str):
        self._client = client
        self._table = table
        self._action: Optional[str] = None
        self._values: Dict[str, Any] = {}
        self._filters: List[Tuple[str, Any]] = []
        self._order: Optional[Tuple[str, bool]] = None
        self._columns: Optional[List[str]] = None
        self._returning = False
        self._single = False

    def select(self, columns: str = "*") -> "QueryBuilder":
        """Read rows, or after insert/update/delete return the affected rows."""
        if self._action is None:
            self._action = "select"
        self._returning = True
        if columns.strip() != "*":
            self._columns = [c.strip() for c in columns.split(",") if c.strip()]
        return self

    def insert(self, values) -> "QueryBuilder":
        self._action = "insert"
        self._values = _as_dict(values)
        return self

    def update(self, values) -> "QueryBuilder":
        self._action = "update"
        self._values = _as_dict(values)
        return self

    def delete(self) -> "QueryBuilder":
        self._action = "delete"
        return self

    def eq(self, field: str, value: Any) -> "QueryBuilder":
        self._filters.append((field, value))
        return self

    def order(self, field: str, ascending: bool = True) -> "QueryBuilder":
        self._order = (field, ascending)
        return self

    def single(self) -> "QueryBuilder":
        """Expect exactly one row and return it instead of a list."""
        self._single = True
        return self

    async def execute(self) -> Result:
        try:
            data = self._run()
        except BackendError as e:
            logger.warning(f"{self._action or 'select'} on {self._table} failed: {e.message}")
            return Result(error=e)
        return Result(data)

    def _user_id(self) -> str:
        session = self._client.auth.session
        if session is None:
            raise BackendError("JWT required: no authenticated session", code="not_authenticated")
        return session.user.id

    def _project(self, row: Dict[str, Any]) -> Dict[str, Any]:
        if self._columns is None:
            return row
        return {k: v for k, v in row.items() if k in self._columns}

    def _run(self) -> Any:
        spec = TABLES.get(self._table)
        if spec is None:
            raise BackendError(f'relation "{self._table}" does not exist', code="42P01")
        user_id = self._user_id()
        action = self._action or "select"
        filters = [("user_id", user_id)] + self._filters

        try:
            with get_db_session(self._client.engine) as db:
                repo = TableRepository(db, spec.model)
                if action == "select":
                    rows = [row.model_dump() for row in repo.find(filters, self._order)]
                elif action == "insert":
                    payload = self._validated(spec.insert_schema).model_dump()
                    if payload.get("user_id") is None:
                        payload["user_id"] = user_id
                    elif payload["user_id"] != user_id:
                        raise BackendError(
                            f'new row violates row-level security policy for table "{self._table}"',
                            code="42501",
                        )
                    rows = [repo.create(payload).model_dump()]
                elif action == "update":
                    changes = self._validated(spec.update_schema).model_dump(exclude_unset=True)
                    rows = [row.model_dump() for row in repo.update(filters, changes)]
                else:
                    rows = repo.delete(filters)
        except ValueError as e:
            raise BackendError(str(e))
        except SQLAlchemyError as e:
            raise database_error(e)

        rows = [self._project(row) for row in rows]
        if self._single:
            if len(rows) != 1:
                raise BackendError(
                    "JSON object requested, multiple (or no) rows returned", code="PGRST116"
                )
            return rows[0]
        if action != "select" and not self._returning:
            return None
        return rows

    def _validated(self, schema: Type[BaseModel]) -> BaseModel:
        try:
            return schema(**self._values)
        except ValidationError as e:
            raise BackendError(validation_message(e), code="23514")


def _as_dict(values) -> Dict[str, Any]:
    if isinstance(values, BaseModel):
        return values.model_dump(exclude_unset=True)
    return dict(values)


class BackendClient:
    """One client per caller; it carries that caller's auth session."""

    def __init__(self, engine: Optional[Engine] = None):
        self.engine = engine or default_engine
        self.auth = AuthClient(self.engine)

    def table(self, name: str) -> QueryBuilder:
        return QueryBuilder(self, name)


def create_client(engine: Optional[Engine] = None) -> BackendClient:
    return BackendClient(engine)
