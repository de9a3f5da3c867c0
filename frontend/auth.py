import asyncio
from contextlib import suppress
from typing import Awaitable, Callable, NamedTuple, Optional

from backend.client import BackendClient, BackendError, Result, Subscription
from backend.schemas import AuthSession, AuthUser, UserRead
from logger import frontend_logger as logger
from .errors import error_message
from .guards import LOGIN_ROUTE


class AuthChange(NamedTuple):
    event: str
    session: Optional[AuthSession]


def to_user(auth_user: AuthUser) -> UserRead:
    return UserRead(id=auth_user.id, email=auth_user.email, created_at=auth_user.created_at)


def as_backend_error(exc: Exception) -> BackendError:
    if isinstance(exc, BackendError):
        return exc
    return BackendError(error_message(exc))


class AuthStore:
    """Current user of the session, kept in step with the identity provider.

    Auth state notifications are queued on `events` and applied in order by a
    single consumer task started in `initialize()`. Direct sign-in/sign-out
    calls write `user` as well; whichever write lands last wins.
    """

    def __init__(self, client: BackendClient, navigate: Optional[Callable[[str], None]] = None):
        self.client = client
        self.navigate = navigate or (lambda path: None)
        self.user: Optional[UserRead] = None
        self.loading = False
        self.events: "asyncio.Queue[AuthChange]" = asyncio.Queue()
        self._subscription: Optional[Subscription] = None
        self._consumer: Optional[asyncio.Task] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    async def _authenticate(self, action: str, call: Awaitable[Result]) -> Result:
        self.loading = True
        try:
            result = await call
            if result.error:
                raise result.error

            if result.data is not None and result.data.user is not None:
                self.user = to_user(result.data.user)

            return Result(result.data)
        except Exception as e:
            error = as_backend_error(e)
            logger.error(f"{action} error: {error.message}")
            return Result(error=error)
        finally:
            self.loading = False

    async def sign_up(self, email: str, password: str) -> Result:
        return await self._authenticate("Sign-up", self.client.auth.sign_up(email, password))

    async def sign_in(self, email: str, password: str) -> Result:
        return await self._authenticate(
            "Sign-in", self.client.auth.sign_in_with_password(email, password)
        )

    async def sign_out(self) -> Result:
        self.loading = True
        try:
            result = await self.client.auth.sign_out()
            if result.error:
                raise result.error

            self.user = None
            self.navigate(LOGIN_ROUTE)
            return Result()
        except Exception as e:
            error = as_backend_error(e)
            logger.error(f"Sign-out error: {error.message}")
            return Result(error=error)
        finally:
            self.loading = False

    async def get_current_user(self) -> Optional[AuthUser]:
        """Provider user of the current session; None when absent or on failure."""
        try:
            result = await self.client.auth.get_user()
            if result.error:
                raise result.error
        except Exception as e:
            logger.error(f"Failed to load current user: {error_message(e)}")
            return None

        current = result.data
        if current is not None:
            self.user = to_user(current)
        return current

    async def initialize(self) -> None:
        self.loading = True
        try:
            await self.get_current_user()

            if self._subscription is None:
                self._subscription = self.client.auth.on_auth_state_change(self._on_auth_state_change)
                self._consumer = asyncio.create_task(self._apply_events())
        finally:
            self.loading = False

    def _on_auth_state_change(self, event: str, session: Optional[AuthSession]) -> None:
        self.events.put_nowait(AuthChange(event, session))

    async def _apply_events(self) -> None:
        while True:
            change = await self.events.get()
            try:
                if change.session is not None and change.session.user is not None:
                    self.user = to_user(change.session.user)
                else:
                    self.user = None
                logger.debug(f"Auth state changed: {change.event}")
            except Exception as e:
                logger.error(f"Failed to apply auth event {change.event}: {error_message(e)}")
            finally:
                self.events.task_done()

    async def close(self) -> None:
        """Stop listening for auth state changes."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._consumer is not None:
            self._consumer.cancel()
            with suppress(asyncio.CancelledError):
                await self._consumer
            self._consumer = None
