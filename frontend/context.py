import asyncio
from typing import Any, Callable, Dict, List, Optional

from backend.client import BackendClient, create_client
from logger import frontend_logger as logger
from .auth import AuthStore
from .errors import Notification, Notifier, handle_error
from .guards import HOME_ROUTE
from .todos import TodoStore

Guard = Callable[[AuthStore], Optional[str]]


class AppContext:
    """Everything one client session needs, created and torn down explicitly.

        async with AppContext(client) as ctx:
            await ctx.auth.sign_in(email, password)
            await ctx.todos.fetch_todos()
    """

    def __init__(self, client: Optional[BackendClient] = None, notify: Optional[Notifier] = None):
        self.client = client or create_client()
        self.route = HOME_ROUTE
        self.notifications: List[Notification] = []
        self._notify = notify
        self.auth = AuthStore(self.client, navigate=self.navigate)
        self.todos = TodoStore(self.client, self.auth)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._previous_handler = None

    def navigate(self, path: str) -> None:
        logger.debug(f"Navigating to {path}")
        self.route = path

    def go(self, path: str, guard: Optional[Guard] = None) -> str:
        """Navigate to path unless the guard redirects elsewhere; returns the new route."""
        redirect = guard(self.auth) if guard is not None else None
        self.navigate(redirect or path)
        return self.route

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)
        if self._notify is not None:
            self._notify(notification)

    def handle_error(self, error: Any, context: Optional[str] = None) -> Notification:
        return handle_error(error, context, self.notify)

    def _on_loop_exception(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        self.handle_error(context.get("exception") or context.get("message"), "Unhandled Task Error")

    async def start(self) -> None:
        """Report unhandled task errors as notifications and load the auth state."""
        self._loop = asyncio.get_running_loop()
        self._previous_handler = self._loop.get_exception_handler()
        self._loop.set_exception_handler(self._on_loop_exception)
        await self.auth.initialize()

    async def close(self) -> None:
        await self.auth.close()
        if self._loop is not None:
            self._loop.set_exception_handler(self._previous_handler)
            self._loop = None

    async def __aenter__(self) -> "AppContext":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
