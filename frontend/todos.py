from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Generator, List, Mapping, Optional, Union

from pydantic import BaseModel

from backend.client import BackendClient, QueryBuilder
from backend.schemas import CategoryRead, TodoRead, TodoStats
from logger import frontend_logger as logger
from .auth import AuthStore

TODOS = "todos"
CATEGORIES = "categories"


class StatusFilter(str, Enum):
    all = "all"
    active = "active"
    completed = "completed"


Payload = Union[Mapping[str, Any], BaseModel]


def _payload(data: Payload) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_unset=True)
    return dict(data)


class TodoStore:
    """Todos and categories of the signed-in user.

    The store is the only writer of `todos` and `categories`: every operation
    calls the backend first and then patches the local collections to match.
    Operations do nothing while nobody is signed in.
    """

    def __init__(self, client: BackendClient, auth: AuthStore):
        self.client = client
        self.auth = auth
        self.todos: List[TodoRead] = []
        self.categories: List[CategoryRead] = []
        self.loading = False
        self.status_filter = StatusFilter.all
        self.selected_category: Optional[str] = None

    @property
    def filtered_todos(self) -> List[TodoRead]:
        todos = self.todos
        if self.status_filter == StatusFilter.active:
            todos = [todo for todo in todos if not todo.completed]
        elif self.status_filter == StatusFilter.completed:
            todos = [todo for todo in todos if todo.completed]

        if self.selected_category:
            todos = [todo for todo in todos if todo.category == self.selected_category]

        return sorted(todos, key=lambda todo: todo.created_at, reverse=True)

    @property
    def todo_stats(self) -> TodoStats:
        total = len(self.todos)
        completed = sum(1 for todo in self.todos if todo.completed)
        return TodoStats(total=total, completed=completed, active=total - completed)

    @contextmanager
    def _busy(self) -> Generator[None, None, None]:
        self.loading = True
        try:
            yield
        finally:
            self.loading = False

    async def _execute(self, action: str, query: QueryBuilder) -> Any:
        result = await query.execute()
        if result.error:
            logger.error(f"Failed to {action}: {result.error.message}")
            raise result.error
        return result.data

    async def fetch_todos(self) -> None:
        if self.auth.user is None:
            return

        with self._busy():
            rows = await self._execute("fetch todos", (
                self.client.table(TODOS).select()
                .eq("user_id", self.auth.user.id)
                .order("created_at", ascending=False)
            ))
            self.todos = [TodoRead.model_validate(row) for row in rows or []]

    async def fetch_categories(self) -> None:
        if self.auth.user is None:
            return

        with self._busy():
            rows = await self._execute("fetch categories", (
                self.client.table(CATEGORIES).select()
                .eq("user_id", self.auth.user.id)
                .order("created_at", ascending=False)
            ))
            self.categories = [CategoryRead.model_validate(row) for row in rows or []]

    async def add_todo(self, data: Payload) -> Optional[TodoRead]:
        """Create a todo for the current user and put it at the front of `todos`."""
        if self.auth.user is None:
            return None

        with self._busy():
            payload = {**_payload(data), "user_id": self.auth.user.id}
            row = await self._execute("add todo", self.client.table(TODOS).insert(payload).select().single())
            todo = TodoRead.model_validate(row)
            self.todos.insert(0, todo)
            return todo

    async def update_todo(self, todo_id: str, updates: Payload) -> Optional[TodoRead]:
        """Apply a partial update and swap the cached copy in place.

        A todo that is not cached locally is still updated on the backend; the
        local collection is then left as it is.
        """
        if self.auth.user is None:
            return None

        with self._busy():
            row = await self._execute("update todo", (
                self.client.table(TODOS).update(_payload(updates)).eq("id", todo_id).select().single()
            ))
            todo = TodoRead.model_validate(row)
            for index, cached in enumerate(self.todos):
                if cached.id == todo_id:
                    self.todos[index] = todo
                    break
            return todo

    async def delete_todo(self, todo_id: str) -> None:
        if self.auth.user is None:
            return

        with self._busy():
            await self._execute("delete todo", self.client.table(TODOS).delete().eq("id", todo_id))
            self.todos = [todo for todo in self.todos if todo.id != todo_id]

    async def toggle_todo(self, todo_id: str) -> Optional[TodoRead]:
        todo = next((t for t in self.todos if t.id == todo_id), None)
        if todo is None:
            return None
        return await self.update_todo(todo_id, {"completed": not todo.completed})

    async def add_category(self, data: Payload) -> Optional[CategoryRead]:
        if self.auth.user is None:
            return None

        with self._busy():
            payload = {**_payload(data), "user_id": self.auth.user.id}
            row = await self._execute(
                "add category", self.client.table(CATEGORIES).insert(payload).select().single()
            )
            category = CategoryRead.model_validate(row)
            self.categories.insert(0, category)
            return category

    async def delete_category(self, category_id: str) -> None:
        """Delete a category; todos that reference it keep their category id."""
        if self.auth.user is None:
            return

        with self._busy():
            await self._execute(
                "delete category", self.client.table(CATEGORIES).delete().eq("id", category_id)
            )
            self.categories = [c for c in self.categories if c.id != category_id]

    def set_filter(self, value: Union[StatusFilter, str]) -> None:
        self.status_filter = StatusFilter(value)

    def set_selected_category(self, category_id: Optional[str]) -> None:
        self.selected_category = category_id

    async def clear_completed(self) -> None:
        """Delete completed todos one at a time.

        The first failure stops the run and propagates; todos deleted before
        it stay deleted.
        """
        if self.auth.user is None:
            return

        completed = [todo for todo in self.todos if todo.completed]
        with self._busy():
            for todo in completed:
                await self.delete_todo(todo.id)
