from contextlib import asynccontextmanager
from typing import Any, Annotated, Dict, List

from fastapi import Body, Depends, FastAPI, HTTPException, Path, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import OAuth2PasswordRequestForm

from logger import logger
from .client import BackendClient, Result, create_client
from .database import init_db
from .schemas import AuthSession, AuthUser, CategoryRead, TodoRead, UserCreate
from .security import get_bearer_token


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("Initializing database...")
    init_db()
    yield
    logger.info("Shutting down application...")


app = FastAPI(
    title="Todo API",
    description="Per-user todos and categories forwarded to the backend data store",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Set specific origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_client() -> BackendClient:
    """A fresh backend client per request; it holds only that request's session."""
    return create_client()


async def get_authenticated_client(
        token: Annotated[str, Depends(get_bearer_token)],
        client: Annotated[BackendClient, Depends(get_client)]
) -> BackendClient:
    """Establish the backend session from the bearer token or reject with 401."""
    result = await client.auth.set_session(token)
    if result.error:
        logger.warning(f"Rejected bearer token: {result.error.message}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return client


def forward(result: Result) -> Any:
    """Translate a backend result into the response body or a 500 with the upstream message."""
    if result.error:
        logger.error(f"Backend error: {result.error.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=result.error.message
        )
    return result.data


def require_field(body: Dict[str, Any], field: str, detail: str) -> None:
    if not body.get(field):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


# Authentication endpoints
@app.post("/api/auth/signup", response_model=AuthSession, status_code=status.HTTP_201_CREATED,
          summary="Register and open a session")
async def sign_up(
        credentials: Annotated[UserCreate, Body(...)],
        client: Annotated[BackendClient, Depends(get_client)]
) -> AuthSession:
    result = await client.auth.sign_up(credentials.email, credentials.password)
    if result.error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error.message)
    return result.data.session


@app.post("/api/auth/token", response_model=AuthSession, summary="Create access token")
async def login_for_access_token(
        form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
        client: Annotated[BackendClient, Depends(get_client)]
) -> AuthSession:
    """
    Get an access token using email and password.
    """
    logger.info(f"Login attempt for user: {form_data.username}")
    result = await client.auth.sign_in_with_password(form_data.username, form_data.password)
    if result.error:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=result.error.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return result.data.session


@app.get("/api/auth/user", response_model=AuthUser, summary="Get current user")
async def read_current_user(
        client: Annotated[BackendClient, Depends(get_authenticated_client)]
) -> AuthUser:
    return client.auth.session.user


# Todo endpoints
@app.get("/api/todos", response_model=List[TodoRead], summary="List todos")
async def list_todos(
        client: Annotated[BackendClient, Depends(get_authenticated_client)]
) -> List[TodoRead]:
    return forward(await client.table("todos").select().order("created_at", ascending=False).execute())


@app.post("/api/todos", response_model=TodoRead, status_code=status.HTTP_201_CREATED, summary="Create todo")
async def create_todo(
        body: Annotated[Dict[str, Any], Body(...)],
        client: Annotated[BackendClient, Depends(get_authenticated_client)]
) -> TodoRead:
    require_field(body, "title", "Todo title is required")
    return forward(await client.table("todos").insert(body).select().single().execute())


@app.put("/api/todos/{todo_id}", response_model=TodoRead, summary="Update todo")
async def update_todo(
        todo_id: Annotated[str, Path(...)],
        body: Annotated[Dict[str, Any], Body(...)],
        client: Annotated[BackendClient, Depends(get_authenticated_client)]
) -> TodoRead:
    return forward(await client.table("todos").update(body).eq("id", todo_id).select().single().execute())


@app.delete("/api/todos/{todo_id}", summary="Delete todo")
async def delete_todo(
        todo_id: Annotated[str, Path(...)],
        client: Annotated[BackendClient, Depends(get_authenticated_client)]
) -> Dict[str, bool]:
    forward(await client.table("todos").delete().eq("id", todo_id).execute())
    return {"success": True}


# Category endpoints
@app.get("/api/categories", response_model=List[CategoryRead], summary="List categories")
async def list_categories(
        client: Annotated[BackendClient, Depends(get_authenticated_client)]
) -> List[CategoryRead]:
    return forward(await client.table("categories").select().order("created_at", ascending=False).execute())


@app.post("/api/categories", response_model=CategoryRead, status_code=status.HTTP_201_CREATED,
          summary="Create category")
async def create_category(
        body: Annotated[Dict[str, Any], Body(...)],
        client: Annotated[BackendClient, Depends(get_authenticated_client)]
) -> CategoryRead:
    require_field(body, "name", "Category name is required")
    return forward(await client.table("categories").insert(body).select().single().execute())


@app.delete("/api/categories/{category_id}", summary="Delete category")
async def delete_category(
        category_id: Annotated[str, Path(...)],
        client: Annotated[BackendClient, Depends(get_authenticated_client)]
) -> Dict[str, bool]:
    forward(await client.table("categories").delete().eq("id", category_id).execute())
    return {"success": True}
