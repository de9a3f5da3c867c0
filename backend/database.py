import os
from contextlib import contextmanager
from typing import Generator, Optional

from dotenv import load_dotenv
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./todos.db")

engine = create_engine(
    DATABASE_URL,
    echo=os.getenv("SQL_ECHO", "false").lower() == "true",
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
)


def init_db(bind: Optional[Engine] = None) -> None:
    """Create the users, todos and categories tables."""
    # Register the table models on the metadata before create_all
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


@contextmanager
def get_db_session(bind: Optional[Engine] = None) -> Generator[Session, None, None]:
    """Session scoped to one unit of work: commit on success, rollback on error."""
    with Session(bind or engine) as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
