from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar, cast

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.sql.selectable import Select
from sqlmodel import Session, SQLModel, select

from .models import User, utc_now

T = TypeVar('T', bound=SQLModel)

# (column, value) pairs combined with AND
Filters = Sequence[Tuple[str, Any]]


class BaseRepository(Generic[T]):
    """Generic repository over one table model."""

    def __init__(self, session: Session, model_class: Type[T]):
        self.session = session
        self.model_class = model_class

    def get(self, id: str) -> Optional[T]:
        """Get an item by ID."""
        return self.session.get(self.model_class, id)

    def column(self, name: str):
        if name not in self.model_class.model_fields:
            raise ValueError(f"column {self.model_class.__tablename__}.{name} does not exist")
        return getattr(self.model_class, name)

    def _where(self, query: Select, filters: Filters) -> Select:
        for name, value in filters:
            query = query.where(self.column(name) == value)
        return query

    def find(self, filters: Filters = (), order: Optional[Tuple[str, bool]] = None) -> List[T]:
        """Rows matching every filter, optionally ordered by (column, ascending)."""
        query = self._where(cast(Select, select(self.model_class)), filters)
        if order is not None:
            name, ascending = order
            column = self.column(name)
            query = query.order_by(column.asc() if ascending else column.desc())
        result = self.session.exec(query).all()
        return cast(List[T], result)


class TableRepository(BaseRepository[T]):
    """Insert/update/delete for the user-owned data tables."""

    def create(self, values: Dict[str, Any]) -> T:
        try:
            db_obj = self.model_class(**values)
            self.session.add(db_obj)
            self.session.commit()
            self.session.refresh(db_obj)
            return db_obj
        except SQLAlchemyError as e:
            self.session.rollback()
            raise ValueError(f"Error creating {self.model_class.__tablename__} row: {str(e)}")

    def update(self, filters: Filters, values: Dict[str, Any]) -> List[T]:
        rows = self.find(filters)
        if not rows:
            return []
        try:
            for db_obj in rows:
                for key, value in values.items():
                    setattr(db_obj, key, value)
                if "updated_at" in self.model_class.model_fields:
                    db_obj.updated_at = utc_now()
                self.session.add(db_obj)
            self.session.commit()
            for db_obj in rows:
                self.session.refresh(db_obj)
            return rows
        except SQLAlchemyError as e:
            self.session.rollback()
            raise ValueError(f"Error updating {self.model_class.__tablename__} rows: {str(e)}")

    def delete(self, filters: Filters) -> List[Dict[str, Any]]:
        """Delete matching rows and return snapshots of them as they were."""
        rows = self.find(filters)
        snapshots = [db_obj.model_dump() for db_obj in rows]
        try:
            for db_obj in rows:
                self.session.delete(db_obj)
            self.session.commit()
            return snapshots
        except SQLAlchemyError as e:
            self.session.rollback()
            raise ValueError(f"Error deleting {self.model_class.__tablename__} rows: {str(e)}")


class UserRepository(BaseRepository[User]):
    """Accounts for the identity provider."""

    def __init__(self, session: Session):
        super().__init__(session, User)

    def get_by_email(self, email: str) -> Optional[User]:
        query = cast(Select, select(User).where(User.email == email))
        return self.session.exec(query).first()

    def create(self, email: str, hashed_password: str) -> User:
        try:
            db_user = User(email=email, hashed_password=hashed_password)
            self.session.add(db_user)
            self.session.commit()
            self.session.refresh(db_user)
            return db_user
        except IntegrityError:
            self.session.rollback()
            raise ValueError("User already registered")
        except SQLAlchemyError as e:
            self.session.rollback()
            raise ValueError(f"Error creating user: {str(e)}")

    def touch_sign_in(self, db_user: User) -> User:
        db_user.last_sign_in_at = utc_now()
        self.session.add(db_user)
        self.session.commit()
        self.session.refresh(db_user)
        return db_user
