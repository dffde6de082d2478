"""SQLAlchemy-backed result store."""

from typing import Any, Dict, List, Optional, Protocol, Type, TypeVar
from sqlalchemy import func, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from .db import session_scope
from .utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


class ResultStore(Protocol):
    def find_one(self, model: Type[T], *criteria) -> Optional[T]:
        ...

    def find_all(self, model: Type[T]) -> Optional[List[T]]:
        ...

    def add(self, entity: Any) -> bool:
        ...

    def count_by_column(self, model: Type[Any], column) -> Dict[Any, int]:
        ...


class SQLRepository:
    """Each call runs in its own session; returned rows are detached."""

    def __init__(self, SessionLocal):
        self._SessionLocal = SessionLocal

    def find_one(self, model: Type[T], *criteria) -> Optional[T]:
        with session_scope(self._SessionLocal) as s:
            return s.query(model).filter(*criteria).first()

    def find_all(self, model: Type[T]) -> Optional[List[T]]:
        with session_scope(self._SessionLocal) as s:
            rows = s.query(model).all()
        return rows or None

    def add(self, entity: Any) -> bool:
        name = type(entity).__name__
        try:
            with session_scope(self._SessionLocal) as s:
                s.add(entity)
        except IntegrityError as e:
            log.info(f"Rejected {name}: constraint violated ({e.orig})")
            return False
        except SQLAlchemyError as e:
            # TODO: decide whether connectivity faults should reach the caller instead of being swallowed
            log.warning(f"Could not persist {name}: {e}")
            return False
        return True

    def count_by_column(self, model: Type[Any], column) -> Dict[Any, int]:
        with session_scope(self._SessionLocal) as s:
            rows = s.query(column, func.count()).select_from(model).group_by(column).all()
        return {key: count for key, count in rows}

    def ping(self) -> bool:
        try:
            with session_scope(self._SessionLocal) as s:
                s.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            log.warning(f"Store not reachable: {e}")
            return False
        return True
