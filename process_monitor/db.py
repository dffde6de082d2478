from contextlib import contextmanager
from pathlib import Path
from typing import Optional
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, declarative_base
from .config import get_settings

Base = declarative_base()


def init_engine_and_session(url: Optional[str] = None):
    url = url or get_settings().database_url
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        database = make_url(url).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(url, echo=False, future=True, connect_args=connect_args)
    # Records handed back by the repository outlive their session
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    return engine, SessionLocal


def create_tables(engine):
    from . import models  # noqa: F401  register tables on Base.metadata

    Base.metadata.create_all(bind=engine)


@contextmanager
def session_scope(SessionLocal):
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
