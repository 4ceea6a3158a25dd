from __future__ import annotations

from contextlib import contextmanager
from functools import lru_cache
from typing import Callable, Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import load_settings
from .models import Base

SessionFactory = Callable[[], Session]


def build_engine(database_url: str) -> Engine:
    options = {"future": True, "echo": False, "pool_pre_ping": True}
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        # A single shared connection keeps the in-memory database alive across sessions.
        options.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(database_url, **options)


def build_session_factory(engine: Engine) -> SessionFactory:
    Base.metadata.create_all(engine)
    return scoped_session(sessionmaker(bind=engine, autoflush=False, future=True))


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return build_engine(load_settings().database_url)


@lru_cache(maxsize=1)
def get_session_factory() -> SessionFactory:
    return build_session_factory(get_engine())


@contextmanager
def session_scope(factory: Optional[SessionFactory] = None) -> Iterator[Session]:
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
