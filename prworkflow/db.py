from __future__ import annotations

from collections.abc import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from prworkflow.config import settings


def build_engine(url: str, **kwargs) -> Engine:
    if url.startswith('sqlite'):
        kwargs.setdefault('connect_args', {'check_same_thread': False})
        engine = create_engine(url, **kwargs)

        @event.listens_for(engine, 'connect')
        def _enable_foreign_keys(dbapi_connection, _record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute('PRAGMA foreign_keys=ON')
            cursor.close()

        return engine
    return create_engine(url, pool_pre_ping=True, **kwargs)


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


engine = build_engine(settings.database_url_normalized)
SessionLocal = build_session_factory(engine)


def get_session_factory(request: Request) -> sessionmaker[Session]:
    return request.app.state.session_factory


def get_db(request: Request) -> Iterator[Session]:
    with get_session_factory(request)() as db:
        yield db


LIKE_ESCAPE = '\\'


def contains_pattern(term: str) -> str:
    """Wrap a user search term for ``ilike(..., escape=LIKE_ESCAPE)`` with its wildcards taken literally."""
    escaped = term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f'%{escaped}%'
