"""
syntora.database.engine — Engine, Sessions & the Thread Bridge
===============================================================

SQLAlchemy with psycopg2 is synchronous.  Async route handlers hand their
database work to :func:`run_db`, which runs it on the default thread pool
so a slow query never holds up other requests on the event loop.

Usage::

    from syntora.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()                  # DATABASE_URL from the env
    init_db(engine)                              # dev/test only; prod uses Alembic

    outcome = await run_db(service.daily_reset, user_id)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import Any, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from syntora.database.models import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Connection pool for PostgreSQL; SQLite URLs use the driver's own pool
POOL_OPTIONS = {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_pre_ping": True,
    "pool_timeout": 10,
    "pool_recycle": 3600,
}


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build the engine for *url*, defaulting to ``DATABASE_URL``.

    Raises
    ------
    RuntimeError
        If no URL is given and ``DATABASE_URL`` is unset.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and point it at your database."
        )

    options = {} if url.startswith("sqlite") else POOL_OPTIONS
    engine = create_engine(url, echo=False, **options)
    logger.info("Database engine created → %s", engine.url.host or engine.url.database)
    return engine


def init_db(engine: Engine) -> None:
    """``CREATE TABLE IF NOT EXISTS`` for every Syntora model.

    Production schemas come from ``alembic upgrade head``; this exists for
    local runs and tests.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Unit-of-work session: commit when the block exits cleanly, else roll back.

    Objects stay readable after the block (``expire_on_commit=False``)::

        with get_session(engine) as session:
            session.add(Task(user_id="u1", title="Write report"))
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


async def run_db(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Await a blocking database call without stalling the event loop."""
    return await asyncio.to_thread(func, *args, **kwargs)
