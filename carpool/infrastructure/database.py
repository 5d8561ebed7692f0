"""
Async SQLAlchemy engine and session factory.

The default store is a single embedded SQLite file driven through
``aiosqlite``.  SQLite transactions are opened with ``BEGIN IMMEDIATE`` so
that concurrent writers queue on the database lock (up to the busy timeout)
instead of failing with "database is locked" half-way through a
check-then-write sequence.  PostgreSQL (``asyncpg``) is supported as well;
there the repositories lock rows with ``SELECT ... FOR UPDATE``.
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from carpool.config import settings


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


def _install_sqlite_listeners(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # take BEGIN away from the driver; emitted in _on_begin instead
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    if url.startswith("sqlite"):
        engine = create_async_engine(
            url,
            echo=echo,
            connect_args={"timeout": settings.sqlite_busy_timeout},
        )
        _install_sqlite_listeners(engine)
        return engine

    return create_async_engine(
        url,
        echo=echo,
        pool_size=20,
        max_overflow=10,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


engine = build_engine(settings.database_url, echo=settings.db_echo)

async_session_factory = build_session_factory(engine)


async def create_tables(bind: AsyncEngine = engine) -> None:
    from carpool.infrastructure import models  # noqa: F401  (register tables)

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
