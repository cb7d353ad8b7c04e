from __future__ import annotations

from functools import lru_cache
from time import perf_counter
from typing import Any, AsyncIterator
from uuid import uuid4

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from dnssync.config import Settings
from dnssync.logger import get_logger, log_context
from dnssync.services.node_cache import NodeCache
from dnssync.sources.base import Source

_DB_LOGGER = get_logger("db")
_DB_SESSION_LOGGER = get_logger("db.session")
_QUERY_START_KEY = "dnssync_query_start"
_SLOW_QUERY_MS = 200


def _truncate(value: str, max_length: int) -> str:
    if max_length <= 0 or len(value) <= max_length:
        return value
    if max_length <= 3:
        return value[:max_length]
    return f"{value[: max_length - 3]}..."


def _format_sql(statement: Any, max_length: int) -> str:
    return _truncate(" ".join(str(statement or "").split()), max_length)


def _install_query_logging(engine: AsyncEngine, *, log_queries: bool, sql_max_length: int) -> None:
    sync_engine = engine.sync_engine

    @event.listens_for(sync_engine, "before_cursor_execute")
    def _before_cursor_execute(
        conn: Any,
        cursor: Any,
        statement: Any,
        parameters: Any,
        context: Any,
        executemany: bool,
    ) -> None:
        conn.info.setdefault(_QUERY_START_KEY, []).append(perf_counter())

    @event.listens_for(sync_engine, "after_cursor_execute")
    def _after_cursor_execute(
        conn: Any,
        cursor: Any,
        statement: Any,
        parameters: Any,
        context: Any,
        executemany: bool,
    ) -> None:
        starts = conn.info.get(_QUERY_START_KEY) or [perf_counter()]
        duration_ms = round((perf_counter() - starts.pop()) * 1000, 1)
        if log_queries:
            _DB_LOGGER.info(
                "query.execute",
                "Executed SQL statement",
                duration_ms=duration_ms,
                rowcount=getattr(cursor, "rowcount", None),
                sql=_format_sql(statement, sql_max_length),
            )
        if duration_ms >= _SLOW_QUERY_MS:
            _DB_LOGGER.warning(
                "query.slow",
                "Slow SQL statement",
                duration_ms=duration_ms,
                sql=_format_sql(statement, sql_max_length),
            )

    @event.listens_for(sync_engine, "handle_error")
    def _handle_error(exception_context: Any) -> None:
        connection = exception_context.connection
        if connection is not None and connection.info.get(_QUERY_START_KEY):
            connection.info[_QUERY_START_KEY].pop()
        _DB_LOGGER.error(
            "query.error",
            "SQL execution failed",
            error_type=type(exception_context.original_exception).__name__,
            error=str(exception_context.original_exception),
            sql=_format_sql(exception_context.statement, sql_max_length),
        )


@lru_cache
def get_engine(database_url: str, log_queries: bool = False, sql_max_length: int = 400) -> AsyncEngine:
    engine = create_async_engine(database_url, pool_pre_ping=True)

    if database_url.startswith("sqlite"):

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    _install_query_logging(engine, log_queries=log_queries, sql_max_length=sql_max_length)
    return engine


def get_sessionmaker(settings: Settings) -> async_sessionmaker[AsyncSession]:
    engine = get_engine(
        settings.database_url,
        settings.log_db_queries,
        settings.log_sql_max_length,
    )
    return async_sessionmaker(bind=engine, expire_on_commit=False)


async def get_db_session(request: Request) -> AsyncIterator[AsyncSession]:
    sessionmaker: async_sessionmaker[AsyncSession] = request.app.state.sessionmaker
    session_id = uuid4().hex[:12]
    start = perf_counter()

    with log_context(db_session_id=session_id):
        _DB_SESSION_LOGGER.debug("session.open", "Opened DB session")
        async with sessionmaker() as session:
            try:
                yield session
            except Exception as exc:
                if session.in_transaction():
                    await session.rollback()
                    _DB_SESSION_LOGGER.warning(
                        "session.rollback",
                        "Rolled back DB transaction after error",
                        error_type=type(exc).__name__,
                    )
                raise
            finally:
                _DB_SESSION_LOGGER.debug(
                    "session.close",
                    "Closed DB session",
                    duration_ms=round((perf_counter() - start) * 1000, 1),
                )


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_node_cache(request: Request) -> NodeCache:
    return request.app.state.node_cache


def get_source(request: Request) -> Source:
    return request.app.state.source
