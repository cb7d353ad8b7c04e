from __future__ import annotations

from contextlib import asynccontextmanager
from time import perf_counter
from typing import AsyncIterator, Awaitable, Callable, Optional
from uuid import uuid4

from fastapi import FastAPI, Request, Response

from dnssync.config import Settings, get_settings
from dnssync.dependencies import get_engine, get_sessionmaker
from dnssync.errors import UpstreamError
from dnssync.logger import configure_logging, get_logger, log_context
from dnssync.metrics import observe_http_request
from dnssync.models import Base
from dnssync.routes import endpoints, nodes, system
from dnssync.runtime import RuntimeController
from dnssync.services.node_cache import NodeCache
from dnssync.sources.builder import build_node_pipeline

logger = get_logger("api")


def _log_node_change() -> None:
    logger.info("nodes.changed", "Node inventory changed, endpoints need a resync")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    logger.info("app.startup", "Starting app", env=settings.app_env, version=settings.app_version)

    engine = get_engine(settings.database_url, settings.log_db_queries, settings.log_sql_max_length)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)

    runtime = RuntimeController(settings, app.state.node_cache, app.state.sessionmaker)
    try:
        await runtime.resync_once()
    except UpstreamError as exc:
        logger.warning(
            "app.startup.resync",
            "Initial node resync failed, serving will wait for the runtime loop",
            detail=exc.detail,
        )
    app.state.source.add_event_handler(_log_node_change)
    await runtime.start()
    yield
    await runtime.stop()
    await engine.dispose()
    logger.info("app.shutdown", "Shutting down app")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_file or None)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.sessionmaker = get_sessionmaker(settings)
    app.state.node_cache = NodeCache()
    app.state.source = build_node_pipeline(settings, app.state.node_cache)

    @app.middleware("http")
    async def request_logging(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid4())
        client: Optional[str] = request.client.host if request.client else None

        start = perf_counter()
        with log_context(request_id=request_id):
            logger.info(
                "request.start",
                "Started",
                method=request.method,
                path=request.url.path,
                client=client,
            )
            try:
                response = await call_next(request)
            except Exception as exc:
                logger.exception(
                    "request.error",
                    "Failed",
                    method=request.method,
                    path=request.url.path,
                    duration_ms=round((perf_counter() - start) * 1000, 1),
                    error_type=type(exc).__name__,
                )
                raise

            duration = perf_counter() - start
            logger.info(
                "request.complete",
                "Completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 1),
            )
        route = request.scope.get("route")
        observe_http_request(
            method=request.method,
            path=getattr(route, "path", request.url.path),
            status=response.status_code,
            duration_seconds=duration,
        )
        response.headers["X-Request-ID"] = request_id
        return response

    app.include_router(system.router)
    app.include_router(nodes.router)
    app.include_router(endpoints.router)
    return app
