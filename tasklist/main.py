import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tasklist.cache.layer import cache_layer
from tasklist.core.config import Settings, get_settings
from tasklist.core.exceptions import DatabaseError
from tasklist.core.logging_setup import setup_logging
from tasklist.database import ConnectionCacheDep
from tasklist.db.connection import ConnectionCache, Connector
from tasklist.routers import tasks

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, connector: Connector | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level)
        cache: ConnectionCache = app.state.connection_cache
        try:
            await cache_layer.init_cache(settings)
            if settings.connect_on_startup:
                conn = await cache.get_connection()
                await conn.ensure_indexes()
                logger.info("Task indexes ensured")
            yield
        finally:
            await cache.close()
            await cache_layer.close()

    app = FastAPI(
        title=settings.app_name,
        description="Async task list API backed by a document database",
        swagger_ui_parameters={"displayRequestDuration": True},
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.connection_cache = ConnectionCache(settings, connector=connector)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DatabaseError)
    async def database_error_handler(request: Request, exc: DatabaseError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Database unavailable"},
        )

    app.include_router(tasks.router)

    @app.get("/")
    async def root():
        return {
            "message": "Welcome to Task List API",
            "docs": "/docs",
            "version": "1.0.0",
        }

    @app.get("/health")
    async def health_check(cache: ConnectionCacheDep):
        try:
            conn = await cache.get_connection()
        except DatabaseError as e:
            logger.warning("Health check could not connect: %s", e)
            healthy = False
        else:
            healthy = await conn.ping()

        body = {
            "status": "healthy" if healthy else "unhealthy",
            "database": "up" if healthy else "down",
            "cache": cache_layer.get_stats(),
        }
        if not healthy:
            return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
        return body

    return app


app = create_app()
