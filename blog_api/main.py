from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from blog_api import __version__
from blog_api.comments.router import router as comments_router
from blog_api.core.config import get_settings
from blog_api.core.db import Database
from blog_api.core.deps import get_executor
from blog_api.core.errors import install_exception_handlers
from blog_api.core.log import configure_logging
from blog_api.core.retry import QueryExecutor, RetryPolicy
from blog_api.events.router import router as events_router
from blog_api.posts.router import router as posts_router
from blog_api.search.router import router as search_router
from blog_api.tags.router import router as tags_router
from blog_api.votes.router import router as votes_router

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _ping(store: Any) -> Any:
    return await store.fetch_val("SELECT 1")


def create_app(database: Any = None) -> FastAPI:
    """
    Build the API. `database` replaces the asyncpg-backed store (tests).
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings.validate()
        store = database or Database(
            settings.database_url,
            min_size=settings.db_pool_min,
            max_size=settings.db_pool_max,
            command_timeout=settings.db_command_timeout_s,
        )
        # One pool per process; every query goes through the executor.
        await store.connect()
        app.state.executor = QueryExecutor(store, policy=RetryPolicy(max_retries=settings.db_max_retries))
        logger.info("app_started env=%s", settings.app_env)
        try:
            yield
        finally:
            await store.close()

    app = FastAPI(title="Blog API", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_exception_handlers(app)

    app.include_router(posts_router, tags=["blogs"])
    app.include_router(comments_router, tags=["comments"])
    app.include_router(votes_router, tags=["votes"])
    app.include_router(tags_router, tags=["tags"])
    app.include_router(search_router, tags=["search"])
    app.include_router(events_router, tags=["calendar"])

    @app.get("/")
    def root() -> dict:
        return {
            "success": True,
            "message": "Blog API",
            "version": __version__,
            "endpoints": {
                "health": "/health",
                "blogs": "/api/v1/blogs",
                "tags": "/api/v1/tags",
                "search": "/api/v1/search",
                "calendar": "/api/v1/calendar/events",
            },
            "timestamp": _now(),
        }

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "timestamp": _now()}

    @app.get("/health/db")
    async def health_db(executor: QueryExecutor = Depends(get_executor)):
        try:
            await executor.call(_ping)
        except Exception as exc:
            logger.error("db_health_failed error=%s", exc)
            return JSONResponse(
                status_code=503,
                content={"status": "error", "database": "disconnected", "timestamp": _now()},
            )
        return {"status": "ok", "database": "connected", "timestamp": _now()}

    return app


app = create_app()
