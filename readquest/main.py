import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from readquest.core.config import settings, validate_config
from readquest.core.database import dispose_engine, get_database_url
from readquest.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from readquest.core.logging import configure_logging
from readquest.core.metrics import HttpMetrics, MetricsRegistry
from readquest.core.middleware.metrics import MetricsMiddleware
from readquest.core.middleware.request_id import RequestIdMiddleware
from readquest.api import health, metrics, streaks
from readquest.features.streaks.service import build_streak_sync
from readquest.features.streaks.sync import ProfileStreakSync


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("readquest")
    logger.info("Starting ReadQuest streak service...")
    try:
        yield
    finally:
        if app.state.store_backend == "sql":
            dispose_engine()
        logger.info("Stopping ReadQuest streak service...")


def create_app(
    streak_sync: Optional[ProfileStreakSync] = None,
    *,
    registry: Optional[MetricsRegistry] = None,
    store_backend: str = "memory",
) -> FastAPI:
    configure_logging(settings.ENV, settings.LOG_LEVEL)
    validate_config(strict=getattr(settings, "CONFIG_STRICT", False))

    registry = registry or MetricsRegistry()
    if streak_sync is None:
        store_backend = "sql" if get_database_url() else "memory"
        streak_sync = build_streak_sync(registry=registry, use_database=store_backend == "sql")

    app = FastAPI(title="ReadQuest - Streak Engine", lifespan=lifespan)
    app.state.streak_sync = streak_sync
    app.state.metrics_registry = registry
    app.state.store_backend = store_backend

    # Middlewares
    app.add_middleware(MetricsMiddleware, metrics=HttpMetrics(registry))
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(streaks.router, tags=["streaks"])
    app.include_router(health.root_router, tags=["health"])
    app.include_router(metrics.router, tags=["metrics"])
    return app


app = create_app()
