"""
Health endpoints for ReadQuest.

Lightweight liveness/readiness checks that never expose secrets.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from readquest.core.database import check_connection, get_engine

logger = logging.getLogger("readquest")

root_router = APIRouter(tags=["health"])

REQUIRED_TABLES = ["profiles", "reading_sessions", "streak_milestones"]


@root_router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    logger.info("health.live")
    return {"status": "ok"}


@root_router.get("/readyz")
def readyz(request: Request):
    """Readiness check: DB connectivity + required tables when a database is in use."""
    if getattr(request.app.state, "store_backend", "memory") != "sql":
        return {"status": "ok", "store": "memory"}

    if not check_connection():
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})

    try:
        inspector = inspect(get_engine())
        missing = [t for t in REQUIRED_TABLES if not inspector.has_table(t)]
        if missing:
            detail = f"missing tables: {', '.join(missing)}"
            logger.warning(f"[readyz] {detail}")
            return JSONResponse(status_code=503, content={"status": "error", "detail": detail})

        return {"status": "ok", "store": "sql"}
    except Exception as e:
        logger.error(f"[readyz] readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})
