from __future__ import annotations

import logging
from typing import Optional

from readquest.core.config import Settings, resolve_timezone, settings as default_settings
from readquest.core.database import create_all_tables, get_database_url, init_engine
from readquest.core.metrics import MetricsRegistry, StreakMetrics
from readquest.features.streaks.persistence import build_sql_stores
from readquest.features.streaks.stores import (
    InMemoryMilestoneStore,
    InMemoryProfileStore,
    InMemorySessionStore,
)
from readquest.features.streaks.sync import ProfileStreakSync


def build_streak_sync(
    settings_obj: Optional[Settings] = None,
    *,
    registry: Optional[MetricsRegistry] = None,
    logger: Optional[logging.Logger] = None,
    use_database: Optional[bool] = None,
) -> ProfileStreakSync:
    """Wire ProfileStreakSync to SQL stores when a database is configured, else to memory."""
    cfg = settings_obj or default_settings
    log = logger or logging.getLogger("readquest.streaks")

    database_url = get_database_url() if settings_obj is None else cfg.DATABASE_URL
    if use_database is None:
        use_database = bool(database_url)

    if use_database:
        init_engine(database_url)
        create_all_tables()
        sessions, profiles, milestones = build_sql_stores()
        backend = "sql"
    else:
        sessions, profiles, milestones = InMemorySessionStore(), InMemoryProfileStore(), InMemoryMilestoneStore()
        backend = "memory"

    log.info("streak.sync.ready", extra={"store_backend": backend, "timezone": cfg.STREAK_TIMEZONE})
    return ProfileStreakSync(
        sessions,
        profiles,
        milestones,
        logger=log,
        metrics=StreakMetrics(registry),
        tz=resolve_timezone(cfg.STREAK_TIMEZONE),
        freeze_cap=cfg.STREAK_FREEZE_CAP,
        freeze_stride=cfg.STREAK_FREEZE_STRIDE,
    )
