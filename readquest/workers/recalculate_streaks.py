"""
Recalculate reading streaks for every profile (or a chosen few).

Meant to run once a day shortly after midnight in STREAK_TIMEZONE so that
broken streaks drop to zero and single missed days consume freezes even for
users who have not opened the app.
"""
from __future__ import annotations

import argparse
import json
import logging
from datetime import date
from typing import List, Optional

from readquest.core.config import settings
from readquest.core.logging import configure_logging, request_context
from readquest.features.streaks.service import build_streak_sync


def recalculate(
    user_ids: Optional[List[str]] = None,
    *,
    today: Optional[date] = None,
    limit: int = 0,
) -> dict:
    logger = logging.getLogger("readquest.workers.streaks")
    with request_context(prefix="recalc") as run_id:
        sync = build_streak_sync(logger=logger)
        result = sync.recalculate_all(user_ids or None, today=today, limit=limit)
    report = result.to_dict()
    report["run_id"] = run_id
    return report


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Recalculate reading streaks from session history.")
    parser.add_argument("--user", dest="user_ids", action="append", help="Limit to this user id (repeatable).")
    parser.add_argument("--today", type=date.fromisoformat, default=None, help="Reference day (YYYY-MM-DD).")
    parser.add_argument("--limit", type=int, default=settings.BATCH_RECALC_LIMIT)
    args = parser.parse_args(argv)

    configure_logging(settings.ENV, settings.LOG_LEVEL)
    report = recalculate(args.user_ids, today=args.today, limit=args.limit)
    print(json.dumps(report, sort_keys=True))
    return 1 if report["failed"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
