"""Tests for structured logging and request_id propagation."""

import json
import logging
from datetime import date

from fastapi.testclient import TestClient

from readquest.core.logging import (
    JsonFormatter,
    PrettyFormatter,
    get_request_id,
    log_event,
    request_context,
    request_id_ctx_var,
)
from readquest.main import create_app


def test_request_id_in_response_and_logs(caplog, streak_sync):
    client = TestClient(create_app(streak_sync=streak_sync))
    with caplog.at_level(logging.INFO, logger="readquest"):
        response = client.get("/healthz")
    rid = response.headers.get("x-request-id")
    assert rid
    records = [r for r in caplog.records if getattr(r, "request_id", None) == rid]
    assert records, "Expected logs to contain request_id from response"
    assert len({r.request_id for r in records}) == 1


def test_recalculation_logs_carry_user_and_request(caplog, streak_sync, add_sessions, today):
    add_sessions("u-log", today)
    token = request_id_ctx_var.set("rid-job-1")
    try:
        with caplog.at_level(logging.INFO, logger="readquest.streaks"):
            streak_sync.recalculate("u-log", today=today)
    finally:
        request_id_ctx_var.reset(token)

    record = next(r for r in caplog.records if r.getMessage() == "streak.recalculated")
    assert record.user_id == "u-log"
    assert record.request_id == "rid-job-1"
    assert record.current_streak == "1"


def test_json_formatter_includes_extra_fields():
    logger = logging.getLogger("readquest.test.json")
    record = logger.makeRecord(
        logger.name, logging.INFO, __file__, 1, "streak.freeze.used", None, None,
        extra={"request_id": "r1", "user_id": "u1", "remaining": 2},
    )
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "streak.freeze.used"
    assert payload["user_id"] == "u1"
    assert payload["remaining"] == 2


def test_log_event_truncates_long_values(caplog):
    with caplog.at_level(logging.INFO, logger="readquest"):
        log_event("info", "streak.test", extra={"blob": "x" * 2000})
    record = next(r for r in caplog.records if r.getMessage() == "streak.test")
    assert record.blob.endswith("...<truncated>")
    assert len(record.blob) < 600


def test_request_context_generates_and_restores_id():
    assert get_request_id() is None
    with request_context(prefix="recalc") as rid:
        assert rid.startswith("recalc-")
        assert get_request_id() == rid
    assert get_request_id() is None

    with request_context("given-id") as rid:
        assert rid == "given-id"


def test_pretty_formatter_headline():
    logger = logging.getLogger("readquest.test.pretty")
    record = logger.makeRecord(
        logger.name, logging.WARNING, __file__, 1, "streak.reset", None, None,
        extra={"request_id": "r9", "user_id": "u1", "previous_longest": 12},
    )
    line = PrettyFormatter().format(record)
    assert " WARNING [rid=r9] [user=u1] streak.reset previous_longest=12" in line


def test_worker_run_id_on_report_and_logs(sqlite_db, caplog):
    from readquest.workers import recalculate_streaks

    with caplog.at_level(logging.INFO, logger="readquest"):
        report = recalculate_streaks.recalculate([], today=date(2024, 3, 10))

    assert report["run_id"].startswith("recalc-")
    batch = next(r for r in caplog.records if r.getMessage() == "streak.batch.complete")
    assert batch.request_id == report["run_id"]
