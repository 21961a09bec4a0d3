"""Tests for streak configuration validation."""

import logging
from datetime import timezone
from types import SimpleNamespace

import pytest

from readquest.core.config import Settings, resolve_timezone, validate_config
from readquest.core.logging import configure_logging


def make_settings(**overrides):
    defaults = dict(
        ENV="development",
        CONFIG_STRICT=False,
        DATABASE_URL=None,
        TEST_DATABASE_URL=None,
        STREAK_TIMEZONE="UTC",
        STREAK_FREEZE_CAP=3,
        STREAK_FREEZE_STRIDE=7,
        BATCH_RECALC_LIMIT=0,
    )
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


def test_defaults():
    cfg = Settings(_env_file=None)
    assert cfg.STREAK_TIMEZONE == "UTC"
    assert cfg.STREAK_FREEZE_CAP == 3
    assert cfg.STREAK_FREEZE_STRIDE == 7
    assert cfg.LOG_LEVEL == "INFO"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("STREAK_FREEZE_CAP", "5")
    monkeypatch.setenv("STREAK_TIMEZONE", "Europe/Berlin")
    cfg = Settings(_env_file=None)
    assert cfg.STREAK_FREEZE_CAP == 5
    assert cfg.STREAK_TIMEZONE == "Europe/Berlin"


def test_log_level_applied(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")
    cfg = Settings(_env_file=None)
    configure_logging(cfg.ENV, cfg.LOG_LEVEL)
    try:
        assert logging.getLogger("readquest").level == logging.WARNING
    finally:
        configure_logging()


def test_resolve_timezone():
    assert resolve_timezone("UTC") is timezone.utc
    assert str(resolve_timezone("America/New_York")) == "America/New_York"


def test_valid_config_passes():
    assert validate_config(strict=True, settings_obj=make_settings()) is True


def test_unknown_timezone_strict_fails():
    with pytest.raises(RuntimeError):
        validate_config(strict=True, settings_obj=make_settings(STREAK_TIMEZONE="Mars/Olympus_Mons"))


def test_bad_freeze_settings_warn_when_not_strict(caplog):
    cfg = make_settings(STREAK_FREEZE_CAP=-1, STREAK_FREEZE_STRIDE=0)
    with caplog.at_level(logging.WARNING, logger="readquest"):
        assert validate_config(strict=False, settings_obj=cfg) is False
    assert "STREAK_FREEZE_CAP" in caplog.text
    assert "STREAK_FREEZE_STRIDE" in caplog.text


def test_production_requires_database_url():
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        validate_config(strict=True, settings_obj=make_settings(ENV="production"))
    validate_config(
        strict=True,
        settings_obj=make_settings(ENV="production", DATABASE_URL="postgresql://u:p@localhost:5432/readquest"),
    )
