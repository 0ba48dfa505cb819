import os

import pytest
from pydantic import ValidationError

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from sitekeeper.core.config import Settings


def test_settings_defaults(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    for key in ("SELFHOST", "FUNNEL_MIN_STEPS", "FUNNEL_MAX_STEPS", "GOAL_NAME_MAX_LENGTH", "MAILER_BRAND"):
        monkeypatch.delenv(key, raising=False)

    cfg = Settings(_env_file=None)

    assert cfg.SELFHOST is False
    assert cfg.FUNNEL_MIN_STEPS == 2
    assert cfg.FUNNEL_MAX_STEPS == 8
    assert cfg.GOAL_NAME_MAX_LENGTH == 120
    assert cfg.INVITE_TOKEN_TTL_HOURS == 48
    assert cfg.GRACE_PERIOD_DAYS == 7
    assert cfg.MAILER_BRAND == "Sitekeeper Analytics"
    assert cfg.APP_BASE_URL is None


def test_settings_env_overrides(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/sitekeeper")
    monkeypatch.setenv("SELFHOST", "true")
    monkeypatch.setenv("FUNNEL_MAX_STEPS", "5")
    monkeypatch.setenv("APP_BASE_URL", "https://stats.example.com")

    cfg = Settings(_env_file=None)

    assert cfg.DATABASE_URL == "postgresql://localhost/sitekeeper"
    assert cfg.SELFHOST is True
    assert cfg.FUNNEL_MAX_STEPS == 5
    assert cfg.APP_BASE_URL == "https://stats.example.com"


def test_settings_reject_inverted_funnel_bounds(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("FUNNEL_MIN_STEPS", "4")
    monkeypatch.setenv("FUNNEL_MAX_STEPS", "3")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_settings_require_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
