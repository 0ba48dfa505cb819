# Central place for all configurable settings. We use Pydantic's
# BaseSettings so values can be read from env vars or a .env file.
# This keeps deployment flexible without hardcoding secrets.

import json
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def safe_json_loads(value):
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return value


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_json_loads=safe_json_loads,
    )

    # Core DB connection string, like sqlite:///./sitekeeper.db or Postgres URL.
    # Needed by SQLAlchemy to connect to the persistence layer.
    DATABASE_URL: str

    # Toggle SQLAlchemy echo logs. Useful for debugging queries locally.
    DB_ECHO: bool = False

    # Self-hosted instances skip every billing side effect (trial
    # manipulation, site locking) and have all features available.
    SELFHOST: bool = False

    # Funnel bounds. A funnel shorter than the minimum cannot exist.
    FUNNEL_MIN_STEPS: int = Field(default=2, ge=1)
    FUNNEL_MAX_STEPS: int = Field(default=8, ge=1)

    # Longest accepted event name / page path for a goal.
    GOAL_NAME_MAX_LENGTH: int = Field(default=120, gt=0)

    # Invitation lifetime. Stored on the invitation, shown in emails.
    INVITE_TOKEN_TTL_HOURS: int = Field(default=48, gt=0)

    # Days a lapsed subscriber keeps dashboard access before sites lock.
    GRACE_PERIOD_DAYS: int = Field(default=7, gt=0)

    # Outgoing mail identity and link base.
    MAILER_FROM_EMAIL: str = "hello@sitekeeper.local"
    MAILER_BRAND: str = "Sitekeeper Analytics"
    APP_BASE_URL: Optional[str] = None

    @model_validator(mode="after")
    def _check_funnel_bounds(self):
        if self.FUNNEL_MAX_STEPS < self.FUNNEL_MIN_STEPS:
            raise ValueError("FUNNEL_MAX_STEPS must be >= FUNNEL_MIN_STEPS")
        return self


# Instantiate a single settings object for app-wide import.
# Any module can just `from sitekeeper.core.config import settings`.
settings = Settings()
