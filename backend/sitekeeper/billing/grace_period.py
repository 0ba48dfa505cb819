from __future__ import annotations

from datetime import date, timedelta

from sitekeeper.core.config import settings
from sitekeeper.core.time import today as utc_today


def _parse_date(value) -> date | None:
    if value is None:
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def start(
    days: int | None = None, *, allowance_required: int | None = None, today: date | None = None
) -> dict:
    if days is None:
        days = settings.GRACE_PERIOD_DAYS
    start_date = today or utc_today()
    return {
        "allowance_required": allowance_required,
        "start_date": start_date.isoformat(),
        "end_date": (start_date + timedelta(days=days)).isoformat(),
        "is_over": False,
        "manual_lock": False,
    }


def start_manual_lock(*, allowance_required: int | None = None, today: date | None = None) -> dict:
    start_date = today or utc_today()
    return {
        "allowance_required": allowance_required,
        "start_date": start_date.isoformat(),
        "end_date": None,
        "is_over": False,
        "manual_lock": True,
    }


def end(grace_period: dict) -> dict:
    ended = dict(grace_period)
    ended["is_over"] = True
    return ended


def end_date(grace_period: dict | None) -> date | None:
    if not grace_period:
        return None
    return _parse_date(grace_period.get("end_date"))


def is_active(grace_period: dict | None, today: date | None = None) -> bool:
    if not grace_period or grace_period.get("is_over"):
        return False
    if grace_period.get("manual_lock"):
        return True
    ends = end_date(grace_period)
    return ends is not None and ends >= (today or utc_today())


def is_expired(grace_period: dict | None, today: date | None = None) -> bool:
    if not grace_period:
        return False
    if grace_period.get("manual_lock"):
        return bool(grace_period.get("is_over"))
    ends = end_date(grace_period)
    return ends is not None and ends < (today or utc_today())
