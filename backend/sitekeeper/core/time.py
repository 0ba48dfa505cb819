from datetime import date, datetime, timedelta, timezone


def utcnow() -> datetime:
    # Stored naive; every timestamp column is UTC.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    return utcnow().date()


def yesterday(reference: date | None = None) -> date:
    return (reference or today()) - timedelta(days=1)
