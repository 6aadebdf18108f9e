from datetime import date, datetime, timezone


def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def today_utc() -> date:
    return now_utc().date()


def to_utc_date(value) -> date:
    """Reduce a date, datetime or ISO string to a UTC calendar date.

    Aware datetimes are converted to UTC first; naive ones are taken as UTC.
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip())
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"cannot convert {type(value).__name__} to a date")
