from datetime import date, datetime, time, timedelta, timezone


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize to an aware UTC datetime with whole seconds.

    Naive values are taken to already be UTC (SQLite hands them back naive).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.replace(microsecond=0)


def utcnow() -> datetime:
    return as_utc(datetime.now(timezone.utc))


def annual_expiry_date(paid_on: date) -> date:
    # one day before the anniversary; Feb 29 rolls to Feb 28
    first_of_month = date(paid_on.year + 1, paid_on.month, 1)
    return first_of_month + timedelta(days=paid_on.day - 2)


def annual_expiry(payment_time: datetime) -> datetime:
    return datetime.combine(
        annual_expiry_date(payment_time.date()),
        time.min,
        tzinfo=timezone.utc,
    )
