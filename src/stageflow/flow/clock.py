from datetime import UTC, datetime

SECONDS_PER_DAY = 86_400.0


def resolve_now(now: datetime | None = None) -> datetime:
    """Capture "now" once per computation; naive values are taken as UTC."""
    if now is None:
        return datetime.now(UTC)
    return as_utc(now)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def elapsed_days(since: datetime | None, now: datetime) -> float:
    """Fractional days from `since` to `now`, floored at zero.

    A missing timestamp counts as "now", so the elapsed time is zero.
    """
    if since is None:
        return 0.0
    delta = (now - as_utc(since)).total_seconds() / SECONDS_PER_DAY
    return max(0.0, delta)
