# app/utils/clock.py
from datetime import date, datetime, timezone


def request_clock(now: datetime | None = None) -> tuple[datetime, date]:
    """Fix the instant and the business date once for a whole request."""
    if now is None:
        now = datetime.now(timezone.utc)
    return now, now.date()
