from __future__ import annotations

from datetime import datetime, time, timedelta, timezone, tzinfo

from time_utils import ensure_aware


def next_trigger(wake_hour: int, wake_min: int, tz: tzinfo, now: datetime) -> datetime:
    """Next instant at ``wake_hour:wake_min`` local to ``tz`` strictly after ``now``.

    The day is advanced on the calendar in ``tz`` (not by a fixed 24h), so a
    DST change between today and tomorrow keeps the local wall time.
    """
    now = ensure_aware(now)
    today = now.astimezone(tz).date()
    candidate = datetime.combine(today, time(wake_hour, wake_min), tzinfo=tz)
    # compare in UTC: same-tzinfo comparisons ignore fold
    if candidate.astimezone(timezone.utc) <= now.astimezone(timezone.utc):
        candidate = datetime.combine(today + timedelta(days=1), time(wake_hour, wake_min), tzinfo=tz)
    return candidate
