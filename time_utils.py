from __future__ import annotations

import logging
import os
import time
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

_MS = timedelta(milliseconds=1)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def system_default_zone() -> tzinfo:
    """Current system zone, re-read on every call so host zone changes show up."""
    tz_name = os.getenv("TZ")
    if tz_name:
        try:
            return ZoneInfo(tz_name.lstrip(":"))
        except Exception:
            logger.debug("TZ=%s is not a zoneinfo key, using local offset", tz_name)
    if hasattr(time, "tzset"):
        # libc caches zone data until asked to reload it
        time.tzset()
    local_tz = datetime.now().astimezone().tzinfo
    if local_tz:
        return local_tz
    logger.warning("System timezone unavailable, fallback to UTC")
    return timezone.utc


def zone_id(tz: tzinfo) -> Optional[str]:
    key = getattr(tz, "key", None)
    if key:
        return key
    if tz is timezone.utc:
        return "UTC"
    return None


def resolve_timezone(name: Optional[str], default: Optional[tzinfo] = None) -> Tuple[tzinfo, bool]:
    """Resolve a zone identifier, falling back to the default zone.

    Returns the zone and whether the fallback was used because ``name`` was
    present but could not be loaded. An absent name is not a fallback.
    """
    fallback = default or system_default_zone()
    if not name:
        return fallback, False
    try:
        return ZoneInfo(name), False
    except Exception as exc:
        logger.warning(
            "Unknown timezone %r (%s), using default %s",
            name,
            exc,
            zone_id(fallback) or fallback,
        )
    return fallback, True


def ensure_aware(dt: datetime) -> datetime:
    if dt.tzinfo:
        return dt
    return dt.astimezone()


def to_epoch_ms(dt: datetime) -> int:
    dt = ensure_aware(dt)
    delta = dt - _EPOCH
    return delta // _MS


def from_epoch_ms(epoch_ms: int, tz: Optional[tzinfo] = None) -> datetime:
    utc = _EPOCH + epoch_ms * _MS
    return utc.astimezone(tz or timezone.utc)


def utc_offset_minutes(tz: tzinfo, at: datetime) -> int:
    offset = ensure_aware(at).astimezone(tz).utcoffset()
    if offset is None:
        return 0
    return int(offset.total_seconds() // 60)


def format_tz_offset(total_minutes: int) -> str:
    sign = "+" if total_minutes >= 0 else "-"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"
