from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Callable, Optional

from time_utils import ensure_aware, from_epoch_ms, resolve_timezone, system_default_zone, utc_offset_minutes

from .models import (
    KEY_NEXT_EPOCH_MS,
    WAKE_ALARM_KEY,
    AlarmConfig,
    RestoreOutcome,
    RestoreResult,
)
from .platform import AppLauncher, ExactAlarmScheduler, PersistenceStore
from .restorer import AlarmRestorer
from .schedule import next_trigger
from .storage import clear_alarm_config, write_alarm_config

logger = logging.getLogger(__name__)


class DailyWakeScheduler:
    """Consumer-side API: arm, cancel and inspect the daily wake alarm.

    Arming writes the alarm config and then goes through the same
    registration path as the boot-time restorer, so both always agree on
    the next trigger.
    """

    def __init__(
        self,
        store: PersistenceStore,
        scheduler: ExactAlarmScheduler,
        launcher: Optional[AppLauncher] = None,
        default_zone: Optional[Callable[[], tzinfo]] = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.default_zone = default_zone or system_default_zone
        self.restorer = AlarmRestorer(store, scheduler, launcher, self.default_zone)

    def schedule_wake(self, wake_hour: int, wake_min: int, tz_id: Optional[str], now: datetime) -> RestoreResult:
        config = AlarmConfig(wake_hour=wake_hour, wake_min=wake_min, tz_id=tz_id)
        if not config.is_valid():
            raise ValueError(f"Wake time must be within 00:00-23:59, got {wake_hour!r}:{wake_min!r}")

        if not self.scheduler.can_schedule_exact():
            logger.error("SCHEDULE_EXACT_ALARM permission not granted, wake %02d:%02d not set", wake_hour, wake_min)
            return RestoreResult(RestoreOutcome.PERMISSION_DENIED)

        now = ensure_aware(now)
        tz, _ = resolve_timezone(tz_id, self.default_zone())
        offset_min = utc_offset_minutes(tz, next_trigger(wake_hour, wake_min, tz, now))
        write_alarm_config(
            self.store,
            AlarmConfig(wake_hour=wake_hour, wake_min=wake_min, tz_id=tz_id, tz_offset_min=offset_min),
        )
        logger.info("Saved wake config %02d:%02d tz=%s offset=%s", wake_hour, wake_min, tz_id, offset_min)
        return self.restorer.restore(now)

    def cancel_wake(self) -> bool:
        cancelled = self.scheduler.cancel(WAKE_ALARM_KEY)
        clear_alarm_config(self.store)
        if cancelled:
            logger.info("Wake alarm canceled")
        else:
            logger.info("No existing wake alarm, already canceled")
        return cancelled

    def next_wake_local(self, tz: Optional[tzinfo] = None) -> Optional[datetime]:
        saved = self.store.get(KEY_NEXT_EPOCH_MS)
        try:
            epoch_ms = int(saved)
        except (TypeError, ValueError):
            logger.warning("No saved wake time (%r)", saved)
            return None
        return from_epoch_ms(epoch_ms, tz or self.default_zone())
