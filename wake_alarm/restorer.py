from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, tzinfo
from typing import Callable, Optional

from time_utils import ensure_aware, resolve_timezone, system_default_zone, to_epoch_ms, zone_id

from .models import (
    KEY_NEXT_EPOCH_MS,
    RESTORE_ACTIONS,
    WAKE_ALARM_KEY,
    RestoreOutcome,
    RestoreResult,
    SchedulingFailure,
    SchedulingPermissionDenied,
    TriggerEvent,
)
from .platform import FOREGROUND_FLAGS, AppLauncher, ExactAlarmScheduler, LaunchTarget, PersistenceStore
from .schedule import next_trigger
from .storage import read_alarm_config

logger = logging.getLogger(__name__)


class AlarmRestorer:
    """Re-registers the daily wake alarm after boot or a clock/zone change."""

    def __init__(
        self,
        store: PersistenceStore,
        scheduler: ExactAlarmScheduler,
        launcher: Optional[AppLauncher] = None,
        default_zone: Optional[Callable[[], tzinfo]] = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.launcher = launcher
        self.default_zone = default_zone or system_default_zone

    def on_receive(self, action: Optional[str], now: datetime) -> RestoreResult:
        logger.info("Restore event received: %s", action)
        if action not in RESTORE_ACTIONS:
            logger.warning("Ignoring action: %s", action)
            return RestoreResult(RestoreOutcome.IGNORED)
        try:
            return self.restore(now)
        except Exception:
            logger.error("Failed to restore alarm", exc_info=True)
            return RestoreResult(RestoreOutcome.SCHEDULING_FAILED)

    def restore(self, now: datetime) -> RestoreResult:
        now = ensure_aware(now)
        try:
            config = read_alarm_config(self.store)
        except Exception:
            logger.error("Could not read stored alarm config, nothing restored", exc_info=True)
            return RestoreResult(RestoreOutcome.CONFIG_UNREADABLE)
        if config is None:
            logger.info("No wake alarm configured, nothing to restore")
            return RestoreResult(RestoreOutcome.MISSING_CONFIG)
        if not config.is_valid():
            logger.error(
                "Invalid stored alarm time %r:%r (tz=%r), skipping restore",
                config.wake_hour,
                config.wake_min,
                config.tz_id,
            )
            return RestoreResult(RestoreOutcome.INVALID_CONFIG)

        default = self.default_zone()
        tz, zone_fallback = resolve_timezone(config.tz_id, default)
        tz_id = config.tz_id or zone_id(default)
        logger.info("Restoring alarm: %02d:%02d (tz: %s)", config.wake_hour, config.wake_min, tz_id)

        trigger_at = next_trigger(config.wake_hour, config.wake_min, tz, now)
        trigger_ms = to_epoch_ms(trigger_at)
        logger.info("Next alarm: %s (epoch: %s, now: %s)", trigger_at.isoformat(), trigger_ms, now.isoformat())

        fire_action = TriggerEvent(
            wake_hour=config.wake_hour,
            wake_min=config.wake_min,
            tz_id=tz_id,
            tz_offset_min=config.tz_offset_min,
        )
        try:
            self.scheduler.register_with_indicator(
                trigger_at, fire_action, self._show_target(), WAKE_ALARM_KEY
            )
        except SchedulingPermissionDenied:
            logger.error(
                "Exact alarm permission missing, alarm at %s (tz=%s) not set",
                trigger_at.isoformat(),
                tz_id,
                exc_info=True,
            )
            return RestoreResult(RestoreOutcome.PERMISSION_DENIED, trigger_at, zone_fallback)
        except SchedulingFailure as exc:
            logger.error("Failed to set alarm at %s (tz=%s): %s", trigger_at.isoformat(), tz_id, exc)
            return RestoreResult(RestoreOutcome.SCHEDULING_FAILED, trigger_at, zone_fallback)
        except Exception:
            logger.error(
                "Unexpected error setting alarm at %s (tz=%s)", trigger_at.isoformat(), tz_id, exc_info=True
            )
            return RestoreResult(RestoreOutcome.SCHEDULING_FAILED, trigger_at, zone_fallback)

        try:
            self.store.set(KEY_NEXT_EPOCH_MS, trigger_ms)
        except Exception:
            logger.warning("Could not cache next trigger %s", trigger_ms, exc_info=True)
        logger.info("Alarm restored successfully: %s", trigger_at.isoformat())
        return RestoreResult(RestoreOutcome.SCHEDULED, trigger_at, zone_fallback)

    def _show_target(self) -> Optional[LaunchTarget]:
        if self.launcher is None:
            return None
        try:
            target = self.launcher.resolve_launch_target()
        except Exception:
            logger.warning("Could not resolve launch target for the alarm indicator", exc_info=True)
            return None
        if target is None:
            logger.warning("No launch target, alarm indicator will not open the app")
            return None
        return replace(target, flags=target.flags | FOREGROUND_FLAGS)
