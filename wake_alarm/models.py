from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

# Persisted keys
KEY_WAKE_HOUR = "wake_hour"
KEY_WAKE_MIN = "wake_min"
KEY_TZ_ID = "tz_id"
KEY_TZ_OFFSET_MIN = "tz_offset_min"
KEY_NEXT_EPOCH_MS = "next_epoch_ms"

# Launch payload keys
EXTRA_ALARM_WAKE = "tap_alarm_wake"
EXTRA_TRIGGER_TIME = "alarm_trigger_time"

BOOT_COMPLETED = "android.intent.action.BOOT_COMPLETED"
LOCKED_BOOT_COMPLETED = "android.intent.action.LOCKED_BOOT_COMPLETED"
TIME_SET = "android.intent.action.TIME_SET"
TIMEZONE_CHANGED = "android.intent.action.TIMEZONE_CHANGED"
ACTION_ALARM_WAKE = "wake_alarm.ACTION_ALARM_WAKE"

RESTORE_ACTIONS = frozenset({BOOT_COMPLETED, LOCKED_BOOT_COMPLETED, TIME_SET, TIMEZONE_CHANGED})

WAKE_ALARM_KEY = 1001
ILLUMINATION_MS = 10_000


class SchedulingPermissionDenied(PermissionError):
    """Exact alarms are not granted to this app."""


class SchedulingFailure(RuntimeError):
    pass


class IlluminationUnavailable(RuntimeError):
    pass


class LaunchFailure(RuntimeError):
    pass


class RestoreOutcome(Enum):
    IGNORED = "ignored"
    MISSING_CONFIG = "missing_config"
    INVALID_CONFIG = "invalid_config"
    CONFIG_UNREADABLE = "config_unreadable"
    SCHEDULED = "scheduled"
    PERMISSION_DENIED = "permission_denied"
    SCHEDULING_FAILED = "scheduling_failed"


class WakeOutcome(Enum):
    IGNORED = "ignored"
    LAUNCHED = "launched"
    LAUNCH_TARGET_MISSING = "launch_target_missing"
    LAUNCH_FAILED = "launch_failed"


@dataclass(frozen=True)
class AlarmConfig:
    wake_hour: int
    wake_min: int
    tz_id: Optional[str] = None
    tz_offset_min: int = 0
    next_epoch_ms: Optional[int] = None

    def is_valid(self) -> bool:
        return _is_int(self.wake_hour) and _is_int(self.wake_min) and (
            0 <= self.wake_hour <= 23 and 0 <= self.wake_min <= 59
        )


@dataclass(frozen=True)
class TriggerEvent:
    wake_hour: int
    wake_min: int
    tz_id: Optional[str]
    tz_offset_min: int
    action: str = ACTION_ALARM_WAKE

    def to_extras(self) -> dict:
        return {
            KEY_WAKE_HOUR: self.wake_hour,
            KEY_WAKE_MIN: self.wake_min,
            KEY_TZ_ID: self.tz_id,
            KEY_TZ_OFFSET_MIN: self.tz_offset_min,
        }

    @classmethod
    def from_extras(cls, extras: Optional[Mapping[str, Any]], action: str = ACTION_ALARM_WAKE) -> "TriggerEvent":
        extras = extras or {}
        return cls(
            wake_hour=_int_or(extras.get(KEY_WAKE_HOUR), -1),
            wake_min=_int_or(extras.get(KEY_WAKE_MIN), -1),
            tz_id=extras.get(KEY_TZ_ID),
            tz_offset_min=_int_or(extras.get(KEY_TZ_OFFSET_MIN), 0),
            action=action,
        )


@dataclass(frozen=True)
class LaunchPayload:
    wake_hour: int
    wake_min: int
    tz_id: Optional[str]
    tz_offset_min: int
    alarm_trigger_time: int
    tap_alarm_wake: bool = True

    @classmethod
    def from_event(cls, event: TriggerEvent, trigger_time_ms: int) -> "LaunchPayload":
        return cls(
            wake_hour=event.wake_hour,
            wake_min=event.wake_min,
            tz_id=event.tz_id,
            tz_offset_min=event.tz_offset_min,
            alarm_trigger_time=trigger_time_ms,
        )

    def to_extras(self) -> dict:
        return {
            EXTRA_ALARM_WAKE: self.tap_alarm_wake,
            KEY_WAKE_HOUR: self.wake_hour,
            KEY_WAKE_MIN: self.wake_min,
            KEY_TZ_ID: self.tz_id,
            KEY_TZ_OFFSET_MIN: self.tz_offset_min,
            EXTRA_TRIGGER_TIME: self.alarm_trigger_time,
        }


@dataclass(frozen=True)
class RestoreResult:
    outcome: RestoreOutcome
    trigger_at: Optional[datetime] = None
    zone_fallback: bool = False

    @property
    def scheduled(self) -> bool:
        return self.outcome is RestoreOutcome.SCHEDULED


@dataclass(frozen=True)
class WakeResult:
    outcome: WakeOutcome
    illuminated: bool = False
    payload: Optional[LaunchPayload] = None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _int_or(value: Any, default: int) -> int:
    return value if _is_int(value) else default
