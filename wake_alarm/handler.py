from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Mapping, Optional

from time_utils import ensure_aware, to_epoch_ms

from .models import (
    ACTION_ALARM_WAKE,
    ILLUMINATION_MS,
    IlluminationUnavailable,
    LaunchFailure,
    LaunchPayload,
    TriggerEvent,
    WakeOutcome,
    WakeResult,
)
from .platform import FOREGROUND_FLAGS, AppLauncher, IlluminationResource

logger = logging.getLogger(__name__)


class WakeHandler:
    """Lights the screen and brings the app to the front when the wake alarm fires."""

    def __init__(
        self,
        launcher: AppLauncher,
        illumination: Optional[IlluminationResource] = None,
        illumination_ms: int = ILLUMINATION_MS,
    ):
        self.launcher = launcher
        self.illumination = illumination
        self.illumination_ms = illumination_ms

    def on_receive(self, action: Optional[str], extras: Optional[Mapping[str, Any]], now: datetime) -> WakeResult:
        now = ensure_aware(now)
        logger.info("Alarm received: action=%s at %s", action, now.isoformat())
        if action != ACTION_ALARM_WAKE:
            logger.warning("Unknown action: %s", action)
            return WakeResult(WakeOutcome.IGNORED)

        illuminated = self._illuminate()
        event = TriggerEvent.from_extras(extras, action=action)

        try:
            target = self.launcher.resolve_launch_target()
        except Exception:
            logger.error("Resolving the launch target failed", exc_info=True)
            target = None
        if target is None:
            logger.error(
                "No launch target resolvable, alarm %02d:%02d has nothing to wake", event.wake_hour, event.wake_min
            )
            return WakeResult(WakeOutcome.LAUNCH_TARGET_MISSING, illuminated)

        payload = LaunchPayload.from_event(event, to_epoch_ms(now))
        target = replace(target, flags=target.flags | FOREGROUND_FLAGS)
        logger.info(
            "Launching %s with alarm data: wake=%02d:%02d tz_id=%s tz_offset_min=%s alarm_trigger_time=%s",
            target.name,
            payload.wake_hour,
            payload.wake_min,
            payload.tz_id,
            payload.tz_offset_min,
            payload.alarm_trigger_time,
        )
        try:
            self.launcher.launch(target, payload.to_extras())
        except LaunchFailure as exc:
            logger.error("Failed to launch %s: %s", target.name, exc)
            return WakeResult(WakeOutcome.LAUNCH_FAILED, illuminated, payload)
        except Exception:
            logger.error("Failed to launch %s", target.name, exc_info=True)
            return WakeResult(WakeOutcome.LAUNCH_FAILED, illuminated, payload)
        logger.info("App launch triggered")
        return WakeResult(WakeOutcome.LAUNCHED, illuminated, payload)

    def _illuminate(self) -> bool:
        if self.illumination is None:
            logger.warning("Illumination not available, cannot light the screen")
            return False
        try:
            self.illumination.acquire(self.illumination_ms)
        except IlluminationUnavailable as exc:
            logger.warning("Illumination unavailable: %s", exc)
            return False
        except Exception:
            logger.error("Failed to acquire illumination", exc_info=True)
            return False
        logger.info("Illumination acquired for %sms: screen should light up", self.illumination_ms)
        return True
