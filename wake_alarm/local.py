from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Event, Lock, Thread, Timer
from typing import Any, Callable, Dict, Hashable, List, Mapping, Optional, Sequence

from time_utils import ensure_aware, system_default_zone, utc_offset_minutes, zone_id

from .consumer import PAYLOAD_ENV
from .models import (
    TIME_SET,
    TIMEZONE_CHANGED,
    IlluminationUnavailable,
    LaunchFailure,
    SchedulingFailure,
    SchedulingPermissionDenied,
    TriggerEvent,
)
from .platform import LaunchFlags, LaunchTarget

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PendingAlarm:
    key: Hashable
    trigger_at: datetime
    fire_action: TriggerEvent
    show_action: Optional[LaunchTarget]


class ThreadedAlarmScheduler:
    """Exact-alarm registry backed by a polling thread in this process."""

    def __init__(
        self,
        on_fire: Callable[[TriggerEvent], None],
        check_interval: float = 0.8,
        exact_permitted: bool = True,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.on_fire = on_fire
        self.check_interval = max(0.2, check_interval)
        self.exact_permitted = exact_permitted
        self.clock = clock

        self._pending: Dict[Hashable, PendingAlarm] = {}
        self._lock = Lock()
        self._stop_event = Event()
        self._thread: Optional[Thread] = None

    def start(self) -> None:
        self._stop_event.clear()
        self._thread = Thread(target=self._loop, name="wake-alarm-scheduler", daemon=True)
        self._thread.start()

    def shutdown(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=2)
        self._thread = None

    def can_schedule_exact(self) -> bool:
        return self.exact_permitted

    def register_with_indicator(
        self,
        trigger_at: datetime,
        fire_action: TriggerEvent,
        show_action: Optional[LaunchTarget],
        idempotency_key: Hashable,
    ) -> None:
        if not self.exact_permitted:
            raise SchedulingPermissionDenied("exact alarms are not permitted on this host")
        if trigger_at.tzinfo is None:
            raise SchedulingFailure(f"trigger instant must be timezone-aware, got {trigger_at!r}")
        alarm = PendingAlarm(idempotency_key, trigger_at, fire_action, show_action)
        with self._lock:
            replaced = idempotency_key in self._pending
            self._pending[idempotency_key] = alarm
        logger.info(
            "Alarm %s %s for %s",
            idempotency_key,
            "replaced" if replaced else "scheduled",
            trigger_at.isoformat(),
        )

    def cancel(self, idempotency_key: Hashable) -> bool:
        with self._lock:
            alarm = self._pending.pop(idempotency_key, None)
        if alarm:
            logger.info("Alarm %s canceled (was due %s)", idempotency_key, alarm.trigger_at.isoformat())
        return alarm is not None

    def pending(self) -> List[PendingAlarm]:
        with self._lock:
            return sorted(self._pending.values(), key=lambda a: a.trigger_at)

    def fire_due(self) -> int:
        fired = 0
        for alarm in self._pop_due():
            logger.info("Alarm %s triggered (due %s)", alarm.key, alarm.trigger_at.isoformat())
            try:
                self.on_fire(alarm.fire_action)
            except Exception:  # pragma: no cover - callback safety
                logger.error("on_fire callback failed", exc_info=True)
            fired += 1
        return fired

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            if self.fire_due():
                continue
            self._stop_event.wait(self.check_interval)

    def _pop_due(self) -> List[PendingAlarm]:
        now = ensure_aware(self.clock())
        with self._lock:
            due = [a for a in self._pending.values() if a.trigger_at <= now]
            for alarm in due:
                del self._pending[alarm.key]
        return due


class TimedIllumination:
    """Marks the display as lit until an auto-release timer expires.

    ``on_change`` receives ``True`` on acquire and ``False`` on release, so a
    host can drive an actual backlight or screensaver inhibitor.
    """

    def __init__(self, on_change: Optional[Callable[[bool], None]] = None):
        self.on_change = on_change
        self._lock = Lock()
        self._timer: Optional[Timer] = None
        self._generation = 0

    @property
    def held(self) -> bool:
        with self._lock:
            return self._timer is not None

    def acquire(self, max_duration_ms: int) -> None:
        if max_duration_ms <= 0:
            raise IlluminationUnavailable(f"duration must be positive, got {max_duration_ms}ms")
        if self.on_change:
            try:
                self.on_change(True)
            except Exception as exc:
                raise IlluminationUnavailable(str(exc)) from exc
        with self._lock:
            if self._timer:
                self._timer.cancel()
            self._generation += 1
            self._timer = Timer(max_duration_ms / 1000.0, self._expire, args=(self._generation,))
            self._timer.daemon = True
            self._timer.start()
        logger.debug("Illumination held for %sms", max_duration_ms)

    def release(self) -> None:
        with self._lock:
            timer, self._timer = self._timer, None
        if timer:
            timer.cancel()
            self._lights_off()

    def _expire(self, generation: int) -> None:
        with self._lock:
            if self._timer is None or generation != self._generation:
                return
            self._timer = None
        logger.debug("Illumination auto-released")
        self._lights_off()

    def _lights_off(self) -> None:
        if not self.on_change:
            return
        try:
            self.on_change(False)
        except Exception:
            logger.warning("Illumination release callback failed", exc_info=True)


class CommandLauncher:
    """Starts the consumer application as a subprocess.

    The launch payload is handed over as JSON in ``WAKE_ALARM_PAYLOAD``.
    """

    def __init__(self, command: Sequence[str], name: Optional[str] = None):
        self.command = tuple(command)
        self.name = name or (os.path.basename(self.command[0]) if self.command else "")
        self._process: Optional[subprocess.Popen] = None

    def resolve_launch_target(self) -> Optional[LaunchTarget]:
        if not self.command:
            return None
        executable = shutil.which(self.command[0])
        if executable is None:
            logger.error("Launch command not found: %s", self.command[0])
            return None
        return LaunchTarget(name=self.name, command=(executable,) + self.command[1:])

    def launch(self, target: LaunchTarget, extras: Mapping[str, Any]) -> None:
        running = self._process is not None and self._process.poll() is None
        if running and LaunchFlags.CLEAR_TOP in target.flags:
            logger.info("Closing running %s (pid=%s) before relaunch", target.name, self._process.pid)
            self._process.terminate()
            try:
                self._process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self._process.kill()
        elif running:
            logger.info("%s already running (pid=%s), not launching again", target.name, self._process.pid)
            return

        env = dict(os.environ)
        env[PAYLOAD_ENV] = json.dumps(dict(extras), ensure_ascii=False)
        try:
            self._process = subprocess.Popen(list(target.command), env=env)
        except OSError as exc:
            raise LaunchFailure(f"could not start {target.command[0]}: {exc}") from exc
        logger.info("Started %s (pid=%s)", target.name, self._process.pid)


class ClockWatcher:
    """Emits TIME_SET / TIMEZONE_CHANGED when the host clock or zone changes.

    A wall-clock jump is a drift between wall time and the monotonic clock
    larger than ``tolerance`` seconds since the previous check.
    """

    def __init__(
        self,
        on_event: Callable[[str], None],
        tolerance: float = 2.0,
        check_interval: float = 1.0,
        zone_provider: Callable[[], Any] = system_default_zone,
    ):
        self.on_event = on_event
        self.tolerance = tolerance
        self.check_interval = check_interval
        self.zone_provider = zone_provider
        self._stop_event = Event()
        self._thread: Optional[Thread] = None
        self._last_wall = time.time()
        self._last_mono = time.monotonic()
        self._last_zone = self._zone_signature()

    def start(self) -> None:
        self._stop_event.clear()
        self._thread = Thread(target=self._loop, name="clock-watcher", daemon=True)
        self._thread.start()

    def shutdown(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=2)
        self._thread = None

    def check(self, wall: Optional[float] = None, mono: Optional[float] = None) -> List[str]:
        wall = time.time() if wall is None else wall
        mono = time.monotonic() if mono is None else mono
        events = []
        drift = (wall - self._last_wall) - (mono - self._last_mono)
        self._last_wall, self._last_mono = wall, mono
        if abs(drift) > self.tolerance:
            logger.info("Wall clock jumped by %.1fs", drift)
            events.append(TIME_SET)
        zone = self._zone_signature()
        if zone != self._last_zone:
            logger.info("System timezone changed: %s -> %s", self._last_zone, zone)
            self._last_zone = zone
            events.append(TIMEZONE_CHANGED)
        for action in events:
            try:
                self.on_event(action)
            except Exception:  # pragma: no cover - callback safety
                logger.error("Clock change callback failed for %s", action, exc_info=True)
        return events

    def _loop(self) -> None:
        while not self._stop_event.wait(self.check_interval):
            self.check()

    def _zone_signature(self):
        tz = self.zone_provider()
        return zone_id(tz), utc_offset_minutes(tz, _utc_now())
