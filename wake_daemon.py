import logging
import signal
import sys
import time
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from config import Config, load_config, setup_logging
from time_utils import resolve_timezone, system_default_zone, zone_id
from wake_alarm.daily import DailyWakeScheduler
from wake_alarm.dispatch import EventDispatcher
from wake_alarm.handler import WakeHandler
from wake_alarm.local import ClockWatcher, CommandLauncher, ThreadedAlarmScheduler, TimedIllumination
from wake_alarm.models import BOOT_COMPLETED
from wake_alarm.restorer import AlarmRestorer
from wake_alarm.storage import JsonPreferenceStore

logger = logging.getLogger("wake_daemon")


def graceful_exit(signum, frame) -> None:  # pragma: no cover - signal handler
    logger.info("Shutting down (signal %s)", signum)
    raise KeyboardInterrupt()


def parse_wake_args(argv: List[str]) -> Optional[Tuple[int, int, Optional[str]]]:
    """Parse ``HH:MM [TZ]`` from the command line, or None when not given."""
    if not argv:
        return None
    hour_str, sep, minute_str = argv[0].partition(":")
    if not sep:
        raise ValueError(f"Wake time must look like HH:MM, got {argv[0]!r}")
    try:
        hour, minute = int(hour_str), int(minute_str)
    except ValueError as exc:
        raise ValueError(f"Wake time must look like HH:MM, got {argv[0]!r}") from exc
    tz_id = argv[1] if len(argv) > 1 else None
    return hour, minute, tz_id


class WakeRuntime:
    def __init__(self, config: Config):
        self.config = config
        self._zone_override = None
        if config.default_timezone:
            self._zone_override, _ = resolve_timezone(config.default_timezone, system_default_zone())

        self.store = JsonPreferenceStore(config.prefs_path)
        self.launcher = CommandLauncher(config.launch_command)
        self.illumination = TimedIllumination()
        self.scheduler = ThreadedAlarmScheduler(
            on_fire=self._on_fire,
            check_interval=max(0.2, config.scheduler_check_interval_ms / 1000.0),
            exact_permitted=config.exact_alarms_permitted,
        )
        self.restorer = AlarmRestorer(self.store, self.scheduler, self.launcher, self.default_zone)
        self.handler = WakeHandler(self.launcher, self.illumination, config.illumination_ms)
        self.dispatcher = EventDispatcher(self.restorer, self.handler)
        self.daily = DailyWakeScheduler(self.store, self.scheduler, self.launcher, self.default_zone)
        self.clock_watcher = ClockWatcher(
            on_event=self.dispatcher.dispatch,
            tolerance=config.clock_jump_tolerance_s,
            zone_provider=self.default_zone,
        )

    def default_zone(self):
        if self._zone_override is not None:
            return self._zone_override
        return system_default_zone()

    def start(self) -> None:
        self.scheduler.start()
        self.clock_watcher.start()
        self.dispatcher.dispatch(BOOT_COMPLETED)

    def shutdown(self) -> None:
        self.clock_watcher.shutdown()
        self.scheduler.shutdown()
        self.illumination.release()

    def _on_fire(self, event) -> None:
        self.dispatcher.fire(event)
        # re-arm for the next day; the launched app may do the same
        self.dispatcher.dispatch(BOOT_COMPLETED)


def main() -> None:
    config = load_config()
    setup_logging(config.log_level, config.log_dir)
    signal.signal(signal.SIGINT, graceful_exit)
    logger.info("Starting wake daemon (prefs=%s)", config.prefs_path)
    if not config.launch_command:
        logger.warning("LAUNCH_COMMAND is empty, alarms will fire without launching anything")

    runtime = WakeRuntime(config)
    wake_args = parse_wake_args(sys.argv[1:])
    if wake_args:
        hour, minute, tz_id = wake_args
        result = runtime.daily.schedule_wake(hour, minute, tz_id, datetime.now(timezone.utc))
        logger.info(
            "Wake set to %02d:%02d (%s): %s",
            hour,
            minute,
            tz_id or zone_id(runtime.default_zone()),
            result.outcome.value,
        )

    runtime.start()
    try:
        while True:
            time.sleep(0.5)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        runtime.shutdown()


if __name__ == "__main__":
    main()
