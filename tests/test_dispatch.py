from datetime import datetime, timezone

from conftest import FakeIllumination, FakeLauncher, FakeScheduler, FakeStore
from wake_alarm.dispatch import EventDispatcher
from wake_alarm.handler import WakeHandler
from wake_alarm.models import (
    ACTION_ALARM_WAKE,
    BOOT_COMPLETED,
    TIME_SET,
    RestoreOutcome,
    WakeOutcome,
)
from wake_alarm.restorer import AlarmRestorer

NOW = datetime(2025, 1, 1, 6, 0, tzinfo=timezone.utc)


def _dispatcher(store=None, scheduler=None, launcher=None, clock=lambda: NOW):
    store = store if store is not None else FakeStore({"wake_hour": 6, "wake_min": 30, "tz_id": "UTC"})
    scheduler = scheduler or FakeScheduler()
    launcher = launcher or FakeLauncher()
    restorer = AlarmRestorer(store, scheduler, launcher, lambda: timezone.utc)
    handler = WakeHandler(launcher, FakeIllumination())
    return EventDispatcher(restorer, handler, clock)


def test_routes_restore_actions():
    scheduler = FakeScheduler()
    result = _dispatcher(scheduler=scheduler).dispatch(BOOT_COMPLETED)
    assert result.outcome is RestoreOutcome.SCHEDULED
    assert _dispatcher().dispatch(TIME_SET).outcome is RestoreOutcome.SCHEDULED


def test_routes_wake_action_end_to_end():
    scheduler, launcher = FakeScheduler(), FakeLauncher()
    dispatcher = _dispatcher(scheduler=scheduler, launcher=launcher)
    dispatcher.dispatch(BOOT_COMPLETED)
    _, fire_action, _, _ = scheduler.calls[0]

    dispatcher.fire(fire_action)

    assert launcher.launches[0][1]["tap_alarm_wake"] is True
    assert launcher.launches[0][1]["wake_min"] == 30


def test_wake_action_result():
    result = _dispatcher().dispatch(ACTION_ALARM_WAKE, {"wake_hour": 6, "wake_min": 30})
    assert result.outcome is WakeOutcome.LAUNCHED


def test_unknown_action_has_no_receiver():
    assert _dispatcher().dispatch("android.intent.action.PACKAGE_ADDED") is None
    assert _dispatcher().dispatch(None) is None


def test_errors_never_escape():
    def broken_clock():
        raise RuntimeError("clock unavailable")

    assert _dispatcher(clock=broken_clock).dispatch(BOOT_COMPLETED) is None
