from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from conftest import FakeScheduler, FakeStore
from wake_alarm.models import (
    BOOT_COMPLETED,
    LOCKED_BOOT_COMPLETED,
    TIME_SET,
    TIMEZONE_CHANGED,
    WAKE_ALARM_KEY,
    RestoreOutcome,
    SchedulingFailure,
)
from wake_alarm.platform import FOREGROUND_FLAGS
from wake_alarm.restorer import AlarmRestorer


def _now(hour=7, minute=0) -> datetime:
    return datetime(2025, 3, 10, hour, minute, tzinfo=timezone.utc)


def _store(**values) -> FakeStore:
    base = {"wake_hour": 7, "wake_min": 30, "tz_id": "UTC", "tz_offset_min": 0}
    base.update(values)
    return FakeStore({k: v for k, v in base.items() if v is not None})


def _restorer(store, scheduler=None, launcher=None, default_zone=timezone.utc):
    return AlarmRestorer(store, scheduler or FakeScheduler(), launcher, lambda: default_zone)


def test_scenario_a_same_day():
    restorer = _restorer(_store())
    result = restorer.restore(_now(7, 0))
    assert result.outcome is RestoreOutcome.SCHEDULED
    assert result.trigger_at == datetime(2025, 3, 10, 7, 30, tzinfo=timezone.utc)


def test_scenario_b_rolls_over_to_next_day():
    restorer = _restorer(_store())
    result = restorer.restore(_now(8, 0))
    assert result.trigger_at == datetime(2025, 3, 11, 7, 30, tzinfo=timezone.utc)


def test_exact_trigger_time_counts_as_past():
    restorer = _restorer(_store())
    result = restorer.restore(_now(7, 30))
    assert result.trigger_at == datetime(2025, 3, 11, 7, 30, tzinfo=timezone.utc)


def test_scenario_c_unknown_zone_falls_back_to_default(tokyo):
    scheduler = FakeScheduler()
    restorer = _restorer(_store(tz_id="Not/AZone"), scheduler, default_zone=tokyo)
    result = restorer.restore(_now(8, 0))

    assert result.outcome is RestoreOutcome.SCHEDULED
    assert result.zone_fallback
    absent = _restorer(_store(tz_id=None), default_zone=tokyo).restore(_now(8, 0))
    assert result.trigger_at == absent.trigger_at
    # 08:00 UTC is 17:00 in Tokyo, so 07:30 Tokyo is the next day
    assert result.trigger_at.astimezone(tokyo) == datetime(2025, 3, 11, 7, 30, tzinfo=tokyo)


def test_zone_directory_names_fall_back_to_default(tokyo):
    for tz_id in ("America", "Europe/"):
        scheduler = FakeScheduler()
        restorer = _restorer(_store(tz_id=tz_id), scheduler, default_zone=tokyo)
        result = restorer.on_receive(BOOT_COMPLETED, _now(8, 0))

        assert result.outcome is RestoreOutcome.SCHEDULED
        assert result.zone_fallback
        assert result.trigger_at.astimezone(tokyo) == datetime(2025, 3, 11, 7, 30, tzinfo=tokyo)
        assert scheduler.calls[0][1].tz_id == tz_id


def test_scenario_d_missing_config_is_a_noop():
    store = FakeStore({"tz_id": "UTC"})
    scheduler = FakeScheduler()
    result = _restorer(store, scheduler).restore(_now())
    assert result.outcome is RestoreOutcome.MISSING_CONFIG
    assert scheduler.calls == []
    assert store.writes == []


def test_out_of_range_values_do_nothing():
    for hour, minute in [(24, 0), (-1, 0), (7, 60), (7, -5), ("7", 30), (True, 0)]:
        store = _store(wake_hour=hour, wake_min=minute)
        scheduler = FakeScheduler()
        result = _restorer(store, scheduler).restore(_now())
        assert result.outcome is RestoreOutcome.INVALID_CONFIG
        assert scheduler.calls == []
        assert store.writes == []


def test_restore_twice_keeps_one_pending_alarm():
    store = _store()
    scheduler = FakeScheduler()
    restorer = _restorer(store, scheduler)
    restorer.restore(_now())
    restorer.restore(_now())
    assert len(scheduler.calls) == 2
    assert list(scheduler.pending) == [WAKE_ALARM_KEY]


def test_persists_next_trigger_epoch():
    store = _store()
    _restorer(store).restore(_now(7, 0))
    expected = int(datetime(2025, 3, 10, 7, 30, tzinfo=timezone.utc).timestamp() * 1000)
    assert store.values["next_epoch_ms"] == expected


def test_fire_action_carries_config_fields():
    scheduler = FakeScheduler()
    _restorer(_store(tz_id="Asia/Tokyo", tz_offset_min=540), scheduler).restore(_now())
    _, fire_action, _, key = scheduler.calls[0]
    assert key == WAKE_ALARM_KEY
    assert fire_action.to_extras() == {"wake_hour": 7, "wake_min": 30, "tz_id": "Asia/Tokyo", "tz_offset_min": 540}


def test_absent_zone_uses_default_zone_id(tokyo):
    scheduler = FakeScheduler()
    _restorer(_store(tz_id=None), scheduler, default_zone=tokyo).restore(_now())
    assert scheduler.calls[0][1].tz_id == "Asia/Tokyo"


def test_show_target_gets_foreground_flags(launcher):
    scheduler = FakeScheduler()
    _restorer(_store(), scheduler, launcher).restore(_now())
    show_action = scheduler.calls[0][2]
    assert show_action.name == "petdisplay"
    assert show_action.flags == FOREGROUND_FLAGS


def test_permission_denied_is_reported_not_raised():
    store = _store()
    result = _restorer(store, FakeScheduler(permitted=False)).restore(_now())
    assert result.outcome is RestoreOutcome.PERMISSION_DENIED
    assert "next_epoch_ms" not in store.values


def test_generic_scheduling_failure_is_reported():
    for error in (SchedulingFailure("alarm service gone"), RuntimeError("boom")):
        store = _store()
        result = _restorer(store, FakeScheduler(error=error)).restore(_now())
        assert result.outcome is RestoreOutcome.SCHEDULING_FAILED
        assert store.writes == []


def test_dst_rollover_keeps_wall_time():
    berlin = ZoneInfo("Europe/Berlin")
    # 2025-03-30 is the spring-forward day in Berlin
    now = datetime(2025, 3, 29, 9, 0, tzinfo=berlin)
    result = _restorer(_store(tz_id="Europe/Berlin")).restore(now)
    local = result.trigger_at.astimezone(berlin)
    assert (local.year, local.month, local.day, local.hour, local.minute) == (2025, 3, 30, 7, 30)
    elapsed = result.trigger_at.astimezone(timezone.utc) - now.astimezone(timezone.utc)
    assert elapsed == timedelta(hours=21, minutes=30)


def test_on_receive_accepts_boot_and_clock_actions_only():
    for action in (BOOT_COMPLETED, LOCKED_BOOT_COMPLETED, TIME_SET, TIMEZONE_CHANGED):
        assert _restorer(_store()).on_receive(action, _now()).outcome is RestoreOutcome.SCHEDULED

    store = _store()
    scheduler = FakeScheduler()
    result = _restorer(store, scheduler).on_receive("android.intent.action.SCREEN_ON", _now())
    assert result.outcome is RestoreOutcome.IGNORED
    assert scheduler.calls == []
    assert store.writes == []


def test_on_receive_contains_store_errors():
    class ExplodingStore(FakeStore):
        def contains(self, key):
            raise OSError("prefs unreadable")

    scheduler = FakeScheduler()
    result = _restorer(ExplodingStore(), scheduler).on_receive(BOOT_COMPLETED, _now())
    assert result.outcome is RestoreOutcome.CONFIG_UNREADABLE
    assert scheduler.calls == []
