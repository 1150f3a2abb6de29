from zoneinfo import ZoneInfo

import pytest

from wake_alarm.models import IlluminationUnavailable, SchedulingPermissionDenied
from wake_alarm.platform import LaunchTarget


class FakeStore:
    def __init__(self, values=None):
        self.values = dict(values or {})
        self.writes = []

    def get(self, key, default=None):
        return self.values.get(key, default)

    def set(self, key, value):
        self.writes.append((key, value))
        self.values[key] = value

    def contains(self, key):
        return key in self.values

    def remove(self, key):
        self.writes.append((key, None))
        self.values.pop(key, None)


class FakeScheduler:
    def __init__(self, permitted=True, error=None):
        self.permitted = permitted
        self.error = error
        self.pending = {}
        self.calls = []

    def register_with_indicator(self, trigger_at, fire_action, show_action, idempotency_key):
        self.calls.append((trigger_at, fire_action, show_action, idempotency_key))
        if not self.permitted:
            raise SchedulingPermissionDenied("SCHEDULE_EXACT_ALARM not granted")
        if self.error:
            raise self.error
        self.pending[idempotency_key] = (trigger_at, fire_action, show_action)

    def cancel(self, idempotency_key):
        return self.pending.pop(idempotency_key, None) is not None

    def can_schedule_exact(self):
        return self.permitted


class FakeIllumination:
    def __init__(self, error=None):
        self.error = error
        self.acquired = []

    def acquire(self, max_duration_ms):
        if self.error:
            raise self.error
        self.acquired.append(max_duration_ms)


class FakeLauncher:
    def __init__(self, target=LaunchTarget(name="petdisplay"), error=None):
        self.target = target
        self.error = error
        self.launches = []

    def resolve_launch_target(self):
        return self.target

    def launch(self, target, extras):
        if self.error:
            raise self.error
        self.launches.append((target, dict(extras)))


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def launcher():
    return FakeLauncher()


@pytest.fixture
def illumination():
    return FakeIllumination()


@pytest.fixture
def tokyo():
    return ZoneInfo("Asia/Tokyo")


@pytest.fixture
def broken_illumination():
    return FakeIllumination(error=IlluminationUnavailable("power service missing"))
