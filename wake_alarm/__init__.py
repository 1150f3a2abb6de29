"""Daily wake alarm: restore after boot or clock change, wake the app when it fires."""

from .daily import DailyWakeScheduler
from .dispatch import EventDispatcher
from .handler import WakeHandler
from .models import AlarmConfig, RestoreOutcome, RestoreResult, TriggerEvent, WakeOutcome, WakeResult
from .restorer import AlarmRestorer
