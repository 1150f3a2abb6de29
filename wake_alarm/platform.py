"""Interfaces for the platform services the wake core talks to.

Production hosts supply real adapters (see ``wake_alarm.local``); tests supply
fakes. Every method is expected to be fast and synchronous.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Flag, auto
from typing import Any, Hashable, Mapping, Optional, Protocol, Tuple

from .models import TriggerEvent


class LaunchFlags(Flag):
    NONE = 0
    NEW_TASK = auto()
    SINGLE_TOP = auto()
    CLEAR_TOP = auto()


FOREGROUND_FLAGS = LaunchFlags.NEW_TASK | LaunchFlags.SINGLE_TOP | LaunchFlags.CLEAR_TOP


@dataclass(frozen=True)
class LaunchTarget:
    name: str
    command: Tuple[str, ...] = ()
    flags: LaunchFlags = LaunchFlags.NONE


class PersistenceStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def contains(self, key: str) -> bool:
        ...

    def remove(self, key: str) -> None:
        ...


class ExactAlarmScheduler(Protocol):
    def register_with_indicator(
        self,
        trigger_at: datetime,
        fire_action: TriggerEvent,
        show_action: Optional[LaunchTarget],
        idempotency_key: Hashable,
    ) -> None:
        """Schedule ``fire_action`` at ``trigger_at``, replacing any entry under the same key.

        Raises ``SchedulingPermissionDenied`` when exact alarms are not granted
        and ``SchedulingFailure`` for any other registration error.
        """
        ...

    def cancel(self, idempotency_key: Hashable) -> bool:
        ...

    def can_schedule_exact(self) -> bool:
        ...


class IlluminationResource(Protocol):
    def acquire(self, max_duration_ms: int) -> None:
        """Keep the display lit for at most ``max_duration_ms``.

        Raises ``IlluminationUnavailable`` when the resource cannot be held.
        """
        ...


class AppLauncher(Protocol):
    def resolve_launch_target(self) -> Optional[LaunchTarget]:
        ...

    def launch(self, target: LaunchTarget, extras: Mapping[str, Any]) -> None:
        ...
