from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Union

from .handler import WakeHandler
from .models import ACTION_ALARM_WAKE, RESTORE_ACTIONS, RestoreResult, TriggerEvent, WakeResult
from .restorer import AlarmRestorer

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventDispatcher:
    """Entry point for OS events; nothing raised below it reaches the caller."""

    def __init__(
        self,
        restorer: AlarmRestorer,
        handler: WakeHandler,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.restorer = restorer
        self.handler = handler
        self.clock = clock

    def dispatch(
        self, action: Optional[str], extras: Optional[Mapping[str, Any]] = None
    ) -> Optional[Union[RestoreResult, WakeResult]]:
        try:
            now = self.clock()
            if action in RESTORE_ACTIONS:
                result = self.restorer.on_receive(action, now)
            elif action == ACTION_ALARM_WAKE:
                result = self.handler.on_receive(action, extras, now)
            else:
                logger.warning("No receiver for action: %s", action)
                return None
        except Exception:
            logger.error("Unhandled error while dispatching %s", action, exc_info=True)
            return None
        logger.info("%s -> %s", action, result.outcome.value)
        return result

    def fire(self, event: TriggerEvent) -> None:
        self.dispatch(event.action, event.to_extras())
