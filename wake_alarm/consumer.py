from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, MutableMapping, Optional

from time_utils import from_epoch_ms, to_epoch_ms

from .models import EXTRA_ALARM_WAKE, EXTRA_TRIGGER_TIME, KEY_NEXT_EPOCH_MS
from .platform import PersistenceStore

logger = logging.getLogger(__name__)

PAYLOAD_ENV = "WAKE_ALARM_PAYLOAD"

WINDOW_BEFORE = timedelta(seconds=30)
WINDOW_AFTER = timedelta(seconds=120)
STALE_AFTER = timedelta(seconds=300)


def read_launch_payload(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    environ = os.environ if environ is None else environ
    raw = environ.get(PAYLOAD_ENV)
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        logger.warning("Ignoring malformed %s: %s", PAYLOAD_ENV, exc)
        return {}
    if not isinstance(payload, dict):
        logger.warning("Ignoring %s that is not an object", PAYLOAD_ENV)
        return {}
    return payload


def should_auto_wake(extras: MutableMapping[str, Any], store: PersistenceStore, now: datetime) -> bool:
    """Whether this launch came from the wake alarm.

    The launch flag is consumed so a later relaunch with the same extras does
    not wake twice. Without the flag, a launch close to the cached trigger
    instant still counts.
    """
    if extras.get(EXTRA_ALARM_WAKE):
        extras.pop(EXTRA_ALARM_WAKE, None)
        trigger_ms = extras.get(EXTRA_TRIGGER_TIME)
        if isinstance(trigger_ms, int) and trigger_ms > 0:
            logger.info("Alarm detected from launch payload, triggered at %s", from_epoch_ms(trigger_ms).isoformat())
        else:
            logger.info("Alarm detected from launch payload")
        return True
    return _check_time_window(store, now)


def _check_time_window(store: PersistenceStore, now: datetime) -> bool:
    saved = store.get(KEY_NEXT_EPOCH_MS)
    if saved is None:
        logger.debug("No saved epoch time")
        return False
    try:
        epoch_ms = int(saved)
    except (TypeError, ValueError):
        logger.warning("Failed to parse saved epoch: %r", saved)
        return False

    diff = timedelta(milliseconds=to_epoch_ms(now) - epoch_ms)
    if -WINDOW_BEFORE <= diff <= WINDOW_AFTER:
        logger.info("Launch within alarm time window (%.1fs)", diff.total_seconds())
        store.remove(KEY_NEXT_EPOCH_MS)
        return True
    if diff > STALE_AFTER:
        logger.warning("Alarm time passed long ago (%.1fs), clearing cached trigger", diff.total_seconds())
        store.remove(KEY_NEXT_EPOCH_MS)
    else:
        logger.info("Outside alarm time window (%.1fs)", diff.total_seconds())
    return False
