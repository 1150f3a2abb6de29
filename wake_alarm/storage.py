from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

from .models import (
    KEY_NEXT_EPOCH_MS,
    KEY_TZ_ID,
    KEY_TZ_OFFSET_MIN,
    KEY_WAKE_HOUR,
    KEY_WAKE_MIN,
    AlarmConfig,
)
from .platform import PersistenceStore

logger = logging.getLogger(__name__)

ALARM_KEYS = (KEY_WAKE_HOUR, KEY_WAKE_MIN, KEY_TZ_ID, KEY_TZ_OFFSET_MIN, KEY_NEXT_EPOCH_MS)


class JsonPreferenceStore:
    """Key/value preferences kept in a single JSON object on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = Lock()
        self._values: Dict[str, Any] = _load(self.path)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = value
            _save(self.path, self._values)

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._values

    def remove(self, key: str) -> None:
        with self._lock:
            if key in self._values:
                del self._values[key]
                _save(self.path, self._values)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._values)


def read_alarm_config(store: PersistenceStore) -> Optional[AlarmConfig]:
    if not store.contains(KEY_WAKE_HOUR) or not store.contains(KEY_WAKE_MIN):
        return None
    return AlarmConfig(
        wake_hour=store.get(KEY_WAKE_HOUR),
        wake_min=store.get(KEY_WAKE_MIN),
        tz_id=store.get(KEY_TZ_ID) or None,
        tz_offset_min=_offset_or_zero(store.get(KEY_TZ_OFFSET_MIN)),
        next_epoch_ms=store.get(KEY_NEXT_EPOCH_MS),
    )


def write_alarm_config(store: PersistenceStore, config: AlarmConfig) -> None:
    store.set(KEY_WAKE_HOUR, config.wake_hour)
    store.set(KEY_WAKE_MIN, config.wake_min)
    if config.tz_id:
        store.set(KEY_TZ_ID, config.tz_id)
    else:
        store.remove(KEY_TZ_ID)
    store.set(KEY_TZ_OFFSET_MIN, config.tz_offset_min)
    if config.next_epoch_ms is not None:
        store.set(KEY_NEXT_EPOCH_MS, config.next_epoch_ms)


def clear_alarm_config(store: PersistenceStore) -> None:
    for key in ALARM_KEYS:
        store.remove(key)


def _offset_or_zero(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 0


def _load(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as f:
            payload = json.load(f)
    except Exception as exc:  # pragma: no cover - corrupted file
        logger.error("Failed to load preferences from %s: %s", path, exc)
        return {}
    if not isinstance(payload, dict):
        logger.error("Preferences file %s does not hold an object, ignoring it", path)
        return {}
    return payload


def _save(path: Path, values: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(values, f, ensure_ascii=False, indent=2)
    os.replace(tmp_path, path)
