import logging
import logging.handlers
import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Tuple, TypeVar

from dotenv import load_dotenv

_T = TypeVar("_T")

_TRUTHY = {"1", "true", "yes", "y", "on"}


def _get_env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return val.strip().lower() in _TRUTHY


def _get_env_number(name: str, default: _T, cast: Callable[[str], _T], kind: str) -> _T:
    val = os.getenv(name, "").strip()
    if not val:
        return default
    try:
        return cast(val)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be {kind}, got {val!r}") from exc


def _get_env_int(name: str, default: int) -> int:
    return _get_env_number(name, default, int, "an integer")


def _get_env_float(name: str, default: float) -> float:
    return _get_env_number(name, default, float, "a number")


@dataclass
class Config:
    prefs_path: Path
    default_timezone: Optional[str]
    illumination_ms: int
    scheduler_check_interval_ms: int
    exact_alarms_permitted: bool
    launch_command: Tuple[str, ...]
    clock_jump_tolerance_s: float
    debug: bool
    log_level: str
    log_dir: Path = Path("logs")


def load_config(env_path: Optional[Path] = None) -> Config:
    if env_path is None:
        env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    prefs_path = Path(os.getenv("WAKE_PREFS_PATH", "data/tap_alarm_cfg.json"))
    default_timezone = os.getenv("DEFAULT_TIMEZONE") or None
    illumination_ms = _get_env_int("ILLUMINATION_MS", 10000)
    if illumination_ms <= 0:
        raise ValueError("ILLUMINATION_MS must be positive")
    scheduler_check_interval_ms = _get_env_int("SCHEDULER_CHECK_INTERVAL_MS", 800)
    exact_alarms_permitted = _get_env_bool("EXACT_ALARMS_PERMITTED", True)
    launch_command = tuple(shlex.split(os.getenv("LAUNCH_COMMAND", "")))
    clock_jump_tolerance_s = _get_env_float("CLOCK_JUMP_TOLERANCE_S", 2.0)
    debug = _get_env_bool("DEBUG", False)
    log_level = os.getenv("LOG_LEVEL", "DEBUG" if debug else "INFO").upper()
    log_dir = Path(os.getenv("LOG_DIR", "logs"))

    return Config(
        prefs_path=prefs_path,
        default_timezone=default_timezone,
        illumination_ms=illumination_ms,
        scheduler_check_interval_ms=scheduler_check_interval_ms,
        exact_alarms_permitted=exact_alarms_permitted,
        launch_command=launch_command,
        clock_jump_tolerance_s=clock_jump_tolerance_s,
        debug=debug,
        log_level=log_level,
        log_dir=log_dir,
    )


def setup_logging(log_level: str = "INFO", log_dir: Path = Path("logs")) -> Path:
    """Log to the console and to a rotating ``wake_daemon.log``; returns the log file path."""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "wake_daemon.log"
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    handlers = [
        logging.handlers.RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"),
        logging.StreamHandler(),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)

    level = logging.getLevelName(log_level)
    logging.basicConfig(level=level if isinstance(level, int) else logging.INFO, handlers=handlers)
    return log_path
