"""
Logging setup and settings loaded from the environment / .env file.
"""

import math
import os
import sys
import logging
from dataclasses import dataclass
from datetime import timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from .constants import (
    DEFAULT_WORK_HOURS, DEFAULT_CHECK_INTERVAL_MIN, MAX_WORK_HOURS, MAX_CHECK_INTERVAL_MIN,
)
from .errors import ConfigError


# ─── Logging ─────────────────────────────────────────────────────

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 5_242_880
LOG_BACKUPS = 5

log = logging.getLogger("autoclock")


# ─── Safe print (no crash when stdout is detached) ──────────────

def safe_print(*args, **kwargs):
    try:
        print(*args, **kwargs)
    except Exception:
        pass


def setup_logging(level="info", file_path=None):
    """Attach a rotating file handler (if a path is given) and a console handler."""
    log.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            str(path), maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        log.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    log.addHandler(console_handler)
    log.propagate = False
    return log


# ─── Settings ────────────────────────────────────────────────────

@dataclass(frozen=True)
class AutomationConfig:
    """Process-wide automation switches. Set once at startup."""

    work_hours_per_shift: timedelta = timedelta(hours=DEFAULT_WORK_HOURS)
    auto_clock_in_enabled: bool = True
    auto_clock_out_enabled: bool = True
    check_interval_minutes: int = DEFAULT_CHECK_INTERVAL_MIN
    offline_fallback_enabled: bool = True

    def __post_init__(self):
        if not timedelta(0) < self.work_hours_per_shift <= timedelta(hours=MAX_WORK_HOURS):
            raise ConfigError(f"work_hours_per_shift must be positive and at most {MAX_WORK_HOURS}h")
        if isinstance(self.check_interval_minutes, bool) or not isinstance(self.check_interval_minutes, int):
            raise ConfigError("check_interval_minutes must be an integer")
        if not 0 < self.check_interval_minutes <= MAX_CHECK_INTERVAL_MIN:
            raise ConfigError(f"check_interval_minutes must be between 1 and {MAX_CHECK_INTERVAL_MIN}")


@dataclass(frozen=True)
class Settings:
    base_url: str
    automation: AutomationConfig
    offline_data_path: Path
    token: Optional[str] = None
    refresh_token: Optional[str] = None
    env_file: Optional[Path] = None
    log_level: str = "info"
    log_file_path: Optional[Path] = None


def _required(key):
    value = os.getenv(key)
    if not value or not value.strip():
        raise ConfigError(f"Required environment variable {key} is not set")
    return value.strip()


def _bool(key, default):
    value = os.getenv(key)
    if not value:
        return default
    return value.strip().lower() == "true"


def _number(key, default, cast):
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    try:
        return cast(value.strip())
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {value!r}") from None


def load_settings(env_file=None):
    """Load settings from the environment, optionally seeded from a .env file."""
    if env_file:
        if not Path(env_file).exists():
            raise ConfigError(f".env file not found at {env_file}")
        load_dotenv(env_file)
        env_path = Path(env_file)
    else:
        found = find_dotenv(usecwd=True)
        env_path = Path(found) if found else None
        if env_path:
            load_dotenv(env_path)

    work_hours = _number("WORK_HOURS", DEFAULT_WORK_HOURS, float)
    if not math.isfinite(work_hours) or not 0 < work_hours <= MAX_WORK_HOURS:
        raise ConfigError(f"WORK_HOURS must be between 0 and {MAX_WORK_HOURS}, got {work_hours}")

    automation = AutomationConfig(
        work_hours_per_shift=timedelta(hours=work_hours),
        auto_clock_in_enabled=_bool("AUTO_CLOCK_IN", True),
        auto_clock_out_enabled=_bool("AUTO_CLOCK_OUT", True),
        check_interval_minutes=_number("CHECK_INTERVAL_MINUTES", DEFAULT_CHECK_INTERVAL_MIN, int),
        offline_fallback_enabled=_bool("OFFLINE_FALLBACK", True),
    )

    log_file = os.getenv("LOG_FILE_PATH", "./logs/attendance.log")

    return Settings(
        base_url=_required("EMAPTA_BASE_URL").rstrip("/"),
        automation=automation,
        offline_data_path=Path(os.getenv("OFFLINE_DATA_PATH", "./data/offline.jsonl")).expanduser(),
        token=os.getenv("EMAPTA_TOKEN") or None,
        refresh_token=os.getenv("EMAPTA_REFRESH_TOKEN") or None,
        env_file=env_path,
        log_level=os.getenv("LOG_LEVEL", "info"),
        log_file_path=Path(log_file).expanduser() if log_file else None,
    )
