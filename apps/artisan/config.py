import logging
import os
import sys
from dataclasses import dataclass
from datetime import time, timedelta
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from .errors import ConfigurationError

DEFAULT_PREFIX = "generated/"


@dataclass(frozen=True)
class Settings:
    project_id: str
    bucket_name: str
    location: str = "us-central1"
    text_model: str = "gemini-2.5-flash"
    image_model: str = "imagen-3.0-generate-002"
    keep_days: int = 7
    generated_prefix: str = DEFAULT_PREFIX
    sweep_schedule_enabled: bool = True
    sweep_at: time = time(3, 0)
    sweep_timezone: str = "UTC"
    sweep_interval_s: Optional[float] = None
    sweep_timeout_s: Optional[float] = None
    cleanup_operator_uids: frozenset = frozenset()
    auth_disabled: bool = False
    firebase_project_id: Optional[str] = None
    log_level: str = "INFO"

    @property
    def keep_duration(self) -> timedelta:
        return timedelta(days=self.keep_days)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.sweep_timezone)


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def _positive_float(name: str, raw: Optional[str]) -> Optional[float]:
    if raw is None or raw.strip() == "":
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def _time_of_day(raw: str) -> time:
    try:
        hh, mm = raw.strip().split(":")
        return time(int(hh), int(mm))
    except ValueError:
        raise ConfigurationError(f"SWEEP_AT must look like HH:MM, got {raw!r}")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        stream=sys.stdout,
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from the process environment (after reading .env).

    Called once at startup; everything downstream receives the result
    explicitly instead of looking at os.environ again.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    project_id = (env.get("PROJECT_ID") or "").strip()
    bucket_name = (env.get("BUCKET_NAME") or "").strip()
    if not project_id or not bucket_name:
        raise ConfigurationError("PROJECT_ID and BUCKET_NAME must be set")

    prefix = env.get("GENERATED_PREFIX", DEFAULT_PREFIX)
    if not prefix or not prefix.strip():
        raise ConfigurationError("GENERATED_PREFIX must not be empty")

    tz_name = env.get("SWEEP_TIMEZONE") or "UTC"
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigurationError(f"unknown SWEEP_TIMEZONE {tz_name!r}")

    uids = env.get("CLEANUP_OPERATOR_UIDS") or ""

    return Settings(
        project_id=project_id,
        bucket_name=bucket_name,
        location=env.get("LOCATION") or "us-central1",
        text_model=env.get("TEXT_MODEL") or "gemini-2.5-flash",
        image_model=env.get("IMAGE_MODEL") or "imagen-3.0-generate-002",
        keep_days=_positive_int("KEEP_DAYS", env.get("KEEP_DAYS") or "7"),
        generated_prefix=prefix,
        sweep_schedule_enabled=_flag(env.get("SWEEP_SCHEDULE_ENABLED"), True),
        sweep_at=_time_of_day(env.get("SWEEP_AT") or "03:00"),
        sweep_timezone=tz_name,
        sweep_interval_s=_positive_float(
            "SWEEP_INTERVAL_SECONDS", env.get("SWEEP_INTERVAL_SECONDS")
        ),
        sweep_timeout_s=_positive_float(
            "SWEEP_TIMEOUT_SECONDS", env.get("SWEEP_TIMEOUT_SECONDS")
        ),
        cleanup_operator_uids=frozenset(u.strip() for u in uids.split(",") if u.strip()),
        auth_disabled=_flag(env.get("AUTH_DISABLED"), False),
        firebase_project_id=env.get("FIREBASE_PROJECT_ID") or None,
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
