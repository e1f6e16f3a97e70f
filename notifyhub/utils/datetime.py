"""Helpers for working with timezone-aware datetimes."""

from __future__ import annotations

import re
from datetime import datetime, time, timedelta, timezone, tzinfo
from functools import lru_cache
from typing import Final

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from notifyhub.config import get_settings

_DEFAULT_TIMEZONE: Final[str] = "UTC"
_OFFSET_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?:UTC|GMT)(?P<sign>[+-])(?P<hours>\d{1,2})(?::?(?P<minutes>\d{2}))?$",
    re.IGNORECASE,
)
_CLOCK_PATTERN: Final[re.Pattern[str]] = re.compile(r"^(?P<hour>\d{1,2}):(?P<minute>\d{2})$")


@lru_cache(maxsize=1)
def get_app_timezone() -> tzinfo:
    """Return the configured application timezone.

    The timezone is resolved from ``NOTIFYHUB_APP_TIMEZONE``. Values that cannot
    be resolved fall back to UTC.
    """

    settings = get_settings()
    tz_name = (settings.app_timezone or "").strip() or _DEFAULT_TIMEZONE
    return _resolve_timezone(tz_name)


def now_in_app_timezone() -> datetime:
    """Return the current time localized to the configured timezone."""

    return datetime.now(tz=get_app_timezone())


def ensure_app_timezone(value: datetime | None) -> datetime | None:
    """Normalize ``value`` so it is expressed in the configured timezone."""

    if value is None:
        return None

    tz = get_app_timezone()
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def ensure_app_naive_datetime(value: datetime | None) -> datetime | None:
    """Return ``value`` localized to the app timezone but without ``tzinfo``.

    SQLite ``DATETIME`` columns drop offsets, so values are stored as local
    naive datetimes and re-attached to the app timezone when loaded.
    """

    localized = ensure_app_timezone(value)
    if localized is None:
        return None
    return localized.replace(tzinfo=None)


def now_in_app_naive_datetime() -> datetime:
    """Return the current localized time without attaching ``tzinfo``."""

    localized = ensure_app_naive_datetime(now_in_app_timezone())
    if localized is None:  # pragma: no cover - defensive guard
        msg = "Failed to compute the application naive datetime"
        raise RuntimeError(msg)
    return localized


def parse_datetime(value: object) -> datetime | None:
    """Parse an ISO-8601 string or datetime into an app-timezone datetime.

    Returns ``None`` for empty values and raises ``ValueError`` for anything
    that is not a recognizable timestamp.
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_app_timezone(value)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        return ensure_app_timezone(datetime.fromisoformat(text))
    raise ValueError(f"Unsupported timestamp value: {value!r}")


def parse_clock_time(value: object) -> time:
    """Parse a ``HH:MM`` wall-clock value."""

    if isinstance(value, time):
        return value.replace(tzinfo=None)
    match = _CLOCK_PATTERN.match(str(value).strip()) if value is not None else None
    if not match:
        raise ValueError(f"Invalid time format: {value}. Use HH:MM")
    hour, minute = int(match.group("hour")), int(match.group("minute"))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time format: {value}. Use HH:MM")
    return time(hour, minute)


def local_wall_clock(value: datetime) -> time:
    """Return the wall-clock time of ``value`` in the app timezone."""

    localized = ensure_app_timezone(value)
    if localized is None:  # pragma: no cover - defensive guard
        msg = "Failed to localize the wall-clock time"
        raise RuntimeError(msg)
    return localized.time().replace(tzinfo=None)


def _resolve_timezone(tz_name: str) -> tzinfo:
    """Resolve ``tz_name`` into a ``timezone`` instance."""

    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        match = _OFFSET_PATTERN.match(tz_name)
        if match:
            sign = -1 if match.group("sign") == "-" else 1
            hours = int(match.group("hours"))
            minutes = int(match.group("minutes") or 0)
            offset = timedelta(hours=hours, minutes=minutes)
            return timezone(sign * offset)
    return timezone.utc
