"""Utility helpers for reusable functionality."""

from .datetime import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    get_app_timezone,
    local_wall_clock,
    now_in_app_naive_datetime,
    now_in_app_timezone,
    parse_clock_time,
    parse_datetime,
)
from .retry import RetryPolicy

__all__ = [
    "ensure_app_naive_datetime",
    "ensure_app_timezone",
    "get_app_timezone",
    "local_wall_clock",
    "now_in_app_naive_datetime",
    "now_in_app_timezone",
    "parse_clock_time",
    "parse_datetime",
    "RetryPolicy",
]
