"""Quiet-hours (do-not-disturb) evaluation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from zoneinfo import ZoneInfo

from desperado.config import get_settings

logger = logging.getLogger(__name__)


def default_timezone() -> str:
    return get_settings().default_timezone


@dataclass(frozen=True)
class QuietHours:
    """Per-user quiet window.

    ``days`` uses 0 = Sunday .. 6 = Saturday. ``start``/``end`` accept
    ``time`` objects or "HH:MM[:SS]" strings.
    """

    start: time | str | None
    end: time | str | None
    days: list[int] = field(default_factory=list)
    timezone: str = field(default_factory=default_timezone)


def _minutes(value: time | str) -> int:
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    parts = value.split(":")
    hour = int(parts[0])
    minute = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    return hour * 60 + minute


def sunday_based_weekday(moment: datetime) -> int:
    """Python's Monday=0 weekday shifted to Sunday=0."""
    return (moment.weekday() + 1) % 7


def is_in_quiet_hours(now: datetime, prefs: QuietHours) -> bool:
    """True when ``now`` falls in the user's quiet window.

    A matching quiet day suppresses regardless of time, with or without a
    window. Windows with start > end wrap past midnight. Any conversion
    failure fails open.
    """
    try:
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        local = now.astimezone(ZoneInfo(prefs.timezone or default_timezone()))

        if prefs.days and sunday_based_weekday(local) in prefs.days:
            return True
        if not prefs.start or not prefs.end:
            return False

        current = local.hour * 60 + local.minute
        start = _minutes(prefs.start)
        end = _minutes(prefs.end)
    except Exception:
        logger.warning("Quiet hours check failed for timezone %r", prefs.timezone, exc_info=True)
        return False

    if start > end:
        return current >= start or current < end
    return start <= current < end
