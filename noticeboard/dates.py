"""Timestamp handling for portal notices and caller watermarks."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

_NOTICE_AT_FORMAT = "%d-%m-%Y %H:%M"
_NOTICE_AT_PATTERN = re.compile(r"\d{2}-\d{2}-\d{4} \d{2}:\d{2}")


def parse_notice_at(value: str | None, tz_name: str) -> datetime | None:
    """Parse a grid timestamp (``DD-MM-YYYY HH:mm``) in the portal timezone.

    Returns None for blank or malformed values so callers can skip the row.
    """
    candidate = (value or "").strip()
    if not _NOTICE_AT_PATTERN.fullmatch(candidate):
        return None
    try:
        parsed = datetime.strptime(candidate, _NOTICE_AT_FORMAT)
    except ValueError:
        return None
    return parsed.replace(tzinfo=ZoneInfo(tz_name))


def as_portal_time(value: datetime, tz_name: str) -> datetime:
    """Attach the portal timezone to a naive datetime; leave aware ones alone."""
    if value.tzinfo is None:
        return value.replace(tzinfo=ZoneInfo(tz_name))
    return value


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return now.replace("+00:00", "Z")
