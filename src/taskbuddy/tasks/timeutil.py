# src/taskbuddy/tasks/timeutil.py

"""
Timestamp helpers.

In memory every timestamp is a timezone-aware datetime. Tool arguments arrive
as RFC3339 strings ("2024-07-21T19:00:00Z"), with an offset, or naive; naive
values are read as local wall-clock time.
"""

from __future__ import annotations

from datetime import datetime, tzinfo


def now_local() -> datetime:
    return datetime.now().astimezone().replace(microsecond=0)


def parse_timestamp(raw: str | datetime | None, tz: tzinfo | None = None) -> datetime | None:
    """
    Parse an ISO-8601 / RFC3339 value into an aware datetime.

    Naive values take `tz` when given, else the local zone.
    Returns None for empty input. Raises ValueError for garbage.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        dt = raw
    else:
        s = str(raw).strip()
        if not s:
            return None
        if s.endswith(("Z", "z")):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz) if tz is not None else dt.astimezone()
    return dt


def to_iso(dt: datetime) -> str:
    return dt.isoformat(timespec="seconds")


def to_local_naive_iso(dt: datetime, tz: tzinfo | None = None) -> str:
    """YYYY-MM-DDTHH:MM:SS in local wall clock, no offset suffix."""
    return dt.astimezone(tz).replace(tzinfo=None).isoformat(timespec="seconds")


def format_hhmm(dt: datetime, tz: tzinfo | None = None) -> str:
    return dt.astimezone(tz).strftime("%H:%M")


def format_human(dt: datetime, tz: tzinfo | None = None) -> str:
    """e.g. 'Sun, Jul 21 2024 at 19:00'."""
    return dt.astimezone(tz).strftime("%a, %b %d %Y at %H:%M")
