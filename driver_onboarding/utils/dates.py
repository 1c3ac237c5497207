# driver_onboarding/utils/dates.py
from __future__ import annotations

import datetime as dt
from typing import Any, Optional


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def to_datetime(value: Any) -> Optional[dt.datetime]:
    """
    Single entry point for timestamps coming out of the store or the caller.

    Accepts datetime, date, epoch milliseconds, ISO-8601 strings and
    wrapper objects exposing to_datetime()/timestamp(). Returns an aware
    UTC datetime, or None when the value is empty or unparseable.
    Naive values are taken as UTC.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None

    if hasattr(value, "to_datetime") and callable(value.to_datetime):
        return to_datetime(value.to_datetime())

    if isinstance(value, dt.datetime):
        out = value
    elif isinstance(value, dt.date):
        out = dt.datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        try:
            out = dt.datetime.fromtimestamp(value / 1000.0, tz=dt.timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            out = dt.datetime.fromisoformat(s)
        except ValueError:
            try:
                d = dt.date.fromisoformat(s)
            except ValueError:
                return None
            out = dt.datetime(d.year, d.month, d.day)
    elif hasattr(value, "timestamp") and callable(value.timestamp):
        try:
            out = dt.datetime.fromtimestamp(float(value.timestamp()), tz=dt.timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            return None
    else:
        return None

    if out.tzinfo is None:
        return out.replace(tzinfo=dt.timezone.utc)
    return out.astimezone(dt.timezone.utc)


def parse_iso_date(value: Any) -> Optional[dt.date]:
    """Strict date parsing for caller input; raises ValueError on garbage."""
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    s = str(value).strip()
    if not s:
        return None
    moment = to_datetime(s)
    if moment is None:
        raise ValueError(f"Invalid date: {s}")
    return moment.date()
