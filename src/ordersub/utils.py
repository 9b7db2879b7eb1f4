"""Utility functions for ordersub."""

import math
import re
from datetime import date, datetime, time, timedelta, timezone

PHONE_RE = re.compile(r"^09[0-9]{9}$")
EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+-]+@gmail\.com$")
PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")

SECONDS_PER_DAY = 24 * 3600


def is_valid_phone(text: str) -> bool:
    """Local mobile format: '09' followed by exactly 9 digits."""
    return PHONE_RE.fullmatch(text) is not None


def is_valid_email(text: str) -> bool:
    """Gmail addresses only."""
    return EMAIL_RE.fullmatch(text) is not None


def is_full_name(text: str) -> bool:
    """A full name has at least a given and a family name."""
    return " " in text.strip()


def parse_bool(value: object) -> bool:
    """Interpret stored flags, including 'true'/'false' and 'Y'/'N' strings."""
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "y", "yes")
    return bool(value)


def render(template: str, **fields: object) -> str:
    """
    Substitute ``{field}`` placeholders in a content template.

    Placeholders without a matching field are left untouched so that
    content editors see their typo instead of a crash.
    """

    def _sub(match: re.Match) -> str:
        name = match.group(1)
        if name in fields:
            value = fields[name]
            return "" if value is None else str(value)
        return match.group(0)

    return PLACEHOLDER_RE.sub(_sub, template)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ymd(moment: datetime) -> str:
    """Calendar date of a moment in UTC as YYYY-MM-DD."""
    return moment.astimezone(timezone.utc).date().isoformat()


def plus_days_ymd(moment: datetime, days: int) -> str:
    return ymd(moment + timedelta(days=days))


def days_left(end_date: str, now: datetime) -> int:
    """
    Whole days remaining until ``end_date`` (YYYY-MM-DD).

    The end date counts from 00:00 UTC and partial days round up, so an
    order ending tomorrow has 1 day left for all of today, and 0 or less
    from midnight of the end date on.
    """
    end = datetime.combine(date.fromisoformat(end_date), time.min, tzinfo=timezone.utc)
    seconds = (end - now.astimezone(timezone.utc)).total_seconds()
    return int(math.ceil(seconds / SECONDS_PER_DAY))


def format_timestamp(value: str) -> str:
    """Truncate an ISO timestamp to 'YYYY-MM-DD HH:MM' for digests."""
    return value[:16].replace("T", " ")


def format_amount(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)
