import re
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_LABEL_START_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*(am|pm)?$", re.IGNORECASE)


def local_now(tz_name: str) -> datetime:
    return datetime.now(ZoneInfo(tz_name))


def local_today(tz_name: str) -> date:
    return local_now(tz_name).date()


def timestamp(tz_name: str) -> str:
    return local_now(tz_name).isoformat(timespec="seconds")


def parse_slot_date(value: str) -> Optional[date]:
    """Parse an ISO ``YYYY-MM-DD`` slot date; anything else is ``None``."""
    value = (value or "").strip()
    if not _ISO_DATE_RE.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def label_start_minutes(label: str) -> int:
    """
    Minutes after midnight of a label's start time, e.g. ``"10:30am - 12pm"`` -> 630.
    Labels that do not start with ``H[:MM] [am|pm]`` sort as midnight.
    """
    if not label or not isinstance(label, str):
        return 0
    first = re.sub(r"\s*-\s*", "-", label).strip().split("-")[0].strip()
    match = _LABEL_START_RE.match(first)
    if not match:
        return 0
    hour = int(match.group(1))
    minutes = int(match.group(2) or 0)
    period = (match.group(3) or "").lower()
    if hour > 23 or minutes > 59:
        return 0
    if period == "pm" and hour != 12:
        hour += 12
    if period == "am" and hour == 12:
        hour = 0
    return hour * 60 + minutes
