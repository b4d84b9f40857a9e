"""
Timezone conversion for shift boundaries and reference-zone projection.

Shift boundaries are stored as local "HH:MM" strings in the agent's own IANA
zone. They are converted to UTC instants with a noon probe: the zone's offset
at 12:00 UTC on the requested date is applied to the whole day.

Notes
-----
On a daylight-saving transition date the noon offset is used for every time
of that day, so a boundary that falls before the transition may be off by
the DST delta. This is a known approximation.
"""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.timeline.errors import InvalidTimeZoneError, MalformedTimeStringError

DEFAULT_REFERENCE_TZ = "America/Los_Angeles"

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")
_OFFSET_RE = re.compile(r"^([+-])(\d{2}):?(\d{2})?(?::?\d{2}(?:\.\d+)?)?$")

# Compact display names for the cities agents usually work from
_SHORT_CITIES = {
    "Los Angeles": "LA",
    "New York": "NY",
    "Vancouver": "Van",
    "Toronto": "Tor",
    "Edmonton": "Edm",
    "Halifax": "Hal",
    "Montreal": "Mtl",
    "Chicago": "Chi",
    "Denver": "Den",
}


def get_zone(tz_name: str) -> ZoneInfo:
    """
    Resolve an IANA zone identifier.

    Raises
    ------
    InvalidTimeZoneError
        If the identifier is empty or unknown
    """
    if not tz_name or not isinstance(tz_name, str):
        raise InvalidTimeZoneError(str(tz_name))
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        raise InvalidTimeZoneError(tz_name) from None


def validate_timezone(tz_name: str) -> str:
    """Return ``tz_name`` unchanged if it names a known zone."""
    get_zone(tz_name)
    return tz_name


def parse_time_string(time_str: str) -> Tuple[int, int]:
    """
    Parse a local "HH:MM" time into (hour, minute).

    A trailing ":SS" is accepted and ignored.

    Raises
    ------
    MalformedTimeStringError
        If the value is not a valid 24h time
    """
    if not isinstance(time_str, str):
        raise MalformedTimeStringError(time_str)
    match = _TIME_RE.match(time_str.strip())
    if not match:
        raise MalformedTimeStringError(time_str)
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise MalformedTimeStringError(time_str)
    return hour, minute


def parse_utc_offset(offset: str) -> int:
    """
    Parse a numeric UTC offset (``+HH``, ``-HHMM`` or ``+HH:MM``) into minutes.

    Minutes carry the sign of the hours, so "-03:30" is -210.
    """
    match = _OFFSET_RE.match(offset or "")
    if not match:
        raise ValueError(f"Unrecognized UTC offset: {offset!r}")
    sign = -1 if match.group(1) == "-" else 1
    hours = int(match.group(2))
    minutes = int(match.group(3) or 0)
    return sign * (hours * 60 + minutes)


def local_time_to_utc(date_str: str, time_str: str, tz_name: str) -> datetime:
    """
    Convert a local wall-clock time on a date in an IANA zone to UTC.

    Parameters
    ----------
    date_str : str
        Calendar date, YYYY-MM-DD
    time_str : str
        Local time, HH:MM
    tz_name : str
        IANA zone identifier

    Returns
    -------
    datetime
        Timezone-aware UTC instant

    Raises
    ------
    InvalidTimeZoneError
        If ``tz_name`` is not a known zone
    MalformedTimeStringError
        If ``time_str`` is not HH:MM
    """
    zone = get_zone(tz_name)
    hour, minute = parse_time_string(time_str)
    day = date.fromisoformat(date_str)

    probe = datetime(day.year, day.month, day.day, 12, 0, tzinfo=timezone.utc)
    offset_minutes = parse_utc_offset(probe.astimezone(zone).strftime("%z"))

    naive_utc = datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)
    return naive_utc - timedelta(minutes=offset_minutes)


def to_zone_date_str(instant: datetime, tz_name: str = DEFAULT_REFERENCE_TZ) -> str:
    """Calendar date (YYYY-MM-DD) of an instant in the given zone."""
    return instant.astimezone(get_zone(tz_name)).strftime("%Y-%m-%d")


def to_zone_time_of_day(instant: datetime, tz_name: str = DEFAULT_REFERENCE_TZ) -> str:
    """Wall-clock time (HH:MM:SS, 24h) of an instant in the given zone."""
    return instant.astimezone(get_zone(tz_name)).strftime("%H:%M:%S")


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO timestamp to a timezone-aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        try:
            ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except (ValueError, AttributeError):
            return None
    if ts.tzinfo is None:
        # Upstream stores naive timestamps in UTC
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def city_from_timezone(tz_name: str) -> str:
    """Display city for a zone, e.g. "America/Los_Angeles" -> "Los Angeles"."""
    return tz_name.split("/")[-1].replace("_", " ")


def short_city(city: str) -> str:
    """Shorten a city name for compact marker labels."""
    if city in _SHORT_CITIES:
        return _SHORT_CITIES[city]
    return city[:3] if len(city) > 5 else city


def short_time(time_str: str) -> str:
    """Format 24h time compactly: "08:00" -> "8am", "09:30" -> "9:30am"."""
    hour, minute = parse_time_string(time_str)
    suffix = "am" if hour < 12 else "pm"
    h12 = 12 if hour == 0 else hour - 12 if hour > 12 else hour
    return f"{h12}{suffix}" if minute == 0 else f"{h12}:{minute:02d}{suffix}"


def hour_label(hour: int) -> str:
    """12-hour label for an hour of the day, e.g. 0 -> "12 AM", 13 -> "1 PM"."""
    if hour == 0:
        return "12 AM"
    if hour < 12:
        return f"{hour} AM"
    if hour == 12:
        return "12 PM"
    return f"{hour - 12} PM"
