"""
Holiday calendar consumed for date-change labels.

Holidays are looked up, never computed: the tables below are the statutory
Canadian (Ontario dates) and US federal holidays the helpdesk observes.
"""

from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional

CANADIAN_HOLIDAYS: Dict[str, str] = {
    "2025-01-01": "New Year's Day",
    "2025-02-17": "Family Day",
    "2025-04-18": "Good Friday",
    "2025-05-19": "Victoria Day",
    "2025-07-01": "Canada Day",
    "2025-08-04": "Civic Holiday",
    "2025-09-01": "Labour Day",
    "2025-09-30": "National Day for Truth and Reconciliation",
    "2025-10-13": "Thanksgiving",
    "2025-11-11": "Remembrance Day",
    "2025-12-25": "Christmas Day",
    "2025-12-26": "Boxing Day",
    "2026-01-01": "New Year's Day",
    "2026-02-16": "Family Day",
    "2026-04-03": "Good Friday",
    "2026-05-18": "Victoria Day",
    "2026-07-01": "Canada Day",
    "2026-08-03": "Civic Holiday",
    "2026-09-07": "Labour Day",
    "2026-09-30": "National Day for Truth and Reconciliation",
    "2026-10-12": "Thanksgiving",
    "2026-11-11": "Remembrance Day",
    "2026-12-25": "Christmas Day",
    "2026-12-26": "Boxing Day",
    "2027-01-01": "New Year's Day",
    "2027-02-15": "Family Day",
    "2027-03-26": "Good Friday",
    "2027-05-24": "Victoria Day",
    "2027-07-01": "Canada Day",
    "2027-08-02": "Civic Holiday",
    "2027-09-06": "Labour Day",
    "2027-09-30": "National Day for Truth and Reconciliation",
    "2027-10-11": "Thanksgiving",
    "2027-11-11": "Remembrance Day",
    "2027-12-25": "Christmas Day",
    "2027-12-26": "Boxing Day",
}

US_HOLIDAYS: Dict[str, str] = {
    "2025-01-01": "New Year's Day",
    "2025-01-20": "Martin Luther King Jr. Day",
    "2025-02-17": "Presidents' Day",
    "2025-05-26": "Memorial Day",
    "2025-06-19": "Juneteenth",
    "2025-07-04": "Independence Day",
    "2025-09-01": "Labor Day",
    "2025-10-13": "Columbus Day",
    "2025-11-11": "Veterans Day",
    "2025-11-27": "Thanksgiving",
    "2025-12-25": "Christmas Day",
    "2026-01-01": "New Year's Day",
    "2026-01-19": "Martin Luther King Jr. Day",
    "2026-02-16": "Presidents' Day",
    "2026-05-25": "Memorial Day",
    "2026-06-19": "Juneteenth",
    "2026-07-04": "Independence Day",
    "2026-09-07": "Labor Day",
    "2026-10-12": "Columbus Day",
    "2026-11-11": "Veterans Day",
    "2026-11-26": "Thanksgiving",
    "2026-12-25": "Christmas Day",
    "2027-01-01": "New Year's Day",
    "2027-01-18": "Martin Luther King Jr. Day",
    "2027-02-15": "Presidents' Day",
    "2027-05-31": "Memorial Day",
    "2027-06-19": "Juneteenth",
    "2027-07-04": "Independence Day",
    "2027-09-06": "Labor Day",
    "2027-10-11": "Columbus Day",
    "2027-11-11": "Veterans Day",
    "2027-11-25": "Thanksgiving",
    "2027-12-25": "Christmas Day",
}


@dataclass(frozen=True)
class HolidayInfo:
    """Holiday status of one date."""

    canadian_name: Optional[str] = None
    us_name: Optional[str] = None

    @property
    def is_canadian(self) -> bool:
        return self.canadian_name is not None

    @property
    def is_us(self) -> bool:
        return self.us_name is not None

    @property
    def is_holiday(self) -> bool:
        return self.is_canadian or self.is_us


class HolidayCalendar:
    """Lookup over Canadian and US holiday tables keyed by YYYY-MM-DD."""

    def __init__(
        self,
        canadian: Optional[Dict[str, str]] = None,
        us: Optional[Dict[str, str]] = None,
    ):
        self.canadian = CANADIAN_HOLIDAYS if canadian is None else canadian
        self.us = US_HOLIDAYS if us is None else us

    def lookup(self, date_str: str) -> HolidayInfo:
        key = date_str[:10]
        return HolidayInfo(canadian_name=self.canadian.get(key), us_name=self.us.get(key))

    def label_suffix(self, date_str: str) -> str:
        """Suffix appended to a date label; Canadian names take precedence."""
        info = self.lookup(date_str)
        if not info.is_holiday:
            return ""
        return f" · {info.canadian_name or info.us_name}"


def is_weekend(date_str: str) -> bool:
    return date.fromisoformat(date_str[:10]).weekday() >= 5
