"""Birthday date parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass

DATE_PATTERN = re.compile(r"\d{1,2}/\d{1,2}", re.ASCII)

# February always allows the 29th regardless of year
DAYS_IN_MONTH = (31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)

DATE_FORMAT = "MM/DD"

FORMAT_ERROR = "Please use the correct MM/DD format. For example, April 20th would be 04/20"
NUMERIC_ERROR = "Please only use numbers."
INVALID_DATE_ERROR = "Invalid date, please try again"


@dataclass(frozen=True)
class DateParseResult:
    """Outcome of parsing a birthday string.

    Exactly one of ``error`` or ``(month, day)`` is set.
    """

    month: int | None = None
    day: int | None = None
    error: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.error is None

    @classmethod
    def invalid(cls, error: str) -> DateParseResult:
        return cls(error=error)


def day_out_of_range_error(month: int, day: int) -> str:
    return f"Month {month} doesn't have {day} days! Please recheck and try again"


def parse_birthday(value: str) -> DateParseResult:
    """Parse ``M/D`` or ``MM/DD`` into a validated month and day."""
    value = value.strip()
    if not DATE_PATTERN.fullmatch(value):
        return DateParseResult.invalid(FORMAT_ERROR)

    month_str, day_str = value.split("/")
    try:
        month, day = int(month_str), int(day_str)
    except ValueError:
        return DateParseResult.invalid(NUMERIC_ERROR)

    if not (1 <= month <= 12 and 1 <= day <= 31):
        return DateParseResult.invalid(INVALID_DATE_ERROR)

    if day > DAYS_IN_MONTH[month - 1]:
        return DateParseResult.invalid(day_out_of_range_error(month, day))

    return DateParseResult(month=month, day=day)
