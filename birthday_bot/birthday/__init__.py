"""Birthday registration, validation and the daily notification sweep."""

from .sweep import BirthdaySweep, SweepResult
from .validation import DateParseResult, parse_birthday

__all__ = [
    "BirthdaySweep",
    "DateParseResult",
    "SweepResult",
    "parse_birthday",
]
