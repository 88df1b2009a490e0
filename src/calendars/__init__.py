"""Calendar conversion utilities."""

from .jalali import (
    CALENDARS,
    JalaliDate,
    convert,
    format_date,
    gregorian_to_jalali,
    is_leap_jalali,
    jalali_month_length,
    jalali_to_gregorian,
    month_info,
)

__all__ = [
    "CALENDARS",
    "JalaliDate",
    "convert",
    "format_date",
    "gregorian_to_jalali",
    "is_leap_jalali",
    "jalali_month_length",
    "jalali_to_gregorian",
    "month_info",
]
