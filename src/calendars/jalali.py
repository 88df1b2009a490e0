"""
Jalali (Solar Hijri) calendar

Conversions go through day ordinals using the 33-year break table of the
astronomical Jalali calendar, valid for Jalali years -61 .. 3177.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Tuple, Union

BREAKS = [
    -61, 9, 38, 199, 426, 686, 756, 818, 1111, 1181,
    1210, 1635, 2060, 2097, 2192, 2262, 2324, 2394, 2456, 3178,
]

CALENDARS = ("gregorian", "jalali")

JALALI_MONTHS = {
    "en": [
        "Farvardin", "Ordibehesht", "Khordad", "Tir", "Mordad", "Shahrivar",
        "Mehr", "Aban", "Azar", "Dey", "Bahman", "Esfand",
    ],
    "fa": [
        "فروردین", "اردیبهشت", "خرداد", "تیر", "مرداد", "شهریور",
        "مهر", "آبان", "آذر", "دی", "بهمن", "اسفند",
    ],
}

GREGORIAN_MONTHS = {
    "en": [
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    ],
    "fa": [
        "ژانویه", "فوریه", "مارس", "آوریل", "مه", "ژوئن",
        "ژوئیه", "اوت", "سپتامبر", "اکتبر", "نوامبر", "دسامبر",
    ],
}

# Monday first, matching date.weekday()
DAY_NAMES = {
    "en": ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"],
    "fa": ["دوشنبه", "سه‌شنبه", "چهارشنبه", "پنج‌شنبه", "جمعه", "شنبه", "یکشنبه"],
}

_PERSIAN_DIGITS = str.maketrans("0123456789", "۰۱۲۳۴۵۶۷۸۹")
_FORMAT_TOKENS = re.compile(r"YYYY|YY|MMMM|MMM|MM|M|DDDD|DDD|DD|D|HH|H|mm|m|ss|s")


@dataclass(frozen=True)
class JalaliDate:
    year: int
    month: int
    day: int

    def isoformat(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"

    def to_gregorian(self) -> date:
        return jalali_to_gregorian(self.year, self.month, self.day)

    @classmethod
    def from_gregorian(cls, value: date) -> "JalaliDate":
        return gregorian_to_jalali(value)

    @classmethod
    def fromisoformat(cls, value: str) -> "JalaliDate":
        match = re.fullmatch(r"(-?\d{1,4})[-/](\d{1,2})[-/](\d{1,2})", value.strip())
        if not match:
            raise ValueError(f"Invalid Jalali date: {value!r}")
        year, month, day = (int(part) for part in match.groups())
        validate_jalali(year, month, day)
        return cls(year, month, day)


def _div(a: int, b: int) -> int:
    # truncating division
    return int(a / b)


def _mod(a: int, b: int) -> int:
    return a - _div(a, b) * b


def _jal_cal(jy: int) -> Tuple[int, int, int]:
    """(years since the last leap year, Gregorian year, March day of Nowruz)"""
    if jy < BREAKS[0] or jy >= BREAKS[-1]:
        raise ValueError(f"Jalali year {jy} is out of range")

    gy = jy + 621
    leap_j = -14
    jp = BREAKS[0]
    jump = 0
    for jm in BREAKS[1:]:
        jump = jm - jp
        if jy < jm:
            break
        leap_j += _div(jump, 33) * 8 + _div(_mod(jump, 33), 4)
        jp = jm

    n = jy - jp
    leap_j += _div(n, 33) * 8 + _div(_mod(n, 33) + 3, 4)
    if _mod(jump, 33) == 4 and jump - n == 4:
        leap_j += 1

    leap_g = _div(gy, 4) - _div((_div(gy, 100) + 1) * 3, 4) - 150
    march = 20 + leap_j - leap_g

    if jump - n < 6:
        n = n - jump + _div(jump + 4, 33) * 33
    leap = _mod(_mod(n + 1, 33) - 1, 4)
    if leap == -1:
        leap = 4
    return leap, gy, march


def is_leap_jalali(year: int) -> bool:
    return _jal_cal(year)[0] == 0


def jalali_month_length(year: int, month: int) -> int:
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid Jalali month: {month}")
    if month <= 6:
        return 31
    if month <= 11:
        return 30
    return 30 if is_leap_jalali(year) else 29


def validate_jalali(year: int, month: int, day: int) -> None:
    length = jalali_month_length(year, month)
    if not 1 <= day <= length:
        raise ValueError(f"Invalid day {day} for Jalali month {year}-{month:02d}")


def jalali_to_gregorian(year: int, month: int, day: int) -> date:
    validate_jalali(year, month, day)
    _, gy, march = _jal_cal(year)
    ordinal = (
        date(gy, 3, march).toordinal()
        + (month - 1) * 31
        - _div(month, 7) * (month - 7)
        + day
        - 1
    )
    return date.fromordinal(ordinal)


def gregorian_to_jalali(value: Union[date, datetime]) -> JalaliDate:
    if isinstance(value, datetime):
        value = value.date()
    jy = value.year - 621
    leap, gy, march = _jal_cal(jy)
    k = value.toordinal() - date(gy, 3, march).toordinal()

    if k >= 0:
        if k <= 185:
            return JalaliDate(jy, 1 + _div(k, 31), _mod(k, 31) + 1)
        k -= 186
    else:
        jy -= 1
        k += 179
        if leap == 1:
            k += 1
    return JalaliDate(jy, 7 + _div(k, 30), _mod(k, 30) + 1)


def month_names(calendar_type: str = "gregorian", locale: str = "en") -> List[str]:
    names = JALALI_MONTHS if calendar_type == "jalali" else GREGORIAN_MONTHS
    return names.get(locale, names["en"])


def to_persian_numerals(text: str) -> str:
    return text.translate(_PERSIAN_DIGITS)


def format_date(
    value: Union[date, datetime],
    fmt: str = "YYYY/MM/DD",
    calendar_type: str = "gregorian",
    locale: str = "en",
) -> str:
    """
    Format a date with moment-style tokens in either calendar

    Tokens: YYYY YY MMMM MMM MM M DDDD DDD DD D HH H mm m ss s
    """
    if calendar_type not in CALENDARS:
        raise ValueError(f"Unknown calendar: {calendar_type}")

    day_value = value.date() if isinstance(value, datetime) else value
    if calendar_type == "jalali":
        jalali = gregorian_to_jalali(day_value)
        year, month, day = jalali.year, jalali.month, jalali.day
    else:
        year, month, day = day_value.year, day_value.month, day_value.day

    hour = value.hour if isinstance(value, datetime) else 0
    minute = value.minute if isinstance(value, datetime) else 0
    second = value.second if isinstance(value, datetime) else 0
    month_name = month_names(calendar_type, locale)[month - 1]
    day_name = DAY_NAMES.get(locale, DAY_NAMES["en"])[day_value.weekday()]

    replacements = {
        "YYYY": f"{year:04d}",
        "YY": f"{year:04d}"[-2:],
        "MMMM": month_name,
        "MMM": month_name[:3],
        "MM": f"{month:02d}",
        "M": str(month),
        "DDDD": day_name,
        "DDD": day_name[:3],
        "DD": f"{day:02d}",
        "D": str(day),
        "HH": f"{hour:02d}",
        "H": str(hour),
        "mm": f"{minute:02d}",
        "m": str(minute),
        "ss": f"{second:02d}",
        "s": str(second),
    }
    formatted = _FORMAT_TOKENS.sub(lambda match: replacements[match.group(0)], fmt)
    if locale == "fa":
        formatted = to_persian_numerals(formatted)
    return formatted


def convert(value: str, source: str, target: str) -> Dict[str, Any]:
    """Convert an ISO ``YYYY-MM-DD`` date between calendars"""
    if source not in CALENDARS or target not in CALENDARS:
        raise ValueError("Calendar must be gregorian or jalali")

    if source == "jalali":
        gregorian = JalaliDate.fromisoformat(value).to_gregorian()
    else:
        gregorian = date.fromisoformat(value)
    jalali = gregorian_to_jalali(gregorian)
    return {
        "gregorian": gregorian.isoformat(),
        "jalali": jalali.isoformat(),
        "result": jalali.isoformat() if target == "jalali" else gregorian.isoformat(),
        "weekday": gregorian.weekday(),
    }


def month_info(
    year: int, month: int, calendar_type: str = "gregorian", locale: str = "en"
) -> Dict[str, Any]:
    """Length, name and Gregorian span of one month in either calendar"""
    if calendar_type == "jalali":
        length = jalali_month_length(year, month)
        first = jalali_to_gregorian(year, month, 1)
        leap = is_leap_jalali(year)
    elif calendar_type == "gregorian":
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid month: {month}")
        length = calendar.monthrange(year, month)[1]
        first = date(year, month, 1)
        leap = calendar.isleap(year)
    else:
        raise ValueError(f"Unknown calendar: {calendar_type}")

    last = date.fromordinal(first.toordinal() + length - 1)
    return {
        "calendar": calendar_type,
        "year": year,
        "month": month,
        "name": month_names(calendar_type, locale)[month - 1],
        "days": length,
        "is_leap_year": leap,
        "first_weekday": first.weekday(),
        "gregorian_start": first.isoformat(),
        "gregorian_end": last.isoformat(),
    }
