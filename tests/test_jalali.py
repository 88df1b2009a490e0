from datetime import date, datetime

import pytest

from src.calendars import (
    JalaliDate,
    convert,
    format_date,
    gregorian_to_jalali,
    is_leap_jalali,
    jalali_month_length,
    jalali_to_gregorian,
    month_info,
)


@pytest.mark.parametrize(
    "gregorian, jalali",
    [
        (date(2024, 3, 19), JalaliDate(1402, 12, 29)),
        (date(2024, 3, 20), JalaliDate(1403, 1, 1)),
        (date(2025, 3, 20), JalaliDate(1403, 12, 30)),
        (date(2025, 3, 21), JalaliDate(1404, 1, 1)),
        (date(2023, 3, 21), JalaliDate(1402, 1, 1)),
        (date(2024, 9, 22), JalaliDate(1403, 7, 1)),
    ],
)
def test_known_dates(gregorian, jalali):
    assert gregorian_to_jalali(gregorian) == jalali
    assert jalali_to_gregorian(jalali.year, jalali.month, jalali.day) == gregorian


def test_leap_years_and_month_lengths():
    assert is_leap_jalali(1403)
    assert not is_leap_jalali(1402)
    assert jalali_month_length(1403, 1) == 31
    assert jalali_month_length(1403, 7) == 30
    assert jalali_month_length(1403, 12) == 30
    assert jalali_month_length(1402, 12) == 29


def test_invalid_jalali_dates():
    with pytest.raises(ValueError):
        jalali_to_gregorian(1402, 12, 30)
    with pytest.raises(ValueError):
        JalaliDate.fromisoformat("1403-13-01")
    with pytest.raises(ValueError):
        JalaliDate.fromisoformat("not a date")


def test_datetime_input_uses_its_date():
    assert gregorian_to_jalali(datetime(2024, 3, 20, 23, 59)) == JalaliDate(1403, 1, 1)


def test_convert_both_directions():
    result = convert("2024-03-20", "gregorian", "jalali")
    assert result == {
        "gregorian": "2024-03-20",
        "jalali": "1403-01-01",
        "result": "1403-01-01",
        "weekday": 2,
    }
    assert convert("1403/12/30", "jalali", "gregorian")["result"] == "2025-03-20"

    with pytest.raises(ValueError):
        convert("2024-03-20", "gregorian", "hebrew")
    with pytest.raises(ValueError):
        convert("2024-02-30", "gregorian", "jalali")


def test_format_date():
    value = datetime(2024, 3, 20, 9, 5, 7)
    assert format_date(value) == "2024/03/20"
    assert format_date(value, "YYYY/MM/DD", "jalali") == "1403/01/01"
    assert format_date(value, "D MMMM YYYY", "jalali") == "1 Farvardin 1403"
    assert format_date(value, "DDDD HH:mm:ss") == "Wednesday 09:05:07"
    assert format_date(value, "YYYY/MM/DD", "jalali", "fa") == "۱۴۰۳/۰۱/۰۱"
    assert format_date(date(2024, 1, 5), "MMM D, YY") == "Jan 5, 24"

    with pytest.raises(ValueError):
        format_date(value, calendar_type="lunar")


def test_month_info():
    info = month_info(1403, 12, "jalali")
    assert info["name"] == "Esfand"
    assert info["days"] == 30
    assert info["is_leap_year"] is True
    assert info["gregorian_start"] == "2025-02-19"
    assert info["gregorian_end"] == "2025-03-20"

    february = month_info(2024, 2)
    assert february["days"] == 29
    assert february["first_weekday"] == 3
    assert month_info(1403, 1, "jalali", "fa")["name"] == "فروردین"

    with pytest.raises(ValueError):
        month_info(2024, 13)
