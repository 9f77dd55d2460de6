from datetime import date, time

import pytest

from threebows.astro_calendar import (
    REFERENCE_JDN, days_from_reference, effective_year, julian_day_number,
    li_chun_date, month_branch_index, parse_birth_date, parse_birth_time,
)


def test_parse_birth_date():
    assert parse_birth_date("2000-01-01") == date(2000, 1, 1)
    assert parse_birth_date(" 1990-03-15 ") == date(1990, 3, 15)
    assert parse_birth_date(date(1990, 3, 15)) == date(1990, 3, 15)


@pytest.mark.parametrize("bad", ["", "2000-13-01", "2001-02-29", "15/03/1990", None])
def test_parse_birth_date_rejects_malformed(bad):
    with pytest.raises(ValueError):
        parse_birth_date(bad)


def test_parse_birth_time_optional():
    assert parse_birth_time(None) is None
    assert parse_birth_time("") is None
    assert parse_birth_time("   ") is None
    assert parse_birth_time("13:05") == time(13, 5)
    assert parse_birth_time("00:30") == time(0, 30)


@pytest.mark.parametrize("bad", ["25:00", "12:60", "1pm", "12"])
def test_parse_birth_time_rejects_malformed(bad):
    with pytest.raises(ValueError):
        parse_birth_time(bad)


def test_julian_day_number_known_values():
    assert julian_day_number(2000, 1, 1) == REFERENCE_JDN
    assert julian_day_number(1970, 1, 1) == 2440588
    assert julian_day_number(1858, 11, 17) == 2400001


def test_days_from_reference_sign():
    assert days_from_reference(date(2000, 1, 1)) == 0
    assert days_from_reference(date(1999, 12, 31)) == -1
    assert days_from_reference(date(2000, 3, 1)) == 60  # 2000 is a leap year


def test_li_chun_cutover():
    assert li_chun_date(2026) == date(2026, 2, 4)
    assert effective_year(date(2024, 2, 3)) == 2023
    assert effective_year(date(2024, 2, 4)) == 2024
    assert effective_year(date(2024, 1, 1)) == 2023
    assert effective_year(date(2024, 12, 31)) == 2024


@pytest.mark.parametrize("month, day, expected", [
    (1, 5, 0),    # still Rat month from December
    (1, 6, 1),    # Xiao Han → Ox
    (2, 3, 1),
    (2, 4, 2),    # Li Chun → Tiger
    (3, 5, 2),
    (3, 6, 3),
    (6, 5, 5),
    (6, 6, 6),
    (9, 7, 8),
    (9, 8, 9),
    (11, 7, 11),
    (12, 6, 11),
    (12, 7, 0),   # Da Xue → Rat
    (12, 31, 0),
])
def test_month_branch_index(month, day, expected):
    assert month_branch_index(month, day) == expected
