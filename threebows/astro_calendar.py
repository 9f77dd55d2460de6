"""
Calendar utilities for the Four Pillars engine.
Handles birth date/time parsing, the Li Chun year cutover,
solar-term month boundaries and the Julian Day axis.
"""

from datetime import date, datetime, time
from typing import Optional, Union
import swisseph as swe


# ============================================================
# INPUT PARSING
# ============================================================

def parse_birth_date(value: Union[date, str]) -> date:
    """
    Parse an ISO birth date.

    Args:
        value: date object or "YYYY-MM-DD" string

    Returns:
        date

    Raises:
        ValueError: if the string is not a valid calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid birth date {value!r}, expected YYYY-MM-DD")


def parse_birth_time(value: Union[time, str, None]) -> Optional[time]:
    """
    Parse an optional 24h "HH:MM" birth time.

    An empty or missing time is not an error: it means the hour is unknown.
    """
    if value is None or isinstance(value, time):
        return value
    value = value.strip()
    if not value:
        return None
    try:
        return datetime.strptime(value, "%H:%M").time()
    except ValueError:
        raise ValueError(f"Invalid birth time {value!r}, expected HH:MM (24h)")


# ============================================================
# SOLAR TERM APPROXIMATION
# ============================================================
#
# The 12 Jie (节) solar terms mark BaZi month boundaries. Their true
# moment drifts by about a day from year to year; here each one is
# pinned to a fixed day of its Gregorian month.
#
# Xiao Han   Jan 6 → Chou (Ox)       Li Qiu   Aug 7 → Shen (Monkey)
# Li Chun    Feb 4 → Yin (Tiger)     Bai Lu   Sep 8 → You (Rooster)
# Jing Zhe   Mar 6 → Mao (Rabbit)    Han Lu   Oct 8 → Xu (Dog)
# Qing Ming  Apr 5 → Chen (Dragon)   Li Dong  Nov 7 → Hai (Pig)
# Li Xia     May 6 → Si (Snake)      Da Xue   Dec 7 → Zi (Rat)
# Mang Zhong Jun 6 → Wu (Horse)
# Xiao Shu   Jul 7 → Wei (Goat)

# (cutover_day, branch_index) for calendar months January..December
JIE_CUTOVERS = (
    (6, 1), (4, 2), (6, 3), (5, 4), (6, 5), (6, 6),
    (7, 7), (7, 8), (8, 9), (8, 10), (7, 11), (7, 0),
)

LI_CHUN_MONTH = 2
LI_CHUN_DAY = 4


def li_chun_date(year: int) -> date:
    """Approximate Start of Spring for a Gregorian year (Feb 4, 00:00)."""
    return date(year, LI_CHUN_MONTH, LI_CHUN_DAY)


def effective_year(birth: date) -> int:
    """Chinese year a date belongs to: births before Li Chun count toward the previous year."""
    if birth < li_chun_date(birth.year):
        return birth.year - 1
    return birth.year


def month_branch_index(month: int, day: int) -> int:
    """
    Earthly branch index of the solar month containing (month, day).

    On or after the month's cutover day the date belongs to the branch whose
    solar month starts in that calendar month; before it, to the previous branch.
    """
    cutover_day, branch_index = JIE_CUTOVERS[month - 1]
    if day >= cutover_day:
        return branch_index
    return (branch_index - 1) % 12


# ============================================================
# JULIAN DAY
# ============================================================

# Gregorian Jan 1, 2000. Defined as the Jia Zi (stem 0, branch 0) day.
REFERENCE_JDN = 2451545


def julian_day_number(year: int, month: int, day: int) -> int:
    """
    Julian Day Number of a proleptic Gregorian date.

    swe.julday returns the Julian Date; at 12:00 UT that is exactly the JDN.
    """
    return int(round(swe.julday(year, month, day, 12.0, swe.GREG_CAL)))


def days_from_reference(birth: date) -> int:
    """Signed day offset from the Jia Zi reference day (negative before 2000-01-01)."""
    return julian_day_number(birth.year, birth.month, birth.day) - REFERENCE_JDN


# Quick verification
if __name__ == "__main__":
    print(f"JDN 2000-01-01: {julian_day_number(2000, 1, 1)} (expected {REFERENCE_JDN})")
    print(f"Li Chun 2026: {li_chun_date(2026).isoformat()}")
    for m in range(1, 13):
        day, _ = JIE_CUTOVERS[m - 1]
        print(f"  {m:02d}-{day:02d}: before → {month_branch_index(m, day - 1):2d}, "
              f"on → {month_branch_index(m, day):2d}")
