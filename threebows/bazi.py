"""
BaZi (Four Pillars of Destiny) computation engine.

Handles:
- Stem and branch lookup tables
- Year pillar (Li Chun cutover)
- Month pillar (solar-term month + Five Tigers Escape)
- Day pillar (Julian Day offset from the Jia Zi reference day)
- Hour pillar (double-hours + Five Rats Escape)

Design principle: every function here is pure. Indices are normalized with
Python's non-negative modulo, so dates before 4 CE or before the reference
day never produce an out-of-range stem or branch.
"""

from dataclasses import dataclass
from datetime import date, time
from enum import Enum
from typing import Optional, Union

from threebows.astro_calendar import (
    days_from_reference, effective_year, month_branch_index,
    parse_birth_date, parse_birth_time,
)


# ============================================================
# FUNDAMENTAL DATA STRUCTURES
# ============================================================

class Polarity(Enum):
    YANG = "Yang"
    YIN = "Yin"


class Element(Enum):
    WOOD = "Wood"
    FIRE = "Fire"
    EARTH = "Earth"
    METAL = "Metal"
    WATER = "Water"


@dataclass(frozen=True)
class HeavenlyStem:
    chinese: str
    pinyin: str
    element: Element
    polarity: Polarity
    index: int  # 0-9 in the cycle

    def __str__(self):
        return f"{self.pinyin} ({self.polarity.value} {self.element.value})"


@dataclass(frozen=True)
class EarthlyBranch:
    chinese: str
    pinyin: str
    animal: str
    element: Element  # primary/season element
    index: int  # 0-11 in the cycle

    def __str__(self):
        return f"{self.pinyin} ({self.animal})"


@dataclass(frozen=True)
class Pillar:
    stem: HeavenlyStem
    branch: EarthlyBranch
    position: str  # "year", "month", "day", "hour"

    @property
    def stem_index(self) -> int:
        return self.stem.index

    @property
    def branch_index(self) -> int:
        return self.branch.index

    def __str__(self):
        return f"{self.stem.chinese}{self.branch.chinese} ({self.stem.element.value} {self.branch.animal})"

    def to_dict(self):
        return {
            "position": self.position,
            "stem_index": self.stem.index,
            "branch_index": self.branch.index,
            "stem": self.stem.chinese,
            "stem_pinyin": self.stem.pinyin,
            "branch": self.branch.chinese,
            "branch_pinyin": self.branch.pinyin,
            "element": self.stem.element.value,
            "polarity": self.stem.polarity.value,
            "animal": self.branch.animal,
            "branch_element": self.branch.element.value,
            "description": str(self),
        }


@dataclass(frozen=True)
class FourPillarChart:
    year: Pillar
    month: Pillar
    day: Pillar
    hour: Optional[Pillar]  # None when the birth time is unknown

    @property
    def pillars(self) -> list[Pillar]:
        """Known pillars, in Year/Month/Day/Hour order."""
        return [p for p in (self.year, self.month, self.day, self.hour) if p is not None]

    def describe(self) -> dict:
        return {
            "year": str(self.year),
            "month": str(self.month),
            "day": str(self.day),
            "hour": str(self.hour) if self.hour else "Not provided",
        }

    def to_dict(self):
        return {
            "year": self.year.to_dict(),
            "month": self.month.to_dict(),
            "day": self.day.to_dict(),
            "hour": self.hour.to_dict() if self.hour else None,
        }


# ============================================================
# STEM AND BRANCH DEFINITIONS
# ============================================================

HEAVENLY_STEMS = (
    HeavenlyStem("甲", "Jia", Element.WOOD, Polarity.YANG, 0),
    HeavenlyStem("乙", "Yi", Element.WOOD, Polarity.YIN, 1),
    HeavenlyStem("丙", "Bing", Element.FIRE, Polarity.YANG, 2),
    HeavenlyStem("丁", "Ding", Element.FIRE, Polarity.YIN, 3),
    HeavenlyStem("戊", "Wu", Element.EARTH, Polarity.YANG, 4),
    HeavenlyStem("己", "Ji", Element.EARTH, Polarity.YIN, 5),
    HeavenlyStem("庚", "Geng", Element.METAL, Polarity.YANG, 6),
    HeavenlyStem("辛", "Xin", Element.METAL, Polarity.YIN, 7),
    HeavenlyStem("壬", "Ren", Element.WATER, Polarity.YANG, 8),
    HeavenlyStem("癸", "Gui", Element.WATER, Polarity.YIN, 9),
)

EARTHLY_BRANCHES = (
    EarthlyBranch("子", "Zi", "Rat", Element.WATER, 0),
    EarthlyBranch("丑", "Chou", "Ox", Element.EARTH, 1),
    EarthlyBranch("寅", "Yin", "Tiger", Element.WOOD, 2),
    EarthlyBranch("卯", "Mao", "Rabbit", Element.WOOD, 3),
    EarthlyBranch("辰", "Chen", "Dragon", Element.EARTH, 4),
    EarthlyBranch("巳", "Si", "Snake", Element.FIRE, 5),
    EarthlyBranch("午", "Wu", "Horse", Element.FIRE, 6),
    EarthlyBranch("未", "Wei", "Goat", Element.EARTH, 7),
    EarthlyBranch("申", "Shen", "Monkey", Element.METAL, 8),
    EarthlyBranch("酉", "You", "Rooster", Element.METAL, 9),
    EarthlyBranch("戌", "Xu", "Dog", Element.EARTH, 10),
    EarthlyBranch("亥", "Hai", "Pig", Element.WATER, 11),
)


# Five Tigers Escape: year stem mod 5 → stem of the Tiger (Yin) month
TIGER_MONTH_STEMS = (2, 4, 6, 8, 0)

# Five Rats Escape: day stem mod 5 → stem of the Rat (Zi) hour
RAT_HOUR_STEMS = (0, 2, 4, 6, 8)


def make_pillar(stem_index: int, branch_index: int, position: str) -> Pillar:
    return Pillar(
        stem=HEAVENLY_STEMS[stem_index % 10],
        branch=EARTHLY_BRANCHES[branch_index % 12],
        position=position,
    )


# ============================================================
# PILLAR COMPUTATION
# ============================================================

def year_pillar(birth: date) -> Pillar:
    """
    Compute the Year Pillar.

    The BaZi year starts at Li Chun (Start of Spring), taken as Feb 4.
    If born before Li Chun, use previous year's pillar.
    """
    # Year 4 CE was Jia Zi, the start of the cycle
    offset = effective_year(birth) - 4
    return make_pillar(offset % 10, offset % 12, "year")


def month_pillar(year_stem_index: int, month_branch: int) -> Pillar:
    """
    Compute the Month Pillar using the Five Tigers Escape (Wu Hu Dun) formula.

    - Year stem Jia/Ji → Tiger month stem Bing
    - Year stem Yi/Geng → Wu
    - Year stem Bing/Xin → Geng
    - Year stem Ding/Ren → Ren
    - Year stem Wu/Gui → Jia

    Args:
        year_stem_index: index of the year's heavenly stem (0-9)
        month_branch: index of the month's earthly branch (0-11);
            the first month (Tiger/Yin) has branch index 2
    """
    tiger_stem = TIGER_MONTH_STEMS[year_stem_index % 5]
    months_from_tiger = (month_branch - 2) % 12
    return make_pillar(tiger_stem + months_from_tiger, month_branch, "month")


def day_pillar(birth: date) -> Pillar:
    """Compute the Day Pillar from the date's Julian Day offset to 2000-01-01 (Jia Zi)."""
    offset = days_from_reference(birth)
    return make_pillar(offset % 10, offset % 12, "day")


def hour_branch_index(birth_time: time) -> int:
    """
    Map a clock time to its double-hour (shi chen) branch.

    23:00-00:59 = Zi (Rat)      = branch 0
    01:00-02:59 = Chou (Ox)     = branch 1
    ...
    13:00-14:59 = Wei (Goat)    = branch 7
    ...
    21:00-22:59 = Hai (Pig)     = branch 11
    """
    return ((birth_time.hour + 1) // 2) % 12


def hour_pillar(day_stem_index: int, birth_time: Optional[time]) -> Optional[Pillar]:
    """
    Compute the Hour Pillar using the Five Rats Escape (Wu Shu Dun) formula.

    Returns None when the birth time is unknown; an unknown hour is not the Rat hour.
    """
    if birth_time is None:
        return None
    branch_index = hour_branch_index(birth_time)
    rat_stem = RAT_HOUR_STEMS[day_stem_index % 5]
    return make_pillar(rat_stem + branch_index, branch_index, "hour")


# ============================================================
# FULL CHART COMPUTATION
# ============================================================

def compute_chart(birth_date: Union[date, str],
                  birth_time: Union[time, str, None] = None) -> FourPillarChart:
    """
    Compute the Four Pillars from birth data.

    Args:
        birth_date: date or "YYYY-MM-DD" string
        birth_time: time, "HH:MM" 24h string, or None/"" if unknown

    Returns:
        FourPillarChart; its hour is None when no time was given.
    """
    birth = parse_birth_date(birth_date)
    clock = parse_birth_time(birth_time)

    yp = year_pillar(birth)
    mp = month_pillar(yp.stem_index, month_branch_index(birth.month, birth.day))
    dp = day_pillar(birth)
    hp = hour_pillar(dp.stem_index, clock)

    return FourPillarChart(year=yp, month=mp, day=dp, hour=hp)


# ============================================================
# TEST / VERIFICATION
# ============================================================

if __name__ == "__main__":
    print("=" * 60)
    print("BaZi Computation Test: 1990-03-15 10:30")
    print("=" * 60)

    chart = compute_chart("1990-03-15", "10:30")
    for pos, text in chart.describe().items():
        print(f"  {pos.capitalize():6s}: {text}")

    print("\nExpected: Geng Wu, Ji Mao, Yi You, Xin Si")
