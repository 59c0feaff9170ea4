from collections.abc import Iterable
from enum import Enum


class Month(str, Enum):
    JULY = "JULY"
    AUGUST = "AUGUST"
    SEPTEMBER = "SEPTEMBER"
    OCTOBER = "OCTOBER"
    NOVEMBER = "NOVEMBER"
    DECEMBER = "DECEMBER"
    JANUARY = "JANUARY"
    FEBRUARY = "FEBRUARY"
    MARCH = "MARCH"
    APRIL = "APRIL"
    MAY = "MAY"
    JUNE = "JUNE"


# Academic years run July through June.
PERIOD_MONTHS: dict[str, tuple[str, ...]] = {
    "Q1": ("JULY", "AUGUST", "SEPTEMBER"),
    "Q2": ("OCTOBER", "NOVEMBER", "DECEMBER"),
    "Q3": ("JANUARY", "FEBRUARY", "MARCH"),
    "Q4": ("APRIL", "MAY", "JUNE"),
    "SEM1": ("JULY", "AUGUST", "SEPTEMBER", "OCTOBER", "NOVEMBER", "DECEMBER"),
    "SEM2": ("JANUARY", "FEBRUARY", "MARCH", "APRIL", "MAY", "JUNE"),
}

MONTH_CODES = frozenset(month.value for month in Month)
PERIOD_CODES = MONTH_CODES | frozenset(PERIOD_MONTHS)


def unknown_period_codes(periods: Iterable[str]) -> list[str]:
    return sorted({period for period in periods if period not in PERIOD_CODES})


def expand_target_periods(target_periods: Iterable[str]) -> set[str]:
    """Expand quarter/semester codes into their months, keeping the group codes themselves."""
    expanded: set[str] = set()
    for period in target_periods:
        expanded.add(period)
        expanded.update(PERIOD_MONTHS.get(period, ()))
    return expanded


def is_period_match(tuition_period: str, target_periods: Iterable[str]) -> bool:
    targets = list(target_periods)
    if tuition_period in targets:
        return True
    for target in targets:
        if tuition_period in PERIOD_MONTHS.get(target, ()):
            return True
    tuition_months = PERIOD_MONTHS.get(tuition_period)
    if tuition_months:
        expanded = expand_target_periods(targets)
        return any(month in expanded for month in tuition_months)
    return False
