"""Weekday key translation (Korean/English names, weekday indexes, dates)."""
from __future__ import annotations

import logging
from datetime import date
from enum import Enum
from typing import Iterable, List, Optional, Union

logger = logging.getLogger(__name__)


class Weekday(str, Enum):
    """Canonical weekday keys, declared in calendar-week order (Sunday first)."""

    SUNDAY = "Sunday"
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"


WEEKDAYS: tuple[Weekday, ...] = tuple(Weekday)

WeekdayLike = Union[Weekday, str, int, date]

_KOREAN_NAMES = {
    "일요일": Weekday.SUNDAY,
    "월요일": Weekday.MONDAY,
    "화요일": Weekday.TUESDAY,
    "수요일": Weekday.WEDNESDAY,
    "목요일": Weekday.THURSDAY,
    "금요일": Weekday.FRIDAY,
    "토요일": Weekday.SATURDAY,
    "일": Weekday.SUNDAY,
    "월": Weekday.MONDAY,
    "화": Weekday.TUESDAY,
    "수": Weekday.WEDNESDAY,
    "목": Weekday.THURSDAY,
    "금": Weekday.FRIDAY,
    "토": Weekday.SATURDAY,
}

_ENGLISH_NAMES = {day.value.lower(): day for day in WEEKDAYS}
_ENGLISH_NAMES.update({day.value[:3].lower(): day for day in WEEKDAYS})


class UnrecognizedDay(ValueError):
    """Raised by the strict parser when a value names no weekday."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Unrecognized weekday: {value!r}")
        self.value = value


def weekday_for_date(value: date) -> Weekday:
    """Return the weekday of a calendar date."""
    # date.weekday() is Monday=0; the index convention here is Sunday=0.
    return WEEKDAYS[(value.weekday() + 1) % 7]


def try_parse_weekday(value: object) -> Optional[Weekday]:
    """Return the canonical weekday for value, or None when it names none."""
    if isinstance(value, Weekday):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return WEEKDAYS[value] if 0 <= value < len(WEEKDAYS) else None
    if isinstance(value, date):
        return weekday_for_date(value)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    if text in _KOREAN_NAMES:
        return _KOREAN_NAMES[text]
    return _ENGLISH_NAMES.get(text.lower())


def parse_weekday(value: object) -> Weekday:
    """Strict translation: raise UnrecognizedDay instead of guessing."""
    day = try_parse_weekday(value)
    if day is None:
        raise UnrecognizedDay(value)
    return day


def to_canonical_weekday(value: WeekdayLike) -> str:
    """
    Permissive translation used for display lookups.

    Known inputs map to the canonical English name; unknown strings are
    returned unchanged (other unknown values as their str()).
    """
    day = try_parse_weekday(value)
    if day is not None:
        return day.value
    return value if isinstance(value, str) else str(value)


def translate_days(values: Iterable[object] | None, *, strict: bool = False) -> List[Weekday]:
    """Translate a collection of day names, keeping first-seen order and dropping duplicates."""
    days: List[Weekday] = []
    for value in values or []:
        if strict:
            day = parse_weekday(value)
        else:
            day = try_parse_weekday(value)
            if day is None:
                logger.warning("Dropping unrecognized weekday %r", value)
                continue
        if day not in days:
            days.append(day)
    return days
