"""Decide which weekdays should show recommendations."""
from __future__ import annotations

import logging
from typing import Any, FrozenSet, Iterable, List, Mapping, Optional

from app.services.weekdays import Weekday, WeekdayLike, parse_weekday, translate_days, try_parse_weekday

logger = logging.getLogger(__name__)

DEFAULT_ACTIVE_DAYS: FrozenSet[Weekday] = frozenset({Weekday.MONDAY, Weekday.WEDNESDAY, Weekday.FRIDAY})

# Survey fields holding the chosen days, most specific first.
SURVEY_DAY_FIELDS = ("selectedDaysEn", "selectedDays", "workoutDays")


def survey_active_days(survey: Optional[Mapping[str, Any]], *, strict: bool = False) -> FrozenSet[Weekday]:
    """Translate the day selection carried by a survey payload."""
    if not survey:
        return frozenset()
    for field in SURVEY_DAY_FIELDS:
        values = survey.get(field)
        if values:
            if isinstance(values, str):
                values = [part for part in values.split(",") if part.strip()]
            return frozenset(translate_days(values, strict=strict))
    return frozenset()


def effective_active_days(survey_days: Iterable[WeekdayLike] | None) -> FrozenSet[Weekday]:
    days = _as_weekdays(survey_days)
    return days or DEFAULT_ACTIVE_DAYS


def is_active_day(
    day: WeekdayLike,
    survey_days: Iterable[WeekdayLike] | None,
    program: Optional[Mapping[str, List[Any]]] = None,
) -> bool:
    """
    Whether `day` should show recommendations.

    Existing content for the day always wins. Otherwise the survey's days
    decide, falling back to Monday/Wednesday/Friday when the survey chose none.
    """
    weekday = parse_weekday(day)
    if program and program.get(weekday.value):
        return True
    return weekday in effective_active_days(survey_days)


def empty_day_message(day: WeekdayLike, survey_days: Iterable[WeekdayLike] | None) -> str:
    """Guidance shown for a day without content."""
    weekday = parse_weekday(day)
    if weekday in effective_active_days(survey_days):
        return f"{weekday.value} is a training day. Get a recommendation to fill it in."
    return f"{weekday.value} is not one of your training days."


def _as_weekdays(values: Iterable[WeekdayLike] | None) -> FrozenSet[Weekday]:
    days = set()
    for value in values or ():
        day = try_parse_weekday(value)
        if day is None:
            logger.debug("Ignoring unrecognized survey day %r", value)
            continue
        days.add(day)
    return frozenset(days)
