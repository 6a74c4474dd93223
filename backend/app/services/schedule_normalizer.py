"""Repair generated weekly programs into the canonical 7-day shape."""
from __future__ import annotations

import copy
import json
import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid5

from pydantic import ValidationError

from app.api.schemas.recommendation import RecommendationItem, WeeklyProgram
from app.services.weekdays import WEEKDAYS, try_parse_weekday

logger = logging.getLogger(__name__)

WEEKDAY_NAMES: tuple[str, ...] = tuple(day.value for day in WEEKDAYS)

ITEM_ID_NAMESPACE = UUID("6f1d2c3a-8b4e-5f60-9a7b-1c2d3e4f5a6b")

# Keys under which a day mapping (or a flat program) may carry its item list.
ITEM_LIST_KEYS = ("items", "meals", "workouts", "exercises")
NAME_KEYS = ("name", "title", "exercise", "menu", "food")
MEAL_SLOT_LABELS = {
    "breakfast": "아침",
    "lunch": "점심",
    "dinner": "저녁",
    "snack": "간식",
}
WORKOUT_SUMMARY_FIELDS = (
    "weeklySchedule",
    "targetMuscles",
    "equipment",
    "warmup",
    "cooldown",
    "caution",
    "expectedResults",
)


def empty_program() -> WeeklyProgram:
    return {name: [] for name in WEEKDAY_NAMES}


def is_empty_program(program: Optional[Mapping[str, List[Any]]]) -> bool:
    if not program:
        return True
    return not any(program.get(name) for name in WEEKDAY_NAMES)


def serialize_program(program: WeeklyProgram) -> Dict[str, List[Dict[str, Any]]]:
    """JSON-ready copy of a program, keyed by day name."""
    return {
        name: [item.model_dump(mode="json") for item in program.get(name, [])]
        for name in WEEKDAY_NAMES
    }


def item_id_for(day: str, index: int, name: str) -> str:
    """Stable item id derived from its slot in the week."""
    return str(uuid5(ITEM_ID_NAMESPACE, f"{day}:{index}:{name}"))


def normalize(raw: Any) -> WeeklyProgram:
    """
    Return a program with exactly the 7 canonical day keys.

    Handles, in order: top-level day keys (English or Korean) holding lists;
    a day mapping that nests a sibling day's data under that sibling's key
    (moved back to the sibling); and a flat single program with no day keys
    at all, replicated across the week. Malformed input degrades to empty
    days and never raises. The input is not mutated.
    """
    data = copy.deepcopy(_decode(raw))
    program = empty_program()

    if isinstance(data, list):
        return _replicate(data)
    if not isinstance(data, Mapping):
        if data is not None:
            logger.debug("Discarding non-mapping recommendation payload of type %s", type(data).__name__)
        return program

    day_keys = _day_keys(data)
    if not day_keys:
        return _replicate(_flat_program_entries(data))

    for day, key in day_keys.items():
        program[day] = _coerce_items(day, _entries(data[key], own_day=day))

    for outer_day, outer_key in day_keys.items():
        outer_value = data[outer_key]
        if not isinstance(outer_value, Mapping):
            continue
        for inner_day, inner_key in _day_keys(outer_value).items():
            if inner_day == outer_day:
                continue
            logger.debug("Moving %s data nested under %s back to its own day", inner_day, outer_day)
            program[inner_day] = _coerce_items(inner_day, _entries(outer_value[inner_key], own_day=inner_day))

    return program


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _decode(raw: Any) -> Any:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except ValueError:
            return raw
    return raw


def _day_keys(mapping: Mapping) -> Dict[str, Any]:
    """Map canonical day name -> the key used for it in mapping (canonical key wins over aliases)."""
    found: Dict[str, Any] = {}
    for key in mapping.keys():
        if not isinstance(key, str):
            continue
        day = try_parse_weekday(key)
        if day is None:
            continue
        if day.value in found and found[day.value] == day.value:
            continue
        found[day.value] = key
    return found


def _entries(value: Any, *, own_day: str) -> List[Any]:
    """Raw item entries carried by one day's value."""
    value = _decode(value)
    if isinstance(value, list):
        return value
    if isinstance(value, Mapping):
        return _own_entries(value, own_day)
    if isinstance(value, str) and value.strip():
        return [value]
    return []


def _own_entries(mapping: Mapping, own_day: str) -> List[Any]:
    nested = _day_keys(mapping)
    if own_day in nested:
        # Day nested under its own key; unwrap.
        return _entries(mapping[nested[own_day]], own_day=own_day)
    rest = {key: value for key, value in mapping.items() if key not in nested.values()}
    for key in ITEM_LIST_KEYS:
        if isinstance(rest.get(key), list):
            return rest[key]
    if any(key in rest for key in NAME_KEYS):
        return [rest]
    return _meal_slot_entries(rest)


def _meal_slot_entries(mapping: Mapping, calories_total: Any = None) -> List[Dict[str, Any]]:
    slots = [slot for slot in MEAL_SLOT_LABELS if mapping.get(slot)]
    per_meal = _split_calories(calories_total, len(slots))
    entries: List[Dict[str, Any]] = []
    for slot in slots:
        value = mapping[slot]
        if isinstance(value, Mapping):
            entry = dict(value)
            entry.setdefault("name", MEAL_SLOT_LABELS[slot])
        else:
            entry = {"name": MEAL_SLOT_LABELS[slot], "description": str(value)}
        entry.setdefault("category", slot)
        if per_meal is not None:
            entry.setdefault("calories", per_meal)
        entries.append(entry)
    return entries


def _split_calories(total: Any, parts: int) -> Optional[int]:
    if total is None or parts <= 0:
        return None
    try:
        return int(float(total) // parts)
    except (TypeError, ValueError):
        return None


def _flat_program_entries(data: Mapping) -> List[Any]:
    """Items for a payload that is one program rather than a week of them."""
    for key in ITEM_LIST_KEYS:
        if isinstance(data.get(key), list):
            return data[key]
    if any(key in data for key in NAME_KEYS):
        return [data]

    if data.get("programName"):
        entry: Dict[str, Any] = {
            "name": data["programName"],
            "description": data.get("mainSets") or data.get("description") or "",
            "category": "program",
        }
        entry.update({field: data[field] for field in WORKOUT_SUMMARY_FIELDS if data.get(field)})
        return [entry]

    sample_menu = _decode(data.get("sampleMenu"))
    meal_style = data.get("mealStyle")
    daily_calories = data.get("dailyCalories")
    if isinstance(sample_menu, Mapping):
        meals = _meal_slot_entries(sample_menu, daily_calories)
        if meals:
            return meals
    if sample_menu or meal_style or daily_calories:
        entry = {
            "name": meal_style or "식단 계획",
            "description": sample_menu if isinstance(sample_menu, str) else "",
            "category": "diet",
        }
        if daily_calories is not None:
            entry["calories"] = daily_calories
        return [entry]

    return _meal_slot_entries(data)


def _replicate(entries: List[Any]) -> WeeklyProgram:
    return {day: _coerce_items(day, entries) for day in WEEKDAY_NAMES}


def _coerce_items(day: str, entries: List[Any]) -> List[RecommendationItem]:
    items: List[RecommendationItem] = []
    for entry in entries:
        item = _coerce_item(day, len(items), entry)
        if item is not None:
            items.append(item)
    return items


def _coerce_item(day: str, index: int, entry: Any) -> Optional[RecommendationItem]:
    if isinstance(entry, RecommendationItem):
        return entry.model_copy(deep=True)
    if isinstance(entry, str):
        name = entry.strip()
        if not name:
            return None
        return RecommendationItem(id=item_id_for(day, index, name), name=name)
    if not isinstance(entry, Mapping):
        return None

    data = {key: value for key, value in entry.items() if isinstance(key, str)}
    name = next((data[key] for key in NAME_KEYS if isinstance(data.get(key), str) and data[key].strip()), None)
    if name is None:
        logger.debug("Dropping nameless recommendation entry on %s", day)
        return None
    data["name"] = name.strip()
    description = data.get("description")
    data["description"] = "" if description is None else str(description)
    category = data.get("category")
    data["category"] = None if category is None else str(category)
    if not isinstance(data.get("id"), str) or not data["id"]:
        data["id"] = item_id_for(day, index, data["name"])

    try:
        return RecommendationItem.model_validate(data)
    except ValidationError as exc:
        logger.debug("Dropping invalid recommendation entry on %s: %s", day, exc)
        return None


__all__ = [
    "ITEM_ID_NAMESPACE",
    "WEEKDAY_NAMES",
    "empty_program",
    "is_empty_program",
    "item_id_for",
    "normalize",
    "serialize_program",
]
