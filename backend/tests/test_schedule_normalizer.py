from __future__ import annotations

import copy
import json

import pytest

from app.services.schedule_normalizer import (
    WEEKDAY_NAMES,
    empty_program,
    is_empty_program,
    item_id_for,
    normalize,
    serialize_program,
)


def _names(program, day):
    return [item.name for item in program[day]]


def test_nested_day_is_moved_back_to_its_own_key() -> None:
    raw = {
        "Monday": {
            "items": [{"name": "Push-up"}],
            "Tuesday": [{"name": "Squat"}],
        }
    }

    program = normalize(raw)

    assert _names(program, "Monday") == ["Push-up"]
    assert _names(program, "Tuesday") == ["Squat"]


def test_nested_day_leaves_parent_without_it() -> None:
    raw = {"Wednesday": {"Thursday": [{"name": "Bibimbap"}]}}

    program = normalize(raw)

    assert program["Wednesday"] == []
    assert _names(program, "Thursday") == ["Bibimbap"]


def test_nested_data_replaces_top_level_sibling() -> None:
    raw = {
        "Monday": {"Tuesday": [{"name": "Squat"}]},
        "Tuesday": [{"name": "Row"}],
    }

    program = normalize(raw)

    assert _names(program, "Tuesday") == ["Squat"]


def test_meal_slot_day_mapping() -> None:
    raw = {"Friday": {"breakfast": "Oatmeal", "dinner": {"name": "Salmon", "calories": 520}}}

    program = normalize(raw)

    assert _names(program, "Friday") == ["아침", "Salmon"]
    assert program["Friday"][0].description == "Oatmeal"
    assert program["Friday"][0].category == "breakfast"
    assert program["Friday"][1].model_dump()["calories"] == 520


def test_korean_day_keys_are_translated() -> None:
    program = normalize({"월요일": [{"name": "Run"}], "금": ["Stretch"]})

    assert _names(program, "Monday") == ["Run"]
    assert _names(program, "Friday") == ["Stretch"]


@pytest.mark.parametrize("raw", [{}, None, "not json", 42, [], {"unexpected": True}])
def test_always_seven_keys(raw) -> None:
    program = normalize(raw)

    assert list(program.keys()) == list(WEEKDAY_NAMES)
    assert is_empty_program(program)


def test_flat_single_item_is_replicated() -> None:
    program = normalize({"name": "Plank", "duration": 5})

    assert list(program.keys()) == list(WEEKDAY_NAMES)
    for day in WEEKDAY_NAMES:
        assert _names(program, day) == ["Plank"]
        assert program[day][0].model_dump()["duration"] == 5


def test_flat_workout_summary_is_replicated() -> None:
    raw = {
        "programName": "Beginner strength",
        "mainSets": "3x10 squats",
        "targetMuscles": ["legs"],
    }

    program = normalize(raw)

    for day in WEEKDAY_NAMES:
        item = program[day][0]
        assert item.name == "Beginner strength"
        assert item.description == "3x10 squats"
        assert item.model_dump()["targetMuscles"] == ["legs"]


def test_flat_diet_summary_splits_daily_calories() -> None:
    raw = {
        "mealStyle": "Korean",
        "dailyCalories": 1800,
        "sampleMenu": {"breakfast": "Rice", "lunch": {"name": "Bibimbap"}, "dinner": "Soup"},
    }

    program = normalize(raw)

    assert _names(program, "Sunday") == ["아침", "Bibimbap", "저녁"]
    assert [item.model_dump()["calories"] for item in program["Sunday"]] == [600, 600, 600]


def test_json_string_payload_is_decoded() -> None:
    program = normalize(json.dumps({"Saturday": [{"name": "Hike"}]}))

    assert _names(program, "Saturday") == ["Hike"]


def test_nameless_entries_are_dropped() -> None:
    program = normalize({"Monday": [{"description": "missing name"}, {"title": "Lunge"}, 3]})

    assert _names(program, "Monday") == ["Lunge"]


def test_input_is_not_mutated() -> None:
    raw = {"Monday": {"items": [{"name": "Push-up"}], "Tuesday": [{"name": "Squat"}]}}
    snapshot = copy.deepcopy(raw)

    program = normalize(raw)
    program["Tuesday"][0].name = "changed"

    assert raw == snapshot


def test_generated_ids_are_stable() -> None:
    raw = {"name": "Plank"}

    first = normalize(raw)
    second = normalize(raw)

    assert first["Monday"][0].id == second["Monday"][0].id
    assert first["Monday"][0].id == item_id_for("Monday", 0, "Plank")
    assert first["Monday"][0].id != first["Tuesday"][0].id


def test_existing_item_id_is_kept() -> None:
    program = normalize({"Monday": [{"id": "abc", "name": "Run"}]})

    assert program["Monday"][0].id == "abc"


@pytest.mark.parametrize(
    "raw",
    [
        {"Monday": [{"name": "Push-up", "sets": 3}], "Thursday": [{"name": "Run"}]},
        {"Monday": {"items": [{"name": "Push-up"}], "Tuesday": [{"name": "Squat"}]}},
        {"programName": "Cardio", "mainSets": "20 min"},
    ],
)
def test_normalize_is_idempotent(raw) -> None:
    once = normalize(raw)

    assert serialize_program(normalize(once)) == serialize_program(once)
    assert serialize_program(normalize(serialize_program(once))) == serialize_program(once)


def test_empty_program_helpers() -> None:
    program = empty_program()

    assert is_empty_program(program)
    assert is_empty_program(None)
    assert not is_empty_program(normalize({"Monday": ["Run"]}))
    assert serialize_program(program) == {day: [] for day in WEEKDAY_NAMES}
