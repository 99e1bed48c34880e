from datetime import date

import pytest

from rover_admin.errors import ValidationError
from rover_admin.logic.question_config import config_columns, parse_config
from rover_admin.logic.status import (
    ALWAYS_ACTIVE_END, ALWAYS_ACTIVE_START, derive_status, is_time_limited, parse_date,
    resolve_date_range,
)
from rover_admin.logic.timespan import duration_minutes, format_duration, normalize_hhmm, parse_hhmm

TODAY = date(2026, 5, 15)


@pytest.mark.parametrize("start, end, expected", [
    (date(2026, 5, 1), date(2026, 5, 31), "active"),
    (date(2026, 5, 15), date(2026, 5, 15), "active"),
    (date(2026, 6, 1), date(2026, 6, 30), "scheduled"),
    (date(2026, 4, 1), date(2026, 5, 14), "inactive"),
])
def test_derive_status(start, end, expected):
    assert derive_status(start, end, TODAY) == expected


def test_archived_is_always_inactive():
    assert derive_status(ALWAYS_ACTIVE_START, ALWAYS_ACTIVE_END, TODAY, archived=True) == "inactive"


def test_date_range():
    assert resolve_date_range(True, None, None) == (ALWAYS_ACTIVE_START, ALWAYS_ACTIVE_END)
    assert resolve_date_range(False, "01.03.2026", "2026-03-31T00:00:00") == (date(2026, 3, 1), date(2026, 3, 31))
    assert not is_time_limited(ALWAYS_ACTIVE_START)
    with pytest.raises(ValidationError):
        resolve_date_range(False, "2026-03-31", "2026-03-01")
    with pytest.raises(ValidationError):
        resolve_date_range(False, "2026-03-01", None)
    with pytest.raises(ValidationError):
        parse_date("31/03/2026")


def test_choice_and_likert_config():
    columns = config_columns(parse_config("single_choice", {"options": ["Ja", " ", "Nein"]}))
    assert columns["options"] == ["Ja", "Nein"]
    assert columns["likert_scale"] is None

    likert = parse_config("likert", {"likert_scale": {"min": 1, "max": 5, "minLabel": "schlecht"}})
    assert likert.to_columns()["likert_scale"]["minLabel"] == "schlecht"


@pytest.mark.parametrize("qtype, data", [
    ("single_choice", {"options": []}),
    ("likert", {"likert_scale": {"min": 5, "max": 1}}),
    ("matrix", {"matrix_config": {"rows": ["A"], "columns": []}}),
    ("slider", {"slider_config": {"min": 0, "max": 10, "step": 0}}),
    ("open_numeric", {"numeric_constraints": {"min": 10, "max": 1}}),
    ("dropdown", {}),
])
def test_invalid_config(qtype, data):
    with pytest.raises(ValidationError):
        parse_config(qtype, data)


def test_matrix_accepts_flat_rows_and_columns():
    config = parse_config("matrix", {"matrix_rows": ["Milka"], "matrix_columns": ["vorhanden", "fehlt"]})
    assert config.to_columns() == {"matrix_config": {"rows": ["Milka"], "columns": ["vorhanden", "fehlt"]}}


def test_slider_defaults():
    assert parse_config("slider", {}).to_columns() == {"slider_config": {"min": 0, "max": 100, "step": 1}}


def test_durations_wrap_past_midnight():
    assert parse_hhmm("07:30") == 450
    assert duration_minutes("08:00", "09:15") == 75
    assert duration_minutes("23:30", "00:15") == 45
    assert duration_minutes("08:00", None) is None
    assert format_duration(125) == "2:05:00"
    with pytest.raises(ValidationError):
        parse_hhmm("25:00")


def test_times_are_normalized_to_hh_mm():
    assert normalize_hhmm("7:05") == "07:05"
    assert normalize_hhmm("08:00:00") == "08:00"
    assert normalize_hhmm("  ") is None
    with pytest.raises(ValidationError):
        normalize_hhmm("8 Uhr", "fahrzeit_von")
