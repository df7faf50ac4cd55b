from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from thesiseval.engine.filters import (
    FilterState,
    filter_options,
    filter_rows,
    parse_timestamp,
    resolve_date_range,
    row_matches,
)
from thesiseval.engine.resolver import UNSET, EvalRow


def _row(evaluation_id: str = "e-1", **overrides) -> EvalRow:
    base = {
        "evaluation_id": evaluation_id,
        "schedule_id": "s-1",
        "group_id": "g-1",
        "group_title": "Smart Campus Navigation",
        "program": "BSCS",
        "term": "AY 2025-2026",
        "scheduled_at": "2025-03-10T09:00:00",
        "room": "Room 301",
        "schedule_status": "completed",
        "evaluator_id": "u-1",
        "evaluator_name": "Dr. Ana Reyes",
        "evaluator_role": "staff",
        "panelist_names": "Dr. Ana Reyes, Carla Diaz",
        "status": "submitted",
    }
    base.update(overrides)
    return EvalRow(**base)


@pytest.mark.parametrize(
    "query",
    ["smart campus", "bscs", "2025-2026", "room 301", "COMPLETED", "ana reyes", "STAFF", "carla", "submitted"],
)
def test_text_matches_any_field_case_insensitively(query: str) -> None:
    assert row_matches(_row(), FilterState(text=query))


def test_text_without_match_excludes_row() -> None:
    assert not row_matches(_row(), FilterState(text="robotics"))


def test_blank_text_matches_everything() -> None:
    assert row_matches(_row(), FilterState(text="   "))


def test_program_and_term_are_exact_matches() -> None:
    row = _row()

    assert row_matches(row, FilterState(program="BSCS", term="AY 2025-2026"))
    assert not row_matches(row, FilterState(program="BSC"))
    assert not row_matches(row, FilterState(term="AY 2024-2025"))
    assert row_matches(row, FilterState(program="all", term="all"))


def test_sentinel_term_is_filterable() -> None:
    unset = _row("e-2", term=UNSET)

    assert row_matches(unset, FilterState(term=UNSET))
    assert not row_matches(_row(), FilterState(term=UNSET))


def test_blank_program_means_all() -> None:
    assert FilterState(program="", term=None).program == "all"


def test_date_bounds_are_inclusive_local_days() -> None:
    morning = _row(scheduled_at="2025-03-10T00:00:00")
    night = _row(scheduled_at="2025-03-10T23:59:59")
    next_day = _row(scheduled_at="2025-03-11T00:00:00")
    state = FilterState(from_date="2025-03-10", to_date="2025-03-10")

    assert row_matches(morning, state)
    assert row_matches(night, state)
    assert not row_matches(next_day, state)
    assert not row_matches(_row(scheduled_at="2025-03-09T23:59:59"), state)


def test_unparsable_schedule_time_fails_open() -> None:
    state = FilterState(from_date=date(2025, 1, 1), to_date=date(2025, 1, 31))

    assert row_matches(_row(scheduled_at="next tuesday"), state)
    assert row_matches(_row(scheduled_at=None), state)


def test_unparsable_bound_is_ignored() -> None:
    state = FilterState(from_date="not-a-date", to_date="2025-03-31")

    assert state.from_date is None
    assert row_matches(_row(scheduled_at="2020-01-01T10:00:00"), state)
    assert not row_matches(_row(scheduled_at="2025-04-01T10:00:00"), state)


def test_timezone_aware_timestamp_is_converted_to_local() -> None:
    aware = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)
    parsed = parse_timestamp("2025-03-10T12:00:00Z")

    assert parsed == aware.astimezone().replace(tzinfo=None)
    assert parsed.tzinfo is None


def test_filter_rows_preserves_order() -> None:
    rows = [_row("e-1"), _row("e-2", program="BSIT"), _row("e-3")]

    kept = filter_rows(rows, FilterState(program="BSCS"))

    assert [row.evaluation_id for row in kept] == ["e-1", "e-3"]
    assert filter_rows(rows, None) == rows


def test_filter_options_are_sorted_and_distinct() -> None:
    rows = [_row("e-1"), _row("e-2", program="BSIT", term=UNSET), _row("e-3", program="BSIT")]

    options = filter_options(rows)

    assert options.programs == ["BSCS", "BSIT"]
    assert options.terms == sorted({"AY 2025-2026", UNSET})


def test_resolve_date_range_uses_explicit_bounds() -> None:
    assert resolve_date_range("2025-01-01", "2025-02-01") == (date(2025, 1, 1), date(2025, 2, 1))


def test_resolve_date_range_builds_last_n_days_window() -> None:
    today = date(2025, 3, 31)

    assert resolve_date_range(days=7, today=today) == (date(2025, 3, 25), today)
    assert resolve_date_range(to_date="2025-03-10", days=1, today=today) == (date(2025, 3, 10), date(2025, 3, 10))


def test_resolve_date_range_clamps_days_and_recovers_from_bad_input() -> None:
    today = date(2025, 3, 31)

    start, end = resolve_date_range(days=10_000, today=today)
    assert (end - start).days == 364
    assert resolve_date_range(days="abc", today=today)[0] == date(2025, 3, 2)
    assert resolve_date_range("garbage", "2025-03-01", today=today) == (today, date(2025, 3, 1))


def test_resolve_date_range_treats_blank_bounds_as_missing() -> None:
    today = date(2025, 3, 31)

    assert resolve_date_range("   ", None, days=7, today=today) == (date(2025, 3, 25), today)
    assert resolve_date_range(" 2025-03-01 ", "  ", today=today) == (date(2025, 3, 1), today)


def test_resolve_date_range_unreadable_single_bound_falls_back_to_today() -> None:
    today = date(2025, 3, 31)

    assert resolve_date_range("03/01/2025", None, days=7, today=today) == (today, today)
    assert resolve_date_range(None, "soon", days=7, today=today) == (date(2025, 3, 25), today)
