"""Row filtering for the reports screen.

`FilterState` is an immutable value: each UI change builds a new state and
the rows are re-filtered from scratch.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from thesiseval.engine.resolver import EvalRow

ALL = "all"
DEFAULT_RANGE_DAYS = 30
END_OF_DAY = time(23, 59, 59)


def parse_date(value: Any) -> Optional[date]:
    """Parse a YYYY-MM-DD value; anything else yields None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into naive local time, or None."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


class FilterState(BaseModel):
    """Current filter selection."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    program: str = ALL
    term: str = ALL
    from_date: Optional[date] = Field(default=None, description="Inclusive lower bound, local midnight.")
    to_date: Optional[date] = Field(default=None, description="Inclusive upper bound, local 23:59:59.")

    @field_validator("text", mode="before")
    @classmethod
    def _normalize_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("program", "term", mode="before")
    @classmethod
    def _blank_is_all(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return ALL
        return value

    @field_validator("from_date", "to_date", mode="before")
    @classmethod
    def _lenient_date(cls, value: Any) -> Optional[date]:
        # An unreadable bound disables itself instead of rejecting the filter.
        return parse_date(value)


def _haystack(row: EvalRow) -> str:
    parts = (
        row.group_title,
        row.program,
        row.term,
        row.room,
        row.schedule_status,
        row.evaluator_name,
        row.evaluator_role,
        row.panelist_names,
        row.status,
    )
    return " ".join(part for part in parts if part).lower()


def row_matches(row: EvalRow, state: FilterState) -> bool:
    query = state.text.strip().lower()
    if query and query not in _haystack(row):
        return False
    if state.program != ALL and row.program != state.program:
        return False
    if state.term != ALL and row.term != state.term:
        return False

    if state.from_date is not None or state.to_date is not None:
        scheduled = parse_timestamp(row.scheduled_at)
        # Unparsable schedule times stay visible under a date filter.
        if scheduled is not None:
            if state.from_date is not None and scheduled < datetime.combine(state.from_date, time.min):
                return False
            if state.to_date is not None and scheduled > datetime.combine(state.to_date, END_OF_DAY):
                return False
    return True


def filter_rows(rows: Iterable[EvalRow], state: FilterState | None = None) -> List[EvalRow]:
    if state is None:
        return list(rows)
    return [row for row in rows if row_matches(row, state)]


def _bound_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def resolve_date_range(
    from_date: Any = None,
    to_date: Any = None,
    *,
    days: Any = DEFAULT_RANGE_DAYS,
    today: date | None = None,
) -> Tuple[date, date]:
    """
    Normalize a report date range.

    Both bounds given: used as-is. Otherwise the window is the last `days`
    days (clamped to 1..365, inclusive) ending at `to_date` or today.
    Blank bounds count as missing; unreadable ones fall back to today.
    """
    current = today or date.today()
    from_text = _bound_text(from_date)
    to_text = _bound_text(to_date)
    start = (parse_date(from_text) or current) if from_text else None
    end = (parse_date(to_text) or current) if to_text else None
    if start is not None and end is not None:
        return start, end

    try:
        span = int(days)
    except (TypeError, ValueError):
        span = DEFAULT_RANGE_DAYS
    span = min(max(span, 1), 365)

    end = end or current
    if start is None:
        start = end - timedelta(days=span - 1)
    return start, end


class FilterOptions(BaseModel):
    """Distinct values offered by the program and term dropdowns."""

    programs: List[str] = Field(default_factory=list)
    terms: List[str] = Field(default_factory=list)


def filter_options(rows: Iterable[EvalRow]) -> FilterOptions:
    programs: set[str] = set()
    terms: set[str] = set()
    for row in rows:
        programs.add(row.program)
        terms.add(row.term)
    return FilterOptions(programs=sorted(programs), terms=sorted(terms))


__all__ = [
    "ALL",
    "FilterOptions",
    "FilterState",
    "filter_options",
    "filter_rows",
    "parse_date",
    "parse_timestamp",
    "resolve_date_range",
    "row_matches",
]
