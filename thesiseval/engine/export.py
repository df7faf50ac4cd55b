"""CSV serialization for evaluation rows and summaries."""

from __future__ import annotations

from typing import Any, Callable, Iterable, List, Sequence, Tuple

from thesiseval.engine.aggregate import EvaluatorSummary, ProgramTermSummary
from thesiseval.engine.resolver import EvalRow

CSV_MIME = "text/csv;charset=utf-8"
_NEEDS_QUOTING = ('"', ",", "\n", "\r")

EXPORT_FLAVORS: Tuple[str, ...] = ("evaluations", "program-summary", "panelist-summary")


def escape_csv_field(value: Any) -> str:
    """Quote a field only when it contains a quote, comma, or line break."""
    if value is None:
        return ""
    text = value if isinstance(value, str) else str(value)
    if any(marker in text for marker in _NEEDS_QUOTING):
        return '"' + text.replace('"', '""') + '"'
    return text


def to_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    lines = [",".join(escape_csv_field(header) for header in headers)]
    lines.extend(",".join(escape_csv_field(value) for value in row) for row in rows)
    return "\n".join(lines)


def _fmt_avg(value: float | None) -> str:
    return "" if value is None else f"{value:.2f}"


Column = Tuple[str, Callable[[Any], Any]]

EVALUATION_COLUMNS: List[Column] = [
    ("Evaluation ID", lambda row: row.evaluation_id),
    ("Group", lambda row: row.group_title),
    ("Program", lambda row: row.program),
    ("Term", lambda row: row.term),
    ("Scheduled At", lambda row: row.scheduled_at),
    ("Room", lambda row: row.room),
    ("Schedule Status", lambda row: row.schedule_status),
    ("Evaluator", lambda row: row.evaluator_name),
    ("Evaluator Email", lambda row: row.evaluator_email),
    ("Evaluator Role", lambda row: row.evaluator_role),
    ("Panelists", lambda row: row.panelist_names),
    ("Status", lambda row: row.status),
    ("Submitted At", lambda row: row.submitted_at),
    ("Locked At", lambda row: row.locked_at),
    ("Scores", lambda row: row.score_count),
    ("Raw Avg", lambda row: _fmt_avg(row.raw_avg)),
    ("Weighted Avg", lambda row: _fmt_avg(row.weighted_avg)),
]

PROGRAM_SUMMARY_COLUMNS: List[Column] = [
    ("Program", lambda item: item.program),
    ("Term", lambda item: item.term),
    ("Evaluations", lambda item: item.eval_count),
    ("Average", lambda item: _fmt_avg(item.avg)),
]

EVALUATOR_SUMMARY_COLUMNS: List[Column] = [
    ("Evaluator ID", lambda item: item.evaluator_id),
    ("Name", lambda item: item.name),
    ("Role", lambda item: item.role),
    ("Evaluations", lambda item: item.eval_count),
    ("Average", lambda item: _fmt_avg(item.avg)),
]


def _render(columns: Sequence[Column], items: Iterable[Any]) -> str:
    headers = [header for header, _ in columns]
    return to_csv(headers, ([getter(item) for _, getter in columns] for item in items))


def evaluations_csv(rows: Iterable[EvalRow]) -> str:
    return _render(EVALUATION_COLUMNS, rows)


def program_summary_csv(buckets: Iterable[ProgramTermSummary]) -> str:
    return _render(PROGRAM_SUMMARY_COLUMNS, buckets)


def evaluator_summary_csv(buckets: Iterable[EvaluatorSummary]) -> str:
    return _render(EVALUATOR_SUMMARY_COLUMNS, buckets)


def export_filename(prefix: str, flavor: str) -> str:
    """`<prefix>-evaluations.csv`, `<prefix>-program-summary.csv`, or `<prefix>-panelist-summary.csv`."""
    if flavor not in EXPORT_FLAVORS:
        raise ValueError(f"Unknown export flavor: {flavor}")
    cleaned = prefix.strip().strip("-") or "report"
    return f"{cleaned}-{flavor}.csv"


__all__ = [
    "CSV_MIME",
    "EVALUATION_COLUMNS",
    "EVALUATOR_SUMMARY_COLUMNS",
    "EXPORT_FLAVORS",
    "PROGRAM_SUMMARY_COLUMNS",
    "escape_csv_field",
    "evaluations_csv",
    "evaluator_summary_csv",
    "export_filename",
    "program_summary_csv",
    "to_csv",
]
