"""Summary views derived from filtered evaluation rows."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel

from thesiseval.engine.resolver import EvalRow, mean, round2


class ProgramTermSummary(BaseModel):
    program: str
    term: str
    eval_count: int
    avg: Optional[float] = None


class EvaluatorSummary(BaseModel):
    evaluator_id: str
    name: str
    role: str
    eval_count: int
    avg: Optional[float] = None


class StatusCount(BaseModel):
    status: str
    count: int


def bucket_average(rows: Iterable[EvalRow]) -> Optional[float]:
    """Mean of each row's weighted (else raw) average, skipping rows with neither."""
    value = mean(avg for avg in (row.effective_avg for row in rows) if avg is not None)
    return round2(value) if value is not None else None


def summarize_by_program_term(rows: Iterable[EvalRow]) -> List[ProgramTermSummary]:
    buckets: Dict[Tuple[str, str], List[EvalRow]] = {}
    for row in rows:
        buckets.setdefault((row.program, row.term), []).append(row)
    summaries = [
        ProgramTermSummary(program=program, term=term, eval_count=len(members), avg=bucket_average(members))
        for (program, term), members in buckets.items()
    ]
    summaries.sort(key=lambda item: (item.program, item.term))
    return summaries


def summarize_by_evaluator(rows: Iterable[EvalRow]) -> List[EvaluatorSummary]:
    buckets: Dict[str, List[EvalRow]] = {}
    for row in rows:
        buckets.setdefault(row.evaluator_id, []).append(row)
    summaries = [
        EvaluatorSummary(
            evaluator_id=evaluator_id,
            name=members[0].evaluator_name,
            role=members[0].evaluator_role,
            eval_count=len(members),
            avg=bucket_average(members),
        )
        for evaluator_id, members in buckets.items()
    ]
    summaries.sort(
        key=lambda item: (
            item.avg is None,
            -(item.avg or 0.0),
            item.name,
            item.evaluator_id,
        )
    )
    return summaries


def summarize_by_status(rows: Iterable[EvalRow]) -> List[StatusCount]:
    counts: Dict[str, int] = {}
    for row in rows:
        status = row.status or "unknown"
        counts[status] = counts.get(status, 0) + 1
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [StatusCount(status=status, count=count) for status, count in ordered]


__all__ = [
    "EvaluatorSummary",
    "ProgramTermSummary",
    "StatusCount",
    "bucket_average",
    "summarize_by_evaluator",
    "summarize_by_program_term",
    "summarize_by_status",
]
