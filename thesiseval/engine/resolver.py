"""
Per-evaluation score resolution.

Joins each evaluation to its schedule, group, evaluator, panel roster, and
stored scores, producing one denormalized `EvalRow`. Orphaned evaluations
(no schedule or no group) are dropped rather than reported: they show up
while groups and schedules are being migrated.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from thesiseval.core.records import (
    Evaluation,
    EvaluationScore,
    Group,
    PanelistAssignment,
    RubricCriterion,
    RubricTemplate,
    Schedule,
    User,
    index_by_id,
)
from thesiseval.engine.weights import CriterionInfo, build_criterion_index

LOGGER = logging.getLogger("thesiseval.resolver")

UNSET = "—"


class EvalRow(BaseModel):
    """Denormalized scoring record for a single evaluation."""

    model_config = ConfigDict(frozen=True)

    evaluation_id: str
    schedule_id: str
    group_id: str
    group_title: str
    program: str
    term: str
    scheduled_at: Optional[str] = None
    room: Optional[str] = None
    schedule_status: str = ""
    evaluator_id: str
    evaluator_name: str = UNSET
    evaluator_email: Optional[str] = None
    evaluator_role: str = UNSET
    panelist_names: str = UNSET
    status: str = ""
    submitted_at: Optional[str] = None
    locked_at: Optional[str] = None
    score_count: int = 0
    raw_avg: Optional[float] = None
    weighted_avg: Optional[float] = None

    @property
    def effective_avg(self) -> Optional[float]:
        """Weighted average when available, otherwise the raw mean."""
        return self.weighted_avg if self.weighted_avg is not None else self.raw_avg


@dataclass(frozen=True)
class ReportDataset:
    """Everything one load fetched, before resolution.

    The per-id maps only contain ids whose sub-fetch succeeded.
    """

    groups: Sequence[Group] = ()
    schedules: Sequence[Schedule] = ()
    users: Sequence[User] = ()
    evaluations: Sequence[Evaluation] = ()
    templates: Sequence[RubricTemplate] = ()
    panelists_by_schedule: Mapping[str, Sequence[PanelistAssignment]] = field(default_factory=dict)
    scores_by_evaluation: Mapping[str, Sequence[EvaluationScore]] = field(default_factory=dict)
    criteria_by_template: Mapping[str, Sequence[RubricCriterion]] = field(default_factory=dict)


def round2(value: float) -> float:
    """Round half-up to two decimals."""
    return math.floor(value * 100 + 0.5) / 100


def mean(values: Iterable[float]) -> Optional[float]:
    items = list(values)
    if not items:
        return None
    return sum(items) / len(items)


def resolve_active_template_id(
    templates: Iterable[RubricTemplate],
    pinned: Optional[str] = None,
) -> Optional[str]:
    """Pinned id wins; otherwise the first active template; otherwise no filter."""
    if pinned:
        return pinned
    for template in templates:
        if template.active:
            return template.id
    return None


def _label(value: Optional[str]) -> str:
    if value is None:
        return UNSET
    cleaned = value.strip()
    return cleaned or UNSET


def _panelist_names(roster: Sequence[PanelistAssignment], users: Mapping[str, User]) -> str:
    names: List[str] = []
    for assignment in roster:
        user = users.get(assignment.staff_id)
        if user is None or not user.name or not user.name.strip():
            continue
        names.append(user.name.strip())
    return ", ".join(names) if names else UNSET


def _weighted_average(
    scores: Sequence[EvaluationScore],
    index: Mapping[str, CriterionInfo],
    template_id: Optional[str],
) -> Optional[float]:
    numerator = 0.0
    denominator = 0.0
    for entry in scores:
        info = index.get(entry.criterion_id)
        if info is None:
            continue
        if template_id is not None and info.template_id != template_id:
            continue
        numerator += entry.score * info.weight
        denominator += info.weight
    if denominator == 0:
        return None
    return round2(numerator / denominator)


def resolve_row(
    evaluation: Evaluation,
    *,
    schedules: Mapping[str, Schedule],
    groups: Mapping[str, Group],
    users: Mapping[str, User],
    panelists_by_schedule: Mapping[str, Sequence[PanelistAssignment]],
    scores_by_evaluation: Mapping[str, Sequence[EvaluationScore]],
    criterion_index: Mapping[str, CriterionInfo],
    template_id: Optional[str] = None,
) -> Optional[EvalRow]:
    schedule = schedules.get(evaluation.schedule_id)
    group = groups.get(schedule.group_id) if schedule is not None else None
    if schedule is None or group is None:
        LOGGER.debug(
            "Dropping orphaned evaluation",
            extra={
                "evaluation_id": evaluation.id,
                "schedule_id": evaluation.schedule_id,
                "missing": "schedule" if schedule is None else "group",
            },
        )
        return None

    scores = list(scores_by_evaluation.get(evaluation.id, ()))
    raw = mean(entry.score for entry in scores)
    evaluator = users.get(evaluation.evaluator_id)

    return EvalRow(
        evaluation_id=evaluation.id,
        schedule_id=schedule.id,
        group_id=group.id,
        group_title=group.title,
        program=_label(group.program),
        term=_label(group.term),
        scheduled_at=schedule.scheduled_at,
        room=schedule.room,
        schedule_status=schedule.status,
        evaluator_id=evaluation.evaluator_id,
        evaluator_name=(evaluator.display_name if evaluator else None) or UNSET,
        evaluator_email=evaluator.email if evaluator else None,
        evaluator_role=(evaluator.role if evaluator else "") or UNSET,
        panelist_names=_panelist_names(panelists_by_schedule.get(schedule.id, ()), users),
        status=evaluation.status,
        submitted_at=evaluation.submitted_at,
        locked_at=evaluation.locked_at,
        score_count=len(scores),
        raw_avg=round2(raw) if raw is not None else None,
        weighted_avg=_weighted_average(scores, criterion_index, template_id),
    )


def resolve_rows(dataset: ReportDataset, *, template_id: Optional[str] = None) -> List[EvalRow]:
    """Build one `EvalRow` per resolvable evaluation, in evaluation order.

    `template_id` pins the rubric template used for weighted averages; when
    omitted the dataset's active template applies, and with no active
    template every indexed criterion counts.
    """
    active_template = resolve_active_template_id(dataset.templates, template_id)
    criterion_index = build_criterion_index(dataset.criteria_by_template)
    schedules: Dict[str, Schedule] = index_by_id(dataset.schedules)
    groups: Dict[str, Group] = index_by_id(dataset.groups)
    users: Dict[str, User] = index_by_id(dataset.users)

    rows: List[EvalRow] = []
    for evaluation in dataset.evaluations:
        row = resolve_row(
            evaluation,
            schedules=schedules,
            groups=groups,
            users=users,
            panelists_by_schedule=dataset.panelists_by_schedule,
            scores_by_evaluation=dataset.scores_by_evaluation,
            criterion_index=criterion_index,
            template_id=active_template,
        )
        if row is not None:
            rows.append(row)

    LOGGER.info(
        "Resolved %d of %d evaluations",
        len(rows),
        len(dataset.evaluations),
        extra={"template_id": active_template},
    )
    return rows


__all__ = [
    "EvalRow",
    "ReportDataset",
    "UNSET",
    "mean",
    "resolve_active_template_id",
    "resolve_row",
    "resolve_rows",
    "round2",
]
