"""
Full report load: fetch every resource, resolve rows, publish a snapshot.

A load is all-or-nothing at the category level. If groups, schedules,
users, evaluations, or rubric templates cannot be fetched the load raises
`ResourceLoadError` and no snapshot is produced. Per-id sub-fetches (panel
rosters, score lists, criteria lists) tolerate individual failures.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx

from thesiseval.client import ThesisPortalClient
from thesiseval.core.config import FetchConfig, ReportsConfig
from thesiseval.core.errors import ResourceLoadError
from thesiseval.engine.aggregate import (
    EvaluatorSummary,
    ProgramTermSummary,
    StatusCount,
    summarize_by_evaluator,
    summarize_by_program_term,
    summarize_by_status,
)
from thesiseval.engine.batch import fetch_all_tolerant
from thesiseval.engine.export import evaluations_csv, evaluator_summary_csv, program_summary_csv
from thesiseval.engine.filters import FilterOptions, FilterState, filter_options, filter_rows
from thesiseval.engine.resolver import EvalRow, ReportDataset, resolve_active_template_id, resolve_rows

LOGGER = logging.getLogger("thesiseval.loader")

TOP_LEVEL_CATEGORIES = ("groups", "schedules", "users", "evaluations", "templates")


async def _load_category(category: str, fetch: Callable[[], Awaitable[List[Any]]]) -> List[Any]:
    try:
        return await fetch()
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        raise ResourceLoadError(category, exc) from exc


async def load_report_dataset(
    client: ThesisPortalClient,
    *,
    fetch_config: FetchConfig | None = None,
) -> ReportDataset:
    """Fetch the top-level collections, then the per-id sub-resources."""

    fetch_config = fetch_config or FetchConfig()
    loaders = {
        "groups": client.list_groups,
        "schedules": client.list_schedules,
        "users": client.list_users,
        "evaluations": client.list_evaluations,
        "templates": client.list_rubric_templates,
    }
    outcomes = await asyncio.gather(
        *(_load_category(name, loaders[name]) for name in TOP_LEVEL_CATEGORIES),
        return_exceptions=True,
    )
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            LOGGER.error("Report load aborted: %s", outcome)
            raise outcome
    groups, schedules, users, evaluations, templates = outcomes

    batch_options = {
        "max_concurrency": fetch_config.max_concurrency,
        "timeout": fetch_config.request_timeout,
    }
    panelists, scores, criteria = await asyncio.gather(
        fetch_all_tolerant(
            [schedule.id for schedule in schedules],
            client.list_panelists,
            label="panelists",
            **batch_options,
        ),
        fetch_all_tolerant(
            [evaluation.id for evaluation in evaluations],
            client.list_scores,
            label="scores",
            **batch_options,
        ),
        fetch_all_tolerant(
            [template.id for template in templates],
            client.list_criteria,
            label="criteria",
            **batch_options,
        ),
    )

    return ReportDataset(
        groups=tuple(groups),
        schedules=tuple(schedules),
        users=tuple(users),
        evaluations=tuple(evaluations),
        templates=tuple(templates),
        panelists_by_schedule=panelists,
        scores_by_evaluation=scores,
        criteria_by_template=criteria,
    )


@dataclass(frozen=True)
class ReportView:
    """Filtered rows plus the summaries derived from them."""

    filters: FilterState
    rows: Sequence[EvalRow]
    by_program: Sequence[ProgramTermSummary]
    by_evaluator: Sequence[EvaluatorSummary]
    by_status: Sequence[StatusCount]
    options: FilterOptions

    def to_csv(self, flavor: str) -> str:
        if flavor == "evaluations":
            return evaluations_csv(self.rows)
        if flavor == "program-summary":
            return program_summary_csv(self.by_program)
        if flavor == "panelist-summary":
            return evaluator_summary_csv(self.by_evaluator)
        raise ValueError(f"Unknown export flavor: {flavor}")


@dataclass(frozen=True)
class ReportSnapshot:
    """Immutable result of one load; replaced wholesale on refresh."""

    rows: Sequence[EvalRow]
    active_template_id: Optional[str]
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    counts: Dict[str, int] = field(default_factory=dict)

    def view(self, filters: FilterState | None = None) -> ReportView:
        state = filters or FilterState()
        rows = filter_rows(self.rows, state)
        return ReportView(
            filters=state,
            rows=tuple(rows),
            by_program=tuple(summarize_by_program_term(rows)),
            by_evaluator=tuple(summarize_by_evaluator(rows)),
            by_status=tuple(summarize_by_status(rows)),
            options=filter_options(self.rows),
        )


def build_snapshot(dataset: ReportDataset, *, template_id: Optional[str] = None) -> ReportSnapshot:
    active = resolve_active_template_id(dataset.templates, template_id)
    rows = resolve_rows(dataset, template_id=active)
    counts = {
        "groups": len(dataset.groups),
        "schedules": len(dataset.schedules),
        "users": len(dataset.users),
        "evaluations": len(dataset.evaluations),
        "templates": len(dataset.templates),
        "rosters": len(dataset.panelists_by_schedule),
        "score_lists": len(dataset.scores_by_evaluation),
        "criteria_lists": len(dataset.criteria_by_template),
        "rows": len(rows),
    }
    return ReportSnapshot(rows=tuple(rows), active_template_id=active, counts=counts)


async def load_snapshot(
    config: ReportsConfig,
    *,
    template_id: Optional[str] = None,
    http_client: httpx.AsyncClient | None = None,
) -> ReportSnapshot:
    """Run a full load against the configured portal."""

    pinned = template_id or config.report.template_id
    async with ThesisPortalClient(config.api, client=http_client) as client:
        dataset = await load_report_dataset(client, fetch_config=config.fetch)
    snapshot = build_snapshot(dataset, template_id=pinned)
    LOGGER.info(
        "Report snapshot loaded",
        extra={"rows": len(snapshot.rows), "template_id": snapshot.active_template_id},
    )
    return snapshot


class ReportSession:
    """Holds the current snapshot; `refresh` swaps in a fully rebuilt one.

    A failed refresh raises and leaves the previous snapshot untouched.
    """

    def __init__(self, loader: Callable[[], Awaitable[ReportSnapshot]]) -> None:
        self._loader = loader
        self._snapshot: ReportSnapshot | None = None

    @property
    def snapshot(self) -> ReportSnapshot | None:
        return self._snapshot

    async def refresh(self) -> ReportSnapshot:
        snapshot = await self._loader()
        self._snapshot = snapshot
        return snapshot

    async def current(self) -> ReportSnapshot:
        if self._snapshot is None:
            return await self.refresh()
        return self._snapshot


__all__ = [
    "ReportSession",
    "ReportSnapshot",
    "ReportView",
    "TOP_LEVEL_CATEGORIES",
    "build_snapshot",
    "load_report_dataset",
    "load_snapshot",
]
