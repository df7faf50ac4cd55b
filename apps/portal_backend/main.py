from __future__ import annotations

import logging
import os
from datetime import date, datetime
from functools import lru_cache
from pathlib import Path
from typing import Dict, List

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, Field

from thesiseval.core.config import DEFAULT_CONFIG_PATH, load_reports_config
from thesiseval.core.errors import ResourceLoadError
from thesiseval.engine.aggregate import EvaluatorSummary, ProgramTermSummary, StatusCount
from thesiseval.engine.export import CSV_MIME, EXPORT_FLAVORS, export_filename
from thesiseval.engine.filters import FilterOptions, FilterState
from thesiseval.engine.resolver import EvalRow
from thesiseval.pipeline.loader import ReportSession, ReportSnapshot, ReportView, load_snapshot

REPO_ROOT = Path(__file__).resolve().parents[2]
LOGGER = logging.getLogger("thesiseval.portal_backend")


class PortalSettings(BaseModel):
    """Runtime configuration for the reports backend."""

    config_path: Path | None = Field(default=None)
    export_prefix: str | None = Field(default=None, description="Overrides report.export_prefix for downloads.")


@lru_cache
def get_settings() -> PortalSettings:
    raw = os.getenv("REPORTS_CONFIG_PATH")
    if raw:
        return PortalSettings(config_path=Path(raw).expanduser().resolve())
    default = (REPO_ROOT / DEFAULT_CONFIG_PATH).resolve()
    return PortalSettings(config_path=default if default.exists() else None)


@lru_cache
def get_session() -> ReportSession:
    settings = get_settings()
    config = load_reports_config(settings.config_path)

    async def _load() -> ReportSnapshot:
        return await load_snapshot(config)

    return ReportSession(_load)


def get_export_prefix(settings: PortalSettings = Depends(get_settings)) -> str:
    if settings.export_prefix:
        return settings.export_prefix
    return load_reports_config(settings.config_path).report.export_prefix


class HealthResponse(BaseModel):
    status: str
    loaded_at: datetime | None = None
    row_count: int | None = None


class EvaluationsResponse(BaseModel):
    total: int
    filtered: int
    active_template_id: str | None = None
    loaded_at: datetime
    rows: List[EvalRow]
    options: FilterOptions
    by_status: List[StatusCount] = Field(default_factory=list)


class RefreshResponse(BaseModel):
    status: str
    loaded_at: datetime
    counts: Dict[str, int] = Field(default_factory=dict)


app = FastAPI(title="Thesis Evaluation Reports API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_filters(
    text: str = Query("", description="Case-insensitive search across row fields"),
    program: str = Query("all"),
    term: str = Query("all"),
    from_date: str | None = Query(None, alias="from", description="YYYY-MM-DD, inclusive"),
    to_date: str | None = Query(None, alias="to", description="YYYY-MM-DD, inclusive"),
) -> FilterState:
    return FilterState(text=text, program=program, term=term, from_date=from_date, to_date=to_date)


async def _snapshot(session: ReportSession) -> ReportSnapshot:
    try:
        return await session.current()
    except ResourceLoadError as exc:
        LOGGER.error("Report load failed", extra={"category": exc.category})
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@app.get("/health", response_model=HealthResponse)
def health(session: ReportSession = Depends(get_session)) -> HealthResponse:
    snapshot = session.snapshot
    if snapshot is None:
        return HealthResponse(status="ok")
    return HealthResponse(status="ok", loaded_at=snapshot.loaded_at, row_count=len(snapshot.rows))


@app.post("/reports/refresh", response_model=RefreshResponse)
async def refresh(session: ReportSession = Depends(get_session)) -> RefreshResponse:
    try:
        snapshot = await session.refresh()
    except ResourceLoadError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return RefreshResponse(status="ok", loaded_at=snapshot.loaded_at, counts=snapshot.counts)


@app.get("/reports/evaluations", response_model=EvaluationsResponse)
async def list_evaluations(
    filters: FilterState = Depends(get_filters),
    session: ReportSession = Depends(get_session),
) -> EvaluationsResponse:
    snapshot = await _snapshot(session)
    view = snapshot.view(filters)
    return EvaluationsResponse(
        total=len(snapshot.rows),
        filtered=len(view.rows),
        active_template_id=snapshot.active_template_id,
        loaded_at=snapshot.loaded_at,
        rows=list(view.rows),
        options=view.options,
        by_status=list(view.by_status),
    )


@app.get("/reports/program-summary", response_model=List[ProgramTermSummary])
async def program_summary(
    filters: FilterState = Depends(get_filters),
    session: ReportSession = Depends(get_session),
) -> List[ProgramTermSummary]:
    view = (await _snapshot(session)).view(filters)
    return list(view.by_program)


@app.get("/reports/panelist-summary", response_model=List[EvaluatorSummary])
async def panelist_summary(
    filters: FilterState = Depends(get_filters),
    session: ReportSession = Depends(get_session),
) -> List[EvaluatorSummary]:
    view = (await _snapshot(session)).view(filters)
    return list(view.by_evaluator)


@app.get("/reports/export/{flavor}.csv")
async def export_csv(
    flavor: str,
    filters: FilterState = Depends(get_filters),
    session: ReportSession = Depends(get_session),
    prefix: str = Depends(get_export_prefix),
) -> Response:
    if flavor not in EXPORT_FLAVORS:
        raise HTTPException(status_code=404, detail=f"Unknown export '{flavor}'")
    view: ReportView = (await _snapshot(session)).view(filters)
    filename = export_filename(f"{prefix}-{date.today().isoformat()}", flavor)
    return Response(
        content=view.to_csv(flavor),
        media_type=CSV_MIME,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
