from __future__ import annotations

import pytest

from tests.mocks.portal_api import PortalAPIMock, dataset_from_payloads, sample_payloads
from thesiseval.client import ThesisPortalClient
from thesiseval.core.config import FetchConfig, PortalAPIConfig, ReportsConfig
from thesiseval.core.errors import ResourceLoadError
from thesiseval.engine.filters import FilterState
from thesiseval.engine.resolver import UNSET
from thesiseval.pipeline.loader import (
    ReportSession,
    build_snapshot,
    load_report_dataset,
    load_snapshot,
)


def _config(mock: PortalAPIMock, **report: object) -> ReportsConfig:
    return ReportsConfig.model_validate(
        {"api": {"base_url": mock.base_url, "page_size": 50}, "fetch": {"max_concurrency": 2}, "report": report}
    )


def _payloads_with_second_template() -> dict:
    payloads = sample_payloads()
    payloads["templates"].append({"id": "t-2", "name": "Legacy Rubric", "version": 1, "active": False})
    payloads["criteria"]["t-2"] = [{"id": "c-9", "templateId": "t-2", "criterion": "Documentation", "weight": "2"}]
    payloads["scores"]["e-1"].append({"evaluationId": "e-1", "criterionId": "c-9", "score": 1})
    return payloads


@pytest.mark.asyncio
async def test_load_snapshot_end_to_end() -> None:
    mock = PortalAPIMock()

    async with mock.build_async_client() as http_client:
        snapshot = await load_snapshot(_config(mock), http_client=http_client)

    assert snapshot.active_template_id == "t-1"
    assert [row.evaluation_id for row in snapshot.rows] == ["e-1", "e-2"]
    first, second = snapshot.rows
    assert first.panelist_names == "Dr. Ana Reyes, Carla Diaz"
    assert first.weighted_avg == 8.0
    assert second.program == "BSIT"
    assert second.term == UNSET
    assert snapshot.counts["rows"] == 2
    assert snapshot.counts["rosters"] == 2

    view = snapshot.view()
    assert [(item.program, item.avg) for item in view.by_program] == [("BSCS", 8.0), ("BSIT", 10.0)]
    assert view.options.programs == ["BSCS", "BSIT"]


@pytest.mark.asyncio
async def test_failed_roster_fetch_degrades_to_placeholder() -> None:
    mock = PortalAPIMock()
    mock.failing_ids["panelists"].add("s-1")

    async with mock.build_async_client() as http_client:
        snapshot = await load_snapshot(_config(mock), http_client=http_client)

    by_id = {row.evaluation_id: row for row in snapshot.rows}
    assert by_id["e-1"].panelist_names == UNSET
    assert by_id["e-2"].panelist_names == "Prof. Ben Cruz"
    assert snapshot.counts["rosters"] == 1


@pytest.mark.asyncio
async def test_failed_score_fetch_leaves_row_without_averages() -> None:
    mock = PortalAPIMock()
    mock.failing_ids["scores"].add("e-2")

    async with mock.build_async_client() as http_client:
        snapshot = await load_snapshot(_config(mock), http_client=http_client)

    by_id = {row.evaluation_id: row for row in snapshot.rows}
    assert by_id["e-2"].score_count == 0
    assert by_id["e-2"].raw_avg is None
    assert by_id["e-2"].weighted_avg is None
    assert by_id["e-1"].weighted_avg == 8.0


@pytest.mark.asyncio
async def test_failed_top_level_category_aborts_load() -> None:
    mock = PortalAPIMock()
    mock.failing_categories.add("users")

    async with mock.build_async_client() as http_client:
        with pytest.raises(ResourceLoadError) as excinfo:
            await load_snapshot(_config(mock), http_client=http_client)

    assert excinfo.value.category == "users"
    assert "users unavailable" in str(excinfo.value)
    assert not mock.requests_for("evaluation", "evaluationScores")


@pytest.mark.asyncio
async def test_sub_fetches_are_issued_once_per_id() -> None:
    mock = PortalAPIMock()

    async with mock.build_async_client() as http_client:
        client = ThesisPortalClient(PortalAPIConfig(base_url=mock.base_url), client=http_client)
        dataset = await load_report_dataset(client, fetch_config=FetchConfig(max_concurrency=1))

    assert sorted(entry["params"]["scheduleId"] for entry in mock.requests_for("schedule", "panelists")) == ["s-1", "s-2"]
    assert sorted(entry["params"]["evaluationId"] for entry in mock.requests_for("evaluation", "evaluationScores")) == [
        "e-1",
        "e-2",
    ]
    assert [entry["params"]["templateId"] for entry in mock.requests_for("evaluation", "rubricCriteria")] == ["t-1"]
    assert set(dataset.criteria_by_template) == {"t-1"}


@pytest.mark.asyncio
async def test_bearer_token_reaches_every_request() -> None:
    mock = PortalAPIMock(token="portal-secret")
    config = ReportsConfig.model_validate({"api": {"base_url": mock.base_url, "api_token": "portal-secret"}})

    async with mock.build_async_client() as http_client:
        snapshot = await load_snapshot(config, http_client=http_client)

    assert len(snapshot.rows) == 2
    assert {entry["authorization"] for entry in mock.requests} == {"Bearer portal-secret"}


@pytest.mark.asyncio
async def test_template_pinning_changes_weighted_averages() -> None:
    mock = PortalAPIMock(_payloads_with_second_template())

    async with mock.build_async_client() as http_client:
        default = await load_snapshot(_config(mock), http_client=http_client)
        pinned = await load_snapshot(_config(mock), template_id="t-2", http_client=http_client)
        from_config = await load_snapshot(_config(mock, template_id="t-2"), http_client=http_client)

    assert default.active_template_id == "t-1"
    assert default.rows[0].weighted_avg == 8.0
    assert default.rows[0].raw_avg == 5.67
    assert pinned.active_template_id == "t-2"
    assert pinned.rows[0].weighted_avg == 1.0
    assert pinned.rows[1].weighted_avg is None
    assert pinned.rows[1].effective_avg == 10.0
    assert from_config.active_template_id == "t-2"


def test_view_filters_rows_but_keeps_full_options() -> None:
    snapshot = build_snapshot(dataset_from_payloads())

    view = snapshot.view(FilterState(program="BSIT"))

    assert [row.evaluation_id for row in view.rows] == ["e-2"]
    assert view.options.programs == ["BSCS", "BSIT"]
    assert [(item.status, item.count) for item in view.by_status] == [("locked", 1)]
    assert view.to_csv("program-summary").splitlines()[1] == f"BSIT,{UNSET},1,10.00"
    with pytest.raises(ValueError):
        view.to_csv("audit")


@pytest.mark.asyncio
async def test_session_keeps_previous_snapshot_when_refresh_fails() -> None:
    first = build_snapshot(dataset_from_payloads())
    calls = {"count": 0}

    async def loader():
        calls["count"] += 1
        if calls["count"] > 1:
            raise ResourceLoadError("schedules", RuntimeError("timeout"))
        return first

    session = ReportSession(loader)
    assert session.snapshot is None
    assert await session.current() is first
    assert await session.current() is first
    assert calls["count"] == 1

    with pytest.raises(ResourceLoadError):
        await session.refresh()

    assert session.snapshot is first


@pytest.mark.asyncio
async def test_groups_beyond_one_page_still_resolve() -> None:
    payloads = sample_payloads()
    filler = [{"id": f"g-x{index}", "title": f"Filler {index}", "program": "BSCS"} for index in range(120)]
    payloads["groups"] = filler + payloads["groups"]
    mock = PortalAPIMock(payloads)

    async with mock.build_async_client() as http_client:
        snapshot = await load_snapshot(_config(mock), http_client=http_client)

    assert [row.evaluation_id for row in snapshot.rows] == ["e-1", "e-2"]
    assert snapshot.counts["groups"] == 122
    assert [entry["params"]["offset"] for entry in mock.requests_for("groups", "all")] == [0, 50, 100]
