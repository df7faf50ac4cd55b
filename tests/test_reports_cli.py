from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

from tests.mocks.portal_api import dataset_from_payloads
from thesiseval.cli import reports
from thesiseval.core.errors import ResourceLoadError
from thesiseval.pipeline.loader import build_snapshot

runner = CliRunner()


@pytest.fixture()
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "reports.yaml"
    path.write_text(
        "api:\n  base_url: http://portal.invalid/api\nreport:\n  export_prefix: q1-report\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture()
def captured_loads(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    async def fake_load_snapshot(config, *, template_id=None, http_client=None):
        calls.append({"config": config, "template_id": template_id})
        return build_snapshot(dataset_from_payloads(), template_id=template_id)

    monkeypatch.setattr(reports, "load_snapshot", fake_load_snapshot)
    return calls


def test_summary_prints_tables(config_file: Path, captured_loads: list[dict[str, Any]]) -> None:
    result = runner.invoke(reports.app, ["summary", "--config", str(config_file)])

    assert result.exit_code == 0, result.output
    assert "BSCS" in result.output
    assert "Prof. Ben Cruz" in result.output
    assert "2 of 2 evaluations shown" in result.output
    assert captured_loads[0]["config"].api.base_url == "http://portal.invalid/api"


def test_summary_applies_filters_and_overrides(config_file: Path, captured_loads: list[dict[str, Any]]) -> None:
    result = runner.invoke(
        reports.app,
        [
            "summary",
            "--config",
            str(config_file),
            "--program",
            "BSIT",
            "--base-url",
            "http://override.invalid/api/",
            "--template",
            "t-1",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "1 of 2 evaluations shown" in result.output
    assert captured_loads[0]["template_id"] == "t-1"
    assert captured_loads[0]["config"].api.base_url == "http://override.invalid/api"


def test_export_writes_three_csvs(tmp_path: Path, config_file: Path, captured_loads: list[dict[str, Any]]) -> None:
    out_dir = tmp_path / "exports"

    result = runner.invoke(reports.app, ["export", "--config", str(config_file), "--output-dir", str(out_dir)])

    assert result.exit_code == 0, result.output
    assert sorted(path.name for path in out_dir.iterdir()) == [
        "q1-report-evaluations.csv",
        "q1-report-panelist-summary.csv",
        "q1-report-program-summary.csv",
    ]
    evaluations = (out_dir / "q1-report-evaluations.csv").read_text(encoding="utf-8").splitlines()
    assert evaluations[0].startswith("Evaluation ID,Group,Program,Term")
    assert len(evaluations) == 3


def test_export_prefix_flag_wins(tmp_path: Path, config_file: Path, captured_loads: list[dict[str, Any]]) -> None:
    out_dir = tmp_path / "exports"

    result = runner.invoke(
        reports.app,
        ["export", "--config", str(config_file), "--output-dir", str(out_dir), "--prefix", "adhoc"],
    )

    assert result.exit_code == 0, result.output
    assert (out_dir / "adhoc-program-summary.csv").exists()


def test_load_failure_exits_non_zero(config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    async def failing_load(config, *, template_id=None, http_client=None):
        raise ResourceLoadError("users", RuntimeError("portal offline"))

    monkeypatch.setattr(reports, "load_snapshot", failing_load)

    result = runner.invoke(reports.app, ["summary", "--config", str(config_file)])

    assert result.exit_code == 1
    assert "Failed to load users" in result.output


def test_missing_config_is_rejected(tmp_path: Path, captured_loads: list[dict[str, Any]]) -> None:
    result = runner.invoke(reports.app, ["summary", "--config", str(tmp_path / "missing.yaml")])

    assert result.exit_code != 0
    assert not captured_loads


@pytest.mark.parametrize("flag", ["--from", "--to"])
def test_malformed_date_flag_is_rejected(config_file: Path, captured_loads: list[dict[str, Any]], flag: str) -> None:
    result = runner.invoke(reports.app, ["summary", "--config", str(config_file), flag, "10/03/2025"])

    assert result.exit_code == 2
    assert not captured_loads


def test_date_flags_narrow_the_summary(config_file: Path, captured_loads: list[dict[str, Any]]) -> None:
    result = runner.invoke(
        reports.app,
        ["summary", "--config", str(config_file), "--from", "2025-03-11", "--to", "2025-03-31"],
    )

    assert result.exit_code == 0, result.output
    assert "1 of 2 evaluations shown" in result.output
