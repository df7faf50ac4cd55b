"""CLI for loading, summarizing, and exporting thesis evaluation reports."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from thesiseval.core.config import DEFAULT_CONFIG_PATH, ReportsConfig, load_reports_config, merge_overrides
from thesiseval.core.errors import ResourceLoadError
from thesiseval.engine.export import EXPORT_FLAVORS, export_filename
from thesiseval.engine.filters import FilterState, parse_date
from thesiseval.pipeline.loader import ReportSnapshot, ReportView, load_snapshot

app = typer.Typer(help="Evaluation scoring reports for the thesis portal.")
console = Console()


def _check_date(value: Optional[str]) -> Optional[str]:
    if value is not None and value.strip() and parse_date(value) is None:
        raise typer.BadParameter(f"Expected YYYY-MM-DD, got {value!r}")
    return value


ConfigOption = typer.Option(None, "--config", help=f"Reports YAML (default: {DEFAULT_CONFIG_PATH} when present).")
BaseUrlOption = typer.Option(None, "--base-url", help="Portal API root; overrides the config file.")
TokenOption = typer.Option(None, "--token", envvar="THESIS_PORTAL_API_TOKEN", help="Bearer token for the portal API.")
TemplateOption = typer.Option(None, "--template", help="Pin the rubric template used for weighted averages.")
TextOption = typer.Option("", "--text", help="Case-insensitive search across group, room, evaluator, panel, status.")
ProgramOption = typer.Option("all", "--program", help="Exact program to keep ('all' disables).")
TermOption = typer.Option("all", "--term", help="Exact term to keep ('all' disables).")
FromOption = typer.Option(None, "--from", callback=_check_date, help="Earliest schedule date, YYYY-MM-DD (inclusive).")
ToOption = typer.Option(None, "--to", callback=_check_date, help="Latest schedule date, YYYY-MM-DD (inclusive).")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _resolve_config(config_path: Optional[Path], base_url: Optional[str], token: Optional[str]) -> ReportsConfig:
    if config_path is None and DEFAULT_CONFIG_PATH.exists():
        config_path = DEFAULT_CONFIG_PATH
    if config_path is not None and not config_path.exists():
        raise typer.BadParameter(f"Config file not found at {config_path}", param_hint="--config")
    try:
        config = load_reports_config(config_path)
        return merge_overrides(config, {"api": {"base_url": base_url, "api_token": token}})
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc


def _load_view(config: ReportsConfig, template: Optional[str], filters: FilterState) -> tuple[ReportSnapshot, ReportView]:
    try:
        snapshot = asyncio.run(load_snapshot(config, template_id=template))
    except ResourceLoadError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1) from exc
    return snapshot, snapshot.view(filters)


def _fmt(value: Optional[float]) -> str:
    return "—" if value is None else f"{value:.2f}"


def _render_program_table(view: ReportView) -> Table:
    table = Table(title="Program × Term", show_header=True)
    table.add_column("Program")
    table.add_column("Term")
    table.add_column("Evaluations", justify="right")
    table.add_column("Average", justify="right")
    for bucket in view.by_program:
        table.add_row(bucket.program, bucket.term, str(bucket.eval_count), _fmt(bucket.avg))
    return table


def _render_evaluator_table(view: ReportView) -> Table:
    table = Table(title="Panelists", show_header=True)
    table.add_column("Name")
    table.add_column("Role")
    table.add_column("Evaluations", justify="right")
    table.add_column("Average", justify="right")
    for bucket in view.by_evaluator:
        table.add_row(bucket.name, bucket.role, str(bucket.eval_count), _fmt(bucket.avg))
    return table


@app.command()
def summary(
    config_path: Optional[Path] = ConfigOption,
    base_url: Optional[str] = BaseUrlOption,
    token: Optional[str] = TokenOption,
    template: Optional[str] = TemplateOption,
    text: str = TextOption,
    program: str = ProgramOption,
    term: str = TermOption,
    from_date: Optional[str] = FromOption,
    to_date: Optional[str] = ToOption,
    verbose: bool = VerboseOption,
) -> None:
    """Print the program and panelist summaries for the filtered rows."""

    _configure_logging(verbose)
    config = _resolve_config(config_path, base_url, token)
    filters = FilterState(text=text, program=program, term=term, from_date=from_date, to_date=to_date)
    snapshot, view = _load_view(config, template, filters)

    console.print(_render_program_table(view))
    console.print(_render_evaluator_table(view))
    template_note = snapshot.active_template_id or "none (all criteria)"
    console.print(
        f"[green]{len(view.rows)} of {len(snapshot.rows)} evaluations shown[/green] · template: {template_note}"
    )


@app.command()
def export(
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", help="Directory for the CSV files."),
    prefix: Optional[str] = typer.Option(None, "--prefix", help="Filename prefix (default from config)."),
    config_path: Optional[Path] = ConfigOption,
    base_url: Optional[str] = BaseUrlOption,
    token: Optional[str] = TokenOption,
    template: Optional[str] = TemplateOption,
    text: str = TextOption,
    program: str = ProgramOption,
    term: str = TermOption,
    from_date: Optional[str] = FromOption,
    to_date: Optional[str] = ToOption,
    verbose: bool = VerboseOption,
) -> None:
    """Write the evaluations, program summary, and panelist summary CSVs."""

    _configure_logging(verbose)
    config = _resolve_config(config_path, base_url, token)
    filters = FilterState(text=text, program=program, term=term, from_date=from_date, to_date=to_date)
    _, view = _load_view(config, template, filters)

    target_dir = (output_dir or config.report.output_dir).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    file_prefix = prefix or config.report.export_prefix

    table = Table(title="CSV Exports", show_header=True)
    table.add_column("Flavor")
    table.add_column("Path")
    for flavor in EXPORT_FLAVORS:
        path = target_dir / export_filename(file_prefix, flavor)
        path.write_text(view.to_csv(flavor), encoding="utf-8")
        table.add_row(flavor, str(path))
    console.print(table)


if __name__ == "__main__":
    app()
