"""Scoring, filtering, aggregation, and export over resolved evaluation rows."""

from .aggregate import (
    EvaluatorSummary,
    ProgramTermSummary,
    StatusCount,
    summarize_by_evaluator,
    summarize_by_program_term,
    summarize_by_status,
)
from .batch import fetch_all_tolerant
from .export import evaluations_csv, evaluator_summary_csv, export_filename, program_summary_csv, to_csv
from .filters import FilterOptions, FilterState, filter_options, filter_rows, resolve_date_range
from .resolver import EvalRow, ReportDataset, resolve_active_template_id, resolve_rows
from .weights import CriterionInfo, build_criterion_index

__all__ = [
    "CriterionInfo",
    "EvalRow",
    "EvaluatorSummary",
    "FilterOptions",
    "FilterState",
    "ProgramTermSummary",
    "ReportDataset",
    "StatusCount",
    "build_criterion_index",
    "evaluations_csv",
    "evaluator_summary_csv",
    "export_filename",
    "fetch_all_tolerant",
    "filter_options",
    "filter_rows",
    "program_summary_csv",
    "resolve_active_template_id",
    "resolve_date_range",
    "resolve_rows",
    "summarize_by_evaluator",
    "summarize_by_program_term",
    "summarize_by_status",
    "to_csv",
]
