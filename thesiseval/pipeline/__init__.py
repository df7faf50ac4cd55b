"""Report load orchestration: fetch, resolve, snapshot."""

from .loader import (
    ReportSession,
    ReportSnapshot,
    ReportView,
    build_snapshot,
    load_report_dataset,
    load_snapshot,
)

__all__ = [
    "ReportSession",
    "ReportSnapshot",
    "ReportView",
    "build_snapshot",
    "load_report_dataset",
    "load_snapshot",
]
