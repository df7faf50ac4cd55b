"""
Core package for the thesis evaluation reporting engine.

The engine rebuilds per-evaluation scoring rows from the portal's REST
resources and derives the program and panelist summaries shown on the
admin reports screen.
"""

from importlib import metadata


def get_version() -> str:
    """Return the installed project version."""
    try:
        return metadata.version("thesiseval")
    except metadata.PackageNotFoundError:
        return "0.0.0"


__all__ = ["get_version"]
