"""Exceptions raised across the portal boundary."""

from __future__ import annotations


class PortalAPIError(RuntimeError):
    """A single REST call failed (transport, HTTP status, or `ok: false` body)."""

    def __init__(self, message: str, *, resource: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.resource = resource
        self.status_code = status_code


class ResourceLoadError(RuntimeError):
    """A whole top-level resource category could not be loaded.

    The load aborts when this is raised; per-id sub-fetch failures never
    surface as this error.
    """

    def __init__(self, category: str, cause: BaseException | None = None) -> None:
        detail = _describe(cause)
        super().__init__(f"Failed to load {category}: {detail}")
        self.category = category
        self.cause = cause


def _describe(cause: BaseException | None) -> str:
    if cause is None:
        return "unknown error"
    return str(cause) or type(cause).__name__


__all__ = ["PortalAPIError", "ResourceLoadError"]
