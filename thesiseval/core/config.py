"""
Typed configuration for the reports engine.

The YAML layout mirrors the three concerns of a report load: where the
portal API lives, how the per-id sub-fetches are issued, and how the
resulting report is scoped and exported.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

API_BASE_ENV = "THESIS_PORTAL_API_BASE"
API_TOKEN_ENV = "THESIS_PORTAL_API_TOKEN"
TEMPLATE_ENV = "THESIS_REPORTS_TEMPLATE_ID"
DEFAULT_CONFIG_PATH = Path("config/reports.yaml")


class PortalAPIConfig(BaseModel):
    """Connection info for the thesis portal REST API."""

    model_config = ConfigDict(extra="ignore")

    base_url: str = Field(default="http://localhost:3000/api", description="Root of the portal API, e.g. https://portal/api")
    api_token: Optional[str] = Field(default=None, description="Bearer token forwarded on every request.")
    timeout: float = Field(default=30.0, gt=0)
    page_size: int = Field(default=200, ge=1, le=200)
    max_pages: int = Field(default=50, ge=1)

    @field_validator("base_url", mode="before")
    @classmethod
    def strip_base_url(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().rstrip("/")
        return value


class FetchConfig(BaseModel):
    """Knobs for the batched per-id sub-fetches."""

    model_config = ConfigDict(extra="ignore")

    max_concurrency: int | None = Field(default=8, ge=1, description="Upper bound on in-flight sub-fetches; null for unbounded.")
    request_timeout: float | None = Field(default=None, gt=0, description="Per sub-fetch timeout in seconds.")


class ReportSettings(BaseModel):
    """Report scoping and export defaults."""

    model_config = ConfigDict(extra="ignore")

    template_id: Optional[str] = Field(default=None, description="Pin the rubric template used for weighted averages.")
    export_prefix: str = Field(default="thesis-report")
    output_dir: Path = Field(default=Path("outputs/reports"))

    @field_validator("template_id", mode="before")
    @classmethod
    def blank_template_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        if isinstance(value, int):
            return str(value)
        return value.strip() if isinstance(value, str) else value

    @field_validator("output_dir", mode="before")
    @classmethod
    def coerce_path(cls, value: Any) -> Path:
        return Path(value).expanduser()


class ReportsConfig(BaseModel):
    """Top-level configuration for report loads."""

    api: PortalAPIConfig = Field(default_factory=PortalAPIConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    report: ReportSettings = Field(default_factory=ReportSettings)


def read_yaml_file(path: Path) -> Dict[str, Any]:
    """Load a YAML file and return a dictionary."""
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping at root of {path}, received {type(data)}")
    return data


def _apply_env_overrides(data: Dict[str, Any], env: Mapping[str, str]) -> Dict[str, Any]:
    payload = dict(data)
    api = dict(payload.get("api") or {})
    report = dict(payload.get("report") or {})
    if env.get(API_BASE_ENV):
        api["base_url"] = env[API_BASE_ENV]
    if env.get(API_TOKEN_ENV):
        api["api_token"] = env[API_TOKEN_ENV]
    if env.get(TEMPLATE_ENV):
        report["template_id"] = env[TEMPLATE_ENV]
    payload["api"] = api
    payload["report"] = report
    return payload


def load_reports_config(
    path: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> ReportsConfig:
    """Load the reports config from YAML (when present) and apply env overrides."""

    data: Dict[str, Any] = {}
    if path is not None:
        path = path.expanduser().resolve()
        data = read_yaml_file(path)
    payload = _apply_env_overrides(data, os.environ if env is None else env)
    try:
        return ReportsConfig.model_validate(payload)
    except ValidationError as exc:
        source = path if path is not None else "environment"
        raise ValueError(f"Invalid reports config in {source}") from exc


def merge_overrides(base: ReportsConfig, overrides: Dict[str, Dict[str, Any]]) -> ReportsConfig:
    """
    Return a new config with per-section overrides applied.

    Used by the CLI so flags such as --base-url or --template win over the file.
    """
    payload = base.model_dump()
    for section, values in overrides.items():
        cleaned = {key: value for key, value in values.items() if value is not None}
        if cleaned:
            payload.setdefault(section, {}).update(cleaned)
    try:
        return ReportsConfig.model_validate(payload)
    except ValidationError as exc:
        raise ValueError("Invalid overrides for ReportsConfig") from exc


__all__ = [
    "API_BASE_ENV",
    "API_TOKEN_ENV",
    "DEFAULT_CONFIG_PATH",
    "FetchConfig",
    "PortalAPIConfig",
    "ReportSettings",
    "ReportsConfig",
    "TEMPLATE_ENV",
    "load_reports_config",
    "merge_overrides",
    "read_yaml_file",
]
