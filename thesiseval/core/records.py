"""
Typed records for the portal's REST resources.

Payloads arrive as loosely shaped JSON (camelCase from the API layer,
snake_case straight from the database rows). Each resource is validated
into an explicit model here; items that do not validate are skipped so
nothing untyped reaches the scoring engine.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, List, Type, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

LOGGER = logging.getLogger("thesiseval.records")

DEFAULT_WEIGHT = 1.0

RecordT = TypeVar("RecordT", bound=BaseModel)


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


@dataclass(frozen=True, slots=True)
class CriterionWeight:
    """Numeric multiplier for a rubric criterion.

    The store keeps weights as text. `coerce` is the only constructor used at
    the ingestion boundary and never raises: unparsable, missing, or
    non-finite values fall back to 1.
    """

    value: float = DEFAULT_WEIGHT

    @classmethod
    def coerce(cls, raw: Any) -> "CriterionWeight":
        if isinstance(raw, CriterionWeight):
            return raw
        if isinstance(raw, bool) or raw is None:
            return cls(DEFAULT_WEIGHT)
        if isinstance(raw, str):
            raw = raw.strip()
            if not raw:
                return cls(DEFAULT_WEIGHT)
        try:
            number = float(raw)
        except (TypeError, ValueError):
            return cls(DEFAULT_WEIGHT)
        if not math.isfinite(number):
            return cls(DEFAULT_WEIGHT)
        return cls(number)

    def __float__(self) -> float:
        return self.value


class PortalRecord(BaseModel):
    """Base for every resource record: ignore unknown keys, accept both spellings."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


def _as_id(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(int(value)) if float(value).is_integer() else str(value)
    if isinstance(value, str):
        return value.strip()
    return value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class Group(PortalRecord):
    id: str = Field(..., min_length=1)
    title: str = Field(default="", validation_alias=_alias("title", "name"))
    program: str | None = None
    term: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _as_id(value)


class Schedule(PortalRecord):
    id: str = Field(..., min_length=1)
    group_id: str = Field(..., min_length=1, validation_alias=_alias("groupId", "group_id"))
    scheduled_at: str | None = Field(default=None, validation_alias=_alias("scheduledAt", "scheduled_at"))
    room: str | None = None
    status: str = "scheduled"
    created_by: str | None = Field(default=None, validation_alias=_alias("createdBy", "created_by"))
    created_at: str | None = Field(default=None, validation_alias=_alias("createdAt", "created_at"))
    updated_at: str | None = Field(default=None, validation_alias=_alias("updatedAt", "updated_at"))

    @field_validator("id", "group_id", "created_by", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        return _as_id(value)

    @field_validator("scheduled_at", "created_at", "updated_at", mode="before")
    @classmethod
    def _stringify_timestamps(cls, value: Any) -> Any:
        if value is None:
            return None
        if hasattr(value, "isoformat"):
            return value.isoformat()
        return _blank_to_none(value)


class PanelistAssignment(PortalRecord):
    schedule_id: str = Field(..., min_length=1, validation_alias=_alias("scheduleId", "schedule_id"))
    staff_id: str = Field(..., min_length=1, validation_alias=_alias("staffId", "staff_id"))

    @field_validator("schedule_id", "staff_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        return _as_id(value)


class User(PortalRecord):
    id: str = Field(..., min_length=1)
    name: str | None = None
    email: str | None = None
    role: str = ""
    status: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _as_id(value)

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def display_name(self) -> str | None:
        for candidate in (self.name, self.email):
            if candidate and candidate.strip():
                return candidate.strip()
        return None


class Evaluation(PortalRecord):
    id: str = Field(..., min_length=1)
    schedule_id: str = Field(..., min_length=1, validation_alias=_alias("scheduleId", "schedule_id"))
    evaluator_id: str = Field(..., min_length=1, validation_alias=_alias("evaluatorId", "evaluator_id"))
    status: str = "pending"
    submitted_at: str | None = Field(default=None, validation_alias=_alias("submittedAt", "submitted_at"))
    locked_at: str | None = Field(default=None, validation_alias=_alias("lockedAt", "locked_at"))
    created_at: str | None = Field(default=None, validation_alias=_alias("createdAt", "created_at"))

    @field_validator("id", "schedule_id", "evaluator_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        return _as_id(value)

    @field_validator("submitted_at", "locked_at", "created_at", mode="before")
    @classmethod
    def _stringify_timestamps(cls, value: Any) -> Any:
        if value is None:
            return None
        if hasattr(value, "isoformat"):
            return value.isoformat()
        return _blank_to_none(value)


class EvaluationScore(PortalRecord):
    evaluation_id: str = Field(..., min_length=1, validation_alias=_alias("evaluationId", "evaluation_id"))
    criterion_id: str = Field(..., min_length=1, validation_alias=_alias("criterionId", "criterion_id"))
    score: float = Field(..., allow_inf_nan=False)
    comment: str | None = None

    @field_validator("evaluation_id", "criterion_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        return _as_id(value)


class RubricTemplate(PortalRecord):
    id: str = Field(..., min_length=1)
    name: str = ""
    version: int | str | None = None
    active: bool = False
    description: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _as_id(value)

    @field_validator("active", mode="before")
    @classmethod
    def _coerce_active(cls, value: Any) -> Any:
        return False if value is None else value


class RubricCriterion(PortalRecord):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(..., min_length=1)
    template_id: str | None = Field(default=None, validation_alias=_alias("templateId", "template_id"))
    criterion: str = Field(default="", validation_alias=_alias("criterion", "label", "name"))
    description: str | None = None
    weight: CriterionWeight = Field(default_factory=CriterionWeight)
    min_score: float | None = Field(default=None, validation_alias=_alias("minScore", "min_score"))
    max_score: float | None = Field(default=None, validation_alias=_alias("maxScore", "max_score"))

    @field_validator("id", "template_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        return _as_id(value)

    @field_validator("weight", mode="before")
    @classmethod
    def _coerce_weight(cls, value: Any) -> CriterionWeight:
        return CriterionWeight.coerce(value)

    @field_validator("min_score", "max_score", mode="before")
    @classmethod
    def _lenient_bounds(cls, value: Any) -> Any:
        try:
            return None if value is None or value == "" else float(value)
        except (TypeError, ValueError):
            return None


def parse_items(model: Type[RecordT], items: Any, *, resource: str) -> List[RecordT]:
    """Validate raw JSON items into `model`, dropping anything malformed."""

    if not isinstance(items, list):
        LOGGER.debug(
            "Resource payload is not a list",
            extra={"resource": resource, "payload_type": type(items).__name__},
        )
        return []
    parsed: List[RecordT] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            LOGGER.debug("Skipping non-object item", extra={"resource": resource, "index": index})
            continue
        try:
            parsed.append(model.model_validate(item))
        except ValidationError as exc:
            LOGGER.debug(
                "Skipping malformed item",
                extra={"resource": resource, "index": index, "errors": exc.error_count()},
            )
    return parsed


def index_by_id(records: Iterable[Any]) -> dict[str, Any]:
    """Map records by `id`; the first occurrence of a duplicate id wins."""

    indexed: dict[str, Any] = {}
    for record in records:
        indexed.setdefault(record.id, record)
    return indexed


__all__ = [
    "CriterionWeight",
    "DEFAULT_WEIGHT",
    "Evaluation",
    "EvaluationScore",
    "Group",
    "PanelistAssignment",
    "PortalRecord",
    "RubricCriterion",
    "RubricTemplate",
    "Schedule",
    "User",
    "index_by_id",
    "parse_items",
]
