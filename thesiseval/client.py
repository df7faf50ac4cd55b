"""Async HTTP client for the thesis portal's read-only REST resources."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Type, TypeVar

import httpx
from pydantic import BaseModel

from thesiseval.core.config import PortalAPIConfig
from thesiseval.core.errors import PortalAPIError
from thesiseval.core.records import (
    Evaluation,
    EvaluationScore,
    Group,
    PanelistAssignment,
    RubricCriterion,
    RubricTemplate,
    Schedule,
    User,
    parse_items,
)

LOGGER = logging.getLogger("thesiseval.client")

RecordT = TypeVar("RecordT", bound=BaseModel)


class ThesisPortalClient:
    def __init__(
        self,
        config: PortalAPIConfig,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        if client is None:
            self._client = httpx.AsyncClient(
                base_url=config.base_url,
                timeout=config.timeout,
            )
            self._owns_client = True
        else:
            self._client = client
            self._owns_client = False

    async def list_groups(self) -> List[Group]:
        return await self._get_paged(Group, "/groups", "all", collection="groups")

    async def list_schedules(self) -> List[Schedule]:
        return await self._get_paged(Schedule, "/schedule", "schedules", collection="schedules")

    async def list_users(self) -> List[User]:
        return await self._get_paged(User, "/profiles", "users", collection="users")

    async def list_evaluations(self) -> List[Evaluation]:
        return await self._get_paged(Evaluation, "/evaluation", "evaluations", collection="evaluations")

    async def list_rubric_templates(self) -> List[RubricTemplate]:
        return await self._get_paged(RubricTemplate, "/evaluation", "rubricTemplates", collection="templates")

    async def list_panelists(self, schedule_id: str) -> List[PanelistAssignment]:
        """Panel roster for one schedule."""

        items = await self._get_collection(
            "/schedule",
            {"resource": "panelists", "scheduleId": schedule_id},
            collection="panelists",
        )
        return parse_items(PanelistAssignment, items, resource="panelists")

    async def list_scores(self, evaluation_id: str) -> List[EvaluationScore]:
        """Stored per-criterion scores for one evaluation."""

        items = await self._get_collection(
            "/evaluation",
            {"resource": "evaluationScores", "evaluationId": evaluation_id},
            collection="scores",
        )
        return parse_items(EvaluationScore, items, resource="scores")

    async def list_criteria(self, template_id: str) -> List[RubricCriterion]:
        """Criteria belonging to one rubric template."""

        items = await self._get_collection(
            "/evaluation",
            {"resource": "rubricCriteria", "templateId": template_id},
            collection="criteria",
        )
        return parse_items(RubricCriterion, items, resource="criteria")

    async def _get_paged(
        self,
        model: Type[RecordT],
        path: str,
        resource: str,
        *,
        collection: str,
    ) -> List[RecordT]:
        limit = self._config.page_size
        raw: List[Any] = []
        offset = 0
        for _ in range(self._config.max_pages):
            params = {"resource": resource, "limit": limit, "offset": offset}
            data = await self._get_payload(path, params)
            items = _extract_items(data, collection, resource=resource)
            raw.extend(items)
            offset += len(items)
            total = _total(data)
            # With a reported total, a short page does not end the walk.
            if not items or (offset >= total if total is not None else len(items) < limit):
                break
        else:
            LOGGER.warning(
                "Stopped paging at max_pages",
                extra={"resource": resource, "max_pages": self._config.max_pages, "items": len(raw)},
            )
        return parse_items(model, raw, resource=collection)

    async def _get_collection(self, path: str, params: Dict[str, Any], *, collection: str) -> List[Any]:
        data = await self._get_payload(path, params)
        return _extract_items(data, collection, resource=str(params.get("resource", collection)))

    async def _get_payload(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        resource = str(params.get("resource", path))
        try:
            response = await self._client.get(path, params=params, headers=self._build_headers())
        except httpx.HTTPError as exc:
            raise PortalAPIError(f"{resource} request failed: {exc}", resource=resource) from exc

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_error:
            message = _error_message(data) or f"HTTP {response.status_code}"
            raise PortalAPIError(
                f"{resource} request failed: {message}",
                resource=resource,
                status_code=response.status_code,
            )
        if not isinstance(data, dict):
            raise PortalAPIError(
                f"{resource} returned a non-JSON payload",
                resource=resource,
                status_code=response.status_code,
            )
        if not data.get("ok"):
            message = _error_message(data) or "request was not ok"
            raise PortalAPIError(f"{resource}: {message}", resource=resource, status_code=response.status_code)
        return data

    def _build_headers(self) -> Dict[str, str] | None:
        if not self._config.api_token:
            return None
        return {"Authorization": f"Bearer {self._config.api_token}"}

    async def aclose(self) -> None:
        if getattr(self, "_owns_client", False):
            await self._client.aclose()

    async def __aenter__(self) -> "ThesisPortalClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def _extract_items(data: Dict[str, Any], collection: str, *, resource: str) -> List[Any]:
    items = data.get(collection)
    if items is None:
        items = data.get("items", [])
    if not isinstance(items, list):
        raise PortalAPIError(f"{resource} payload field '{collection}' is not a list", resource=resource)
    return items


def _total(data: Dict[str, Any]) -> int | None:
    value = data.get("total")
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _error_message(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    for key in ("message", "error", "detail"):
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


__all__ = ["ThesisPortalClient"]
