"""Flat criterion lookup across all rubric templates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Sequence, Tuple, Union

from thesiseval.core.records import CriterionWeight, RubricCriterion

CriteriaSource = Union[
    Mapping[str, Sequence[RubricCriterion]],
    Iterable[Tuple[str, Sequence[RubricCriterion]]],
]


@dataclass(frozen=True, slots=True)
class CriterionInfo:
    template_id: str
    weight: float
    label: str


def build_criterion_index(criteria_by_template: CriteriaSource) -> Dict[str, CriterionInfo]:
    """Map criterion id to its owning template, weight, and label.

    The template id a list was fetched under is authoritative; a criterion's
    own `template_id` is only consulted when that key is empty. Weights go
    through `CriterionWeight.coerce`, so a malformed weight counts as 1.
    """
    pairs = criteria_by_template.items() if isinstance(criteria_by_template, Mapping) else criteria_by_template
    index: Dict[str, CriterionInfo] = {}
    for template_id, criteria in pairs:
        for criterion in criteria or ():
            owner = template_id or criterion.template_id
            if not owner:
                continue
            index[criterion.id] = CriterionInfo(
                template_id=str(owner),
                weight=CriterionWeight.coerce(criterion.weight).value,
                label=criterion.criterion,
            )
    return index


__all__ = ["CriterionInfo", "build_criterion_index"]
