"""
Foundational configuration, record types, and errors for the reports engine.
"""

from .config import ReportsConfig, load_reports_config
from .errors import PortalAPIError, ResourceLoadError
from .records import (
    CriterionWeight,
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

__all__ = [
    "CriterionWeight",
    "Evaluation",
    "EvaluationScore",
    "Group",
    "PanelistAssignment",
    "PortalAPIError",
    "ReportsConfig",
    "ResourceLoadError",
    "RubricCriterion",
    "RubricTemplate",
    "Schedule",
    "User",
    "load_reports_config",
    "parse_items",
]
