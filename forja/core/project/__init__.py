"""
Project: modelos, validación, planificación y recolección de hechos.

Lógica pura salvo el FactGatherer, que solo lee el host a través de adapters.
"""

from forja.core.project.detector import FactGatherer
from forja.core.project.models import (
    Action,
    ActionStatus,
    ActionVerb,
    ChangeEvent,
    Declaration,
    HandlerEffect,
    HandlerSpec,
    Resource,
    ResourceKind,
    resource_id,
)
from forja.core.project.planner import DiffPlanner, order_resources, plan_from_diffs
from forja.core.project.validator import collect_errors, validate_declaration, validate_identifier

__all__ = [
    "Action",
    "ActionStatus",
    "ActionVerb",
    "ChangeEvent",
    "Declaration",
    "DiffPlanner",
    "FactGatherer",
    "HandlerEffect",
    "HandlerSpec",
    "Resource",
    "ResourceKind",
    "collect_errors",
    "order_resources",
    "plan_from_diffs",
    "resource_id",
    "validate_declaration",
    "validate_identifier",
]
