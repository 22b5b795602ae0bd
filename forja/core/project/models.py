"""
Modelos de datos del motor (agnósticos de interfaz y de host).

Declaración (Pydantic): Resource, HandlerSpec, Declaration.
Runtime (dataclasses): Action, ChangeEvent.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from forja.core.runtime.state import StateDiff


class ResourceKind(str, Enum):
    PACKAGE = "package"
    FILE = "file"
    SERVICE = "service"
    USER = "user"
    DB_OBJECT = "db-object"


class ActionVerb(str, Enum):
    CREATE = "create"
    MODIFY = "modify"
    REMOVE = "remove"
    NOOP = "no-op"


class ActionStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"
    NOT_RUN = "not-run"  # abortado o dependencia fallida


def resource_id(kind: "ResourceKind | str", name: str) -> str:
    """Identificador canónico: <kind>:<name>."""
    value = kind.value if isinstance(kind, ResourceKind) else str(kind)
    return f"{value}:{name}"


def _as_tuple(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


class Resource(BaseModel):
    """Unidad de estado deseado."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: ResourceKind
    name: str = Field(..., min_length=1, description="Identificador, único por kind")
    attributes: Dict[str, Any] = Field(default_factory=dict)
    depends_on: Tuple[str, ...] = ()
    notify: Tuple[str, ...] = ()
    description: Optional[str] = None

    @field_validator("depends_on", "notify", mode="before")
    @classmethod
    def _normalize_refs(cls, value: Any) -> Tuple[str, ...]:
        return _as_tuple(value)

    @property
    def id(self) -> str:
        return resource_id(self.kind, self.name)

    @property
    def wants_absent(self) -> bool:
        return self.attributes.get("state") == "absent"

    def label(self) -> str:
        return self.description or self.id


class HandlerEffect(BaseModel):
    """Plantilla de acción que ejecuta un handler."""
    model_config = ConfigDict(frozen=True)

    kind: ResourceKind
    name: str = Field(..., min_length=1)
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @property
    def id(self) -> str:
        return resource_id(self.kind, self.name)

    def to_resource(self) -> Resource:
        return Resource(kind=self.kind, name=self.name, attributes=dict(self.attributes))


class HandlerSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    triggers: Tuple[str, ...] = ()
    effect: HandlerEffect

    @field_validator("triggers", mode="before")
    @classmethod
    def _normalize_triggers(cls, value: Any) -> Tuple[str, ...]:
        return _as_tuple(value)


class Declaration(BaseModel):
    """Declaración completa: variables, recursos (en orden) y handlers."""

    name: Optional[str] = None
    vars: Dict[str, Any] = Field(default_factory=dict)
    resources: List[Resource] = Field(default_factory=list)
    handlers: List[HandlerSpec] = Field(default_factory=list)

    def resource_index(self) -> Dict[str, Resource]:
        return {r.id: r for r in self.resources}

    def effective_handlers(self) -> List[HandlerSpec]:
        """
        Handlers con el trigger set completo: triggers explícitos más los
        recursos que los nombran en `notify`. Mantiene el orden de declaración.
        """
        extra: Dict[str, List[str]] = {h.name: [] for h in self.handlers}
        for resource in self.resources:
            for handler_name in resource.notify:
                if handler_name in extra and resource.id not in extra[handler_name]:
                    extra[handler_name].append(resource.id)
        result: List[HandlerSpec] = []
        for handler in self.handlers:
            triggers = list(handler.triggers)
            for rid in extra[handler.name]:
                if rid not in triggers:
                    triggers.append(rid)
            result.append(handler.model_copy(update={"triggers": tuple(triggers)}))
        return result


@dataclass(frozen=True)
class Action:
    """Acción calculada por el planner; el executor la consume una sola vez."""
    resource: Resource
    verb: ActionVerb
    diff: Tuple[StateDiff, ...] = ()
    observed: Optional[Mapping[str, Any]] = field(default=None, compare=False)
    unknown: bool = False

    @property
    def resource_id(self) -> str:
        return self.resource.id

    @property
    def is_noop(self) -> bool:
        return self.verb == ActionVerb.NOOP

    def changes(self) -> Dict[str, Any]:
        """Campo → valor deseado, solo para los campos con diferencia."""
        return {d.field: d.desired for d in self.diff}

    def describe(self) -> str:
        if self.verb == ActionVerb.NOOP:
            return "sin cambios"
        if self.verb == ActionVerb.REMOVE:
            return "eliminar"
        parts = [f"{d.field}: {d.actual!r} → {d.desired!r}" for d in self.diff]
        prefix = "crear" if self.verb == ActionVerb.CREATE else "modificar"
        if self.unknown:
            prefix += " (estado desconocido)"
        return f"{prefix} " + ", ".join(parts) if parts else prefix

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resource": self.resource_id,
            "verb": self.verb.value,
            "diff": [d.to_dict() for d in self.diff],
            "unknown": self.unknown,
        }


@dataclass(frozen=True)
class ChangeEvent:
    action: Action
    status: ActionStatus

    @property
    def resource_id(self) -> str:
        return self.action.resource_id

    @property
    def changed(self) -> bool:
        return self.status == ActionStatus.APPLIED
