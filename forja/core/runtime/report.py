"""
Reporte de ejecución: estado por acción, estado por handler y código de salida.

Estructura pura (sin formato); la CLI decide cómo mostrarlo.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from forja.core.project.models import Action, ActionStatus


class HandlerStatus(str, Enum):
    FIRED = "fired"
    FAILED = "failed"
    NOT_TRIGGERED = "not-triggered"
    NOT_RUN = "not-run"


@dataclass
class ActionResult:
    action: Action
    status: ActionStatus
    message: str = ""
    duration: float = 0.0

    @property
    def resource_id(self) -> str:
        return self.action.resource_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.action.to_dict(),
            "status": self.status.value,
            "message": self.message,
            "duration": round(self.duration, 3),
        }


@dataclass
class HandlerResult:
    name: str
    status: HandlerStatus
    triggered_by: List[str] = field(default_factory=list)
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "triggered_by": list(self.triggered_by),
            "message": self.message,
        }


@dataclass
class RunReport:
    """Resumen estructurado de una ejecución."""
    actions: List[ActionResult] = field(default_factory=list)
    handlers: List[HandlerResult] = field(default_factory=list)
    aborted: bool = False
    declaration: Optional[str] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    def by_status(self, status: ActionStatus) -> List[ActionResult]:
        return [r for r in self.actions if r.status == status]

    @property
    def changed(self) -> List[str]:
        return [r.resource_id for r in self.by_status(ActionStatus.APPLIED)]

    @property
    def satisfied(self) -> List[str]:
        return [r.resource_id for r in self.by_status(ActionStatus.SKIPPED)]

    @property
    def failed(self) -> List[str]:
        return [r.resource_id for r in self.by_status(ActionStatus.FAILED)]

    @property
    def failed_handlers(self) -> List[str]:
        return [h.name for h in self.handlers if h.status == HandlerStatus.FAILED]

    @property
    def converged(self) -> bool:
        return all(r.status == ActionStatus.SKIPPED for r in self.actions)

    @property
    def exit_code(self) -> int:
        """0 = convergido sin fallos; 1 = alguna acción o handler falló."""
        return 1 if self.failed or self.failed_handlers else 0

    def summary(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in ActionStatus}
        for result in self.actions:
            counts[result.status.value] += 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "declaration": self.declaration,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "aborted": self.aborted,
            "exit_code": self.exit_code,
            "summary": self.summary(),
            "actions": [r.to_dict() for r in self.actions],
            "handlers": [h.to_dict() for h in self.handlers],
        }
