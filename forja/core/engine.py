"""
Engine: secuencia una ejecución completa de convergencia.

declaración → validación y orden (ciclos) → FactSnapshot → plan →
ejecución vía adapters → handlers → RunReport.

Los errores fatales (ValidationError, CyclicDependencyError, ConfigError) se
lanzan antes de tocar el host; el resto termina en el reporte.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List

from forja.core.errors import ValidationError
from forja.core.infra.registry import AdapterRegistry
from forja.core.project.detector import FactGatherer
from forja.core.project.models import Action, Declaration, Resource
from forja.core.project.planner import DiffPlanner
from forja.core.project.validator import validate_declaration
from forja.core.runtime.executor import ActionExecutor
from forja.core.runtime.notify import NotificationBus
from forja.core.runtime.report import RunReport
from forja.core.runtime.state import FactSnapshot

logger = logging.getLogger(__name__)


@dataclass
class Plan:
    snapshot: FactSnapshot
    actions: List[Action]

    @property
    def changes(self) -> List[Action]:
        return [a for a in self.actions if not a.is_noop]

    @property
    def converged(self) -> bool:
        return not self.changes


class Engine:

    def __init__(
        self,
        registry: AdapterRegistry,
        continue_on_error: bool = False,
        force_handlers: bool = False,
    ):
        self.registry = registry
        self.continue_on_error = continue_on_error
        self.force_handlers = force_handlers
        self.planner = DiffPlanner(registry)
        self.gatherer = FactGatherer(registry)

    def validate(self, declaration: Declaration) -> List[Resource]:
        """
        Valida la declaración completa sin tocar el host.

        Returns:
            Recursos en orden de ejecución
        """
        validate_declaration(declaration)
        ordered = self.planner.order(declaration.resources)

        errors: List[str] = []
        for resource in declaration.resources:
            errors.extend(self.registry.get(resource.kind).validate(resource))
        for handler in declaration.handlers:
            effect = handler.effect.to_resource()
            errors.extend(
                f"handler '{handler.name}': {e}" for e in self.registry.get(effect.kind).validate(effect)
            )
        if errors:
            raise ValidationError("Atributos inválidos:\n  - " + "\n  - ".join(errors))
        return ordered

    def gather(self, declaration: Declaration) -> FactSnapshot:
        return self.gatherer.gather(self.validate(declaration))

    def plan(self, declaration: Declaration) -> Plan:
        ordered = self.validate(declaration)
        snapshot = self.gatherer.gather(ordered)
        return Plan(snapshot, self.planner.plan(ordered, snapshot))

    def run(self, declaration: Declaration) -> RunReport:
        report = RunReport(declaration=declaration.name)
        plan = self.plan(declaration)
        logger.info("Plan: %d acciones, %d con cambios", len(plan.actions), len(plan.changes))

        bus = NotificationBus(declaration.effective_handlers())
        executor = ActionExecutor(self.registry, self.continue_on_error, sinks=[bus.publish])
        report.actions = executor.execute(plan.actions)
        report.aborted = executor.aborted
        report.handlers = bus.flush(
            self.registry,
            primary_aborted=executor.aborted,
            force=self.force_handlers,
        )
        report.finished_at = datetime.now(timezone.utc)
        logger.info(
            "Ejecución terminada: %d cambiados, %d satisfechos, %d fallidos",
            len(report.changed),
            len(report.satisfied),
            len(report.failed),
        )
        return report
