"""
Planificación: genera el plan de acciones (qué aplicar) sin ejecutar.

Lógica pura: entrada = recursos deseados (en orden) + FactSnapshot;
salida = lista ordenada de acciones. La ejecución la hacen los adapters.

Orden: topológico sobre depends_on (Kahn); entre recursos independientes se
respeta el orden de declaración. Un ciclo aborta antes de tocar el host.
"""

import heapq
import logging
from typing import Any, Dict, List, Optional, Sequence

from forja.core.errors import CyclicDependencyError, ValidationError
from forja.core.infra.registry import AdapterRegistry
from forja.core.project.models import Action, ActionVerb, Resource
from forja.core.runtime.state import FactSnapshot, StateDiff

logger = logging.getLogger(__name__)


def order_resources(resources: Sequence[Resource]) -> List[Resource]:
    """
    Ordena topológicamente los recursos según depends_on.

    Desempate estable: índice de declaración. Determinista para la misma entrada.

    Raises:
        ValidationError: dependencia hacia un recurso no declarado
        CyclicDependencyError: el grafo contiene un ciclo
    """
    index: Dict[str, int] = {}
    for i, resource in enumerate(resources):
        if resource.id in index:
            raise ValidationError(f"Recurso duplicado: {resource.id}")
        index[resource.id] = i

    pending: Dict[str, int] = {}
    dependents: Dict[str, List[str]] = {rid: [] for rid in index}
    for resource in resources:
        deps = set(resource.depends_on)
        for dep in deps:
            if dep not in index:
                raise ValidationError(f"{resource.id}: depende de un recurso no declarado '{dep}'")
            dependents[dep].append(resource.id)
        pending[resource.id] = len(deps)

    ready = [index[rid] for rid, count in pending.items() if count == 0]
    heapq.heapify(ready)
    ordered: List[Resource] = []
    while ready:
        current = resources[heapq.heappop(ready)]
        ordered.append(current)
        for child in dependents[current.id]:
            pending[child] -= 1
            if pending[child] == 0:
                heapq.heappush(ready, index[child])

    if len(ordered) != len(resources):
        blocked = [r for r in resources if pending[r.id] > 0]
        raise CyclicDependencyError(_find_cycle(blocked))
    return ordered


def _find_cycle(blocked: Sequence[Resource]) -> List[str]:
    """Devuelve un ciclo concreto (primer nodo repetido al final) entre los recursos bloqueados."""
    graph = {r.id: [d for d in r.depends_on] for r in blocked}
    for start in graph:
        path: List[str] = []
        on_path: Dict[str, int] = {}
        node: Optional[str] = start
        while node is not None and node not in on_path:
            on_path[node] = len(path)
            path.append(node)
            node = next((d for d in graph.get(node, []) if d in graph), None)
        if node is not None:
            return path[on_path[node]:] + [node]
    return [r.id for r in blocked]


class DiffPlanner:
    """Compara recursos deseados contra la instantánea y produce acciones ordenadas."""

    def __init__(self, registry: Optional[AdapterRegistry] = None):
        self.registry = registry

    def order(self, resources: Sequence[Resource]) -> List[Resource]:
        return order_resources(resources)

    def plan(self, resources: Sequence[Resource], snapshot: FactSnapshot) -> List[Action]:
        """Plan completo, incluidas las acciones no-op, en orden de ejecución."""
        actions = [self.plan_resource(r, snapshot) for r in self.order(resources)]
        logger.debug(
            "Plan: %d acciones, %d con cambios",
            len(actions),
            sum(1 for a in actions if not a.is_noop),
        )
        return actions

    def plan_resource(self, resource: Resource, snapshot: FactSnapshot) -> Action:
        observed = snapshot.get(resource.id)
        unknown = snapshot.is_unknown(resource.id)
        desired, differs = self._comparison(resource)

        if resource.wants_absent:
            if observed is None and not unknown:
                return Action(resource, ActionVerb.NOOP, observed=observed)
            if observed is None:
                # desconocido: no se asume presente, no hay nada que eliminar
                return Action(resource, ActionVerb.NOOP, unknown=True)
            actual_state = observed.get("state", "present")
            diff = (StateDiff(resource.id, "state", "absent", actual_state),)
            return Action(resource, ActionVerb.REMOVE, diff, observed=observed)

        if observed is None:
            diff = tuple(StateDiff(resource.id, f, v, None) for f, v in desired.items())
            return Action(resource, ActionVerb.CREATE, diff, observed=None, unknown=unknown)

        changed: List[StateDiff] = []
        for field, value in desired.items():
            actual = observed.get(field)
            if differs(field, value, actual):
                changed.append(StateDiff(resource.id, field, value, actual))
        if not changed:
            return Action(resource, ActionVerb.NOOP, observed=observed)
        return Action(resource, ActionVerb.MODIFY, tuple(changed), observed=observed)

    def _comparison(self, resource: Resource):
        """(atributos comparables, función de comparación) según el adapter del kind."""
        if self.registry is not None and resource.kind in self.registry:
            adapter = self.registry.get(resource.kind)
            return adapter.desired(resource), adapter.differs
        return dict(resource.attributes), _default_differs


def _default_differs(field: str, desired: Any, actual: Any) -> bool:
    return desired != actual


def plan_from_diffs(actions: Sequence[Action]) -> List[str]:
    """
    Convierte un plan en líneas legibles (para mostrar en CLI).
    No ejecuta nada; omite los no-op.
    """
    return [f"{a.resource_id}: {a.describe()}" for a in actions if not a.is_noop]
