"""
Base opcional para adapters: implementación por defecto de métodos comunes.

Los adapters pueden heredar de aquí o implementar solo el contrato (Protocol).
"""

from typing import Any, ClassVar, Dict, FrozenSet, List, Optional, Tuple

from forja.core.project.models import Action, ActionStatus, Resource, ResourceKind


class BaseAdapter:
    """Base opcional para adapters; no obligatorio usar herencia."""

    kind: ClassVar[ResourceKind]
    # Atributos que guían el apply pero no son observables en el host
    directives: FrozenSet[str] = frozenset()
    # Valores válidos de `state`; vacío = sin restricción
    states: ClassVar[Tuple[str, ...]] = ()
    # Atributos conocidos (además de state y directivas); None = cualquiera
    known_attributes: ClassVar[Optional[FrozenSet[str]]] = None

    def validate(self, resource: Resource) -> List[str]:
        errors: List[str] = []
        state = resource.attributes.get("state")
        if self.states and state is not None and state not in self.states:
            errors.append(
                f"{resource.id}: state '{state}' no válido (permitidos: {', '.join(self.states)})"
            )
        if self.known_attributes is not None:
            allowed = self.known_attributes | self.directives | {"state"}
            for name in resource.attributes:
                if name not in allowed:
                    errors.append(f"{resource.id}: atributo desconocido '{name}'")
        return errors

    def desired(self, resource: Resource) -> Dict[str, Any]:
        return {k: v for k, v in resource.attributes.items() if k not in self.directives}

    def probe(self, resource: Resource) -> Optional[Dict[str, Any]]:
        """Por defecto: el recurso no existe."""
        return None

    def differs(self, field: str, desired: Any, actual: Any) -> bool:
        return desired != actual

    def apply(self, action: Action) -> ActionStatus:
        """Por defecto: no aplica nada."""
        return ActionStatus.SKIPPED
