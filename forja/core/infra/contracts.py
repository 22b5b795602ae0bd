"""
Contratos que deben implementar los adapters de infraestructura.

El core solo define interfaces; la implementación vive en forja/providers/*.
"""

from typing import Any, Dict, FrozenSet, List, Optional, Protocol

from forja.core.project.models import Action, ActionStatus, Resource, ResourceKind


class AdapterContract(Protocol):
    """
    Contrato mínimo de un adapter (paquetes, servicios, ficheros, usuarios, base de datos).

    probe nunca muta el host; apply es idempotente: re-aplicar una acción ya
    convergida no tiene efecto.
    """

    directives: FrozenSet[str]

    @property
    def kind(self) -> ResourceKind:
        """Kind de recurso que gestiona el adapter."""
        ...

    def validate(self, resource: Resource) -> List[str]:
        """Errores de atributos propios del kind (sin tocar el host)."""
        ...

    def desired(self, resource: Resource) -> Dict[str, Any]:
        """Atributos comparables del estado deseado (sin directivas)."""
        ...

    def probe(self, resource: Resource) -> Optional[Dict[str, Any]]:
        """Atributos observados, o None si el recurso no existe. Lanza ProbeError."""
        ...

    def differs(self, field: str, desired: Any, actual: Any) -> bool:
        """True si el valor observado no satisface el deseado."""
        ...

    def apply(self, action: Action) -> ActionStatus:
        """Aplica la acción. Lanza ApplyError."""
        ...
