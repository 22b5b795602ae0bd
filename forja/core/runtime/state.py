"""
Estado observado: diferencias (StateDiff) e instantánea de hechos (FactSnapshot).

El core NO lee el host; eso lo hacen los providers. Aquí solo viven las
estructuras que viajan entre el gatherer, el planner y el executor.
"""

import copy
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional


@dataclass(frozen=True)
class StateDiff:
    """Diferencia entre estado deseado y real (agnóstico de provider)."""
    resource_id: str
    field: str
    desired: Any
    actual: Any

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "field": self.field,
            "desired": self.desired,
            "actual": self.actual,
        }


class FactSnapshot:
    """
    Instantánea inmutable del host, capturada una vez por ejecución.

    observed: resource_id → atributos observados, o None si el recurso no existe.
    unknown: resource_id → motivo, para los recursos cuyo probe falló.
    Un recurso desconocido se expone como ausente (get() devuelve None).
    """

    def __init__(
        self,
        observed: Mapping[str, Optional[Mapping[str, Any]]],
        unknown: Optional[Mapping[str, str]] = None,
        captured_at: Optional[datetime] = None,
    ):
        frozen: Dict[str, Optional[Mapping[str, Any]]] = {}
        for resource_id, attributes in observed.items():
            frozen[resource_id] = None if attributes is None else MappingProxyType(copy.deepcopy(dict(attributes)))
        self._observed = MappingProxyType(frozen)
        self._unknown = MappingProxyType(dict(unknown or {}))
        self.captured_at = captured_at or datetime.now(timezone.utc)

    def __contains__(self, resource_id: object) -> bool:
        return resource_id in self._observed or resource_id in self._unknown

    def __iter__(self) -> Iterator[str]:
        yield from self._observed
        for resource_id in self._unknown:
            if resource_id not in self._observed:
                yield resource_id

    def __len__(self) -> int:
        return len(set(self._observed) | set(self._unknown))

    def get(self, resource_id: str) -> Optional[Mapping[str, Any]]:
        """Atributos observados; None si ausente o desconocido."""
        return self._observed.get(resource_id)

    def is_unknown(self, resource_id: str) -> bool:
        return resource_id in self._unknown

    @property
    def unknown(self) -> Mapping[str, str]:
        return self._unknown

    def to_dict(self) -> Dict[str, Any]:
        return {
            "captured_at": self.captured_at.isoformat(),
            "observed": {
                rid: (dict(attrs) if attrs is not None else None)
                for rid, attrs in self._observed.items()
            },
            "unknown": dict(self._unknown),
        }
