"""
Registro kind → adapter. El core resuelve adapters solo a través de aquí.
"""

from typing import Dict, Iterable, Iterator, Optional

from forja.core.errors import ConfigError
from forja.core.infra.contracts import AdapterContract
from forja.core.project.models import ResourceKind


class AdapterRegistry:
    """Adapters disponibles para una ejecución, uno por kind."""

    def __init__(self, adapters: Optional[Iterable[AdapterContract]] = None):
        self._adapters: Dict[ResourceKind, AdapterContract] = {}
        for adapter in adapters or ():
            self.register(adapter)

    def register(self, adapter: AdapterContract) -> None:
        """Registra (o reemplaza) el adapter de su kind."""
        self._adapters[ResourceKind(adapter.kind)] = adapter

    def get(self, kind: ResourceKind) -> AdapterContract:
        try:
            return self._adapters[ResourceKind(kind)]
        except KeyError:
            raise ConfigError(f"No hay adapter registrado para el kind '{ResourceKind(kind).value}'") from None

    def __contains__(self, kind: object) -> bool:
        try:
            return ResourceKind(kind) in self._adapters
        except ValueError:
            return False

    def __iter__(self) -> Iterator[AdapterContract]:
        return iter(self._adapters.values())
