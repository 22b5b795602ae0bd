"""
Fact Gatherer: inspecciona el host y devuelve una FactSnapshot.

Nunca muta el host: solo invoca probe() de los adapters. Un ProbeError no es
fatal; el recurso queda como desconocido y el planner lo trata como ausente.
"""

import logging
from typing import Any, Dict, Optional, Sequence

from forja.core.errors import ProbeError
from forja.core.infra.registry import AdapterRegistry
from forja.core.project.models import Resource
from forja.core.runtime.state import FactSnapshot

logger = logging.getLogger(__name__)


class FactGatherer:
    """Recorre los recursos y pregunta a cada adapter por su estado real."""

    def __init__(self, registry: AdapterRegistry):
        self.registry = registry

    def gather(self, resources: Sequence[Resource]) -> FactSnapshot:
        observed: Dict[str, Optional[Dict[str, Any]]] = {}
        unknown: Dict[str, str] = {}
        for resource in resources:
            adapter = self.registry.get(resource.kind)
            try:
                attributes = adapter.probe(resource)
            except ProbeError as e:
                logger.warning("No se pudo inspeccionar %s: %s (se asume ausente)", resource.id, e.reason)
                unknown[resource.id] = e.reason
                continue
            observed[resource.id] = attributes
            logger.debug("Hechos %s: %s", resource.id, "ausente" if attributes is None else ", ".join(sorted(attributes)))
        return FactSnapshot(observed, unknown)
