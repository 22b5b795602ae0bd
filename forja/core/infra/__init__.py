"""
Contratos y base para adapters de infraestructura.

Los adapters (apt, systemd, filesystem, usuarios, postgres) implementan estos contratos;
el core no depende de ningún adapter concreto.
"""

from forja.core.infra.base import BaseAdapter
from forja.core.infra.contracts import AdapterContract
from forja.core.infra.registry import AdapterRegistry

__all__ = ["AdapterContract", "AdapterRegistry", "BaseAdapter"]
