"""
Core: lógica del motor de convergencia.

ENFORCEMENT (arquitectura limpia):
- Este paquete NO debe importar: forja.cli ni forja.providers (implementaciones concretas).
- Permitido: typing, pathlib.Path, pydantic, forja.core.* (errors, runtime, infra/contracts, project).
- Los providers y la CLI importan desde core; nunca al revés.
"""

from forja.core.errors import (
    ApplyError,
    ConfigError,
    CyclicDependencyError,
    ForjaError,
    HandlerError,
    LockError,
    ProbeError,
    ValidationError,
)

__all__ = [
    "ApplyError",
    "ConfigError",
    "CyclicDependencyError",
    "ForjaError",
    "HandlerError",
    "LockError",
    "ProbeError",
    "ValidationError",
]
