"""
Errores del motor de aprovisionamiento.

El core solo define excepciones; las capas (CLI/reporte) se encargan del formato de salida.

Taxonomía:
- ProbeError: no fatal; el recurso se marca como desconocido y se asume ausente.
- CyclicDependencyError: fatal, se detecta antes de invocar cualquier adapter.
- ApplyError: fatal por defecto (salvo continue-on-error).
- HandlerError: no fatal; solo se reporta.
"""

from typing import List, Optional, Sequence


class ForjaError(Exception):
    """Error base de forja."""
    pass


class ValidationError(ForjaError):
    """Error de validación de la declaración o de los modelos."""
    pass


class ConfigError(ForjaError):
    """Error de configuración (archivo faltante, formato inválido, secreto sin resolver)."""
    pass


class LockError(ForjaError):
    """Otra ejecución mantiene el lock del host."""
    pass


class ProbeError(ForjaError):
    """Un adapter no pudo determinar el estado real de un recurso."""

    def __init__(self, resource_id: str, reason: str):
        super().__init__(f"{resource_id}: {reason}")
        self.resource_id = resource_id
        self.reason = reason


class CyclicDependencyError(ForjaError):
    """El grafo de dependencias declarado contiene un ciclo."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle: List[str] = list(cycle)
        super().__init__("Dependencia cíclica: " + " -> ".join(self.cycle))


class ApplyError(ForjaError):
    """Un adapter falló al aplicar una acción."""

    def __init__(self, resource_id: str, reason: str, detail: Optional[str] = None):
        message = f"{resource_id}: {reason}"
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)
        self.resource_id = resource_id
        self.reason = reason
        self.detail = detail


class HandlerError(ForjaError):
    """Un handler falló al dispararse."""

    def __init__(self, handler: str, reason: str):
        super().__init__(f"handler '{handler}': {reason}")
        self.handler = handler
        self.reason = reason
