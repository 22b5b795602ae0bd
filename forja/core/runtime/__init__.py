"""
Runtime: estado observado, ejecución, notificaciones y rutas de estado.

El estado persistente NUNCA vive dentro del repo; se escribe en /var/lib/forja/.
"""

from forja.core.runtime.resolver import lock_path, reports_dir, state_root

__all__ = ["lock_path", "reports_dir", "state_root"]
