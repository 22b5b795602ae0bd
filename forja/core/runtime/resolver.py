"""
Resolución de rutas de estado.

- state_root(): directorio canónico de estado/runtime (/var/lib/forja/ por defecto).
- lock_path(): archivo de lock que serializa ejecuciones sobre el host.
- reports_dir(): donde se guardan los reportes de ejecución.

El core NO escribe en disco; solo expone estas rutas.
"""

import os
from pathlib import Path
from typing import Optional


# Ruta canónica del estado (fuera de cualquier repo)
FORJA_STATE_ROOT = Path("/var/lib/forja")


def state_root(explicit: Optional[str] = None) -> Path:
    """
    Directorio raíz del estado de forja.
    Resolución: argumento explícito → FORJA_STATE_ROOT (env) → /var/lib/forja.
    """
    value = (explicit or os.environ.get("FORJA_STATE_ROOT", "")).strip()
    if value:
        return Path(value).expanduser().resolve()
    return FORJA_STATE_ROOT


def lock_path(root: Optional[Path] = None) -> Path:
    return (root or state_root()) / "run.lock"


def reports_dir(root: Optional[Path] = None) -> Path:
    return (root or state_root()) / "reports"
