"""
Configuración de ejecución.

Orden de precedencia: flags de la CLI > variables de entorno > .env > valores por defecto.
El .env se busca en el directorio actual y junto a la declaración.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from forja.core.errors import ConfigError
from forja.core.runtime.resolver import state_root as default_state_root

_TRUE = ("1", "true", "yes", "on")


def load_env_file(near: Optional[Path] = None) -> None:
    """Carga .env (sin pisar variables ya definidas en el entorno)."""
    candidates = [Path.cwd() / ".env"]
    if near is not None:
        candidates.insert(0, near.parent / ".env")
    for env_file in candidates:
        if env_file.is_file():
            load_dotenv(env_file, override=False)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUE


class Settings(BaseModel):
    """Ajustes de una ejecución del motor."""

    state_root: Path = Field(default_factory=default_state_root, description="Estado, lock y reportes")
    continue_on_error: bool = False
    force_handlers: bool = False
    command_timeout: int = Field(600, gt=0, description="Timeout (s) de cada comando del sistema")
    db_admin_user: str = Field("postgres", description="Usuario del sistema para administrar PostgreSQL")
    log_level: str = "WARNING"
    use_lock: bool = True

    @field_validator("log_level")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper() or "WARNING"

    @classmethod
    def from_env(cls) -> "Settings":
        """Construye los ajustes desde FORJA_* (tras cargar .env si existe)."""
        data = {}
        if os.environ.get("FORJA_COMMAND_TIMEOUT", "").strip():
            data["command_timeout"] = os.environ["FORJA_COMMAND_TIMEOUT"].strip()
        if os.environ.get("FORJA_DB_ADMIN_USER", "").strip():
            data["db_admin_user"] = os.environ["FORJA_DB_ADMIN_USER"].strip()
        if os.environ.get("FORJA_LOG_LEVEL", "").strip():
            data["log_level"] = os.environ["FORJA_LOG_LEVEL"]
        data["continue_on_error"] = _env_flag("FORJA_CONTINUE_ON_ERROR")
        data["force_handlers"] = _env_flag("FORJA_FORCE_HANDLERS")
        if os.environ.get("FORJA_NO_LOCK", "").strip():
            data["use_lock"] = not _env_flag("FORJA_NO_LOCK")
        try:
            return cls(**data)
        except PydanticValidationError as e:
            raise ConfigError(f"Configuración FORJA_* inválida: {e}") from e
