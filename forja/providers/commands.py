"""
Ejecución de comandos del sistema para los adapters.

Todos los adapters pasan por un CommandRunner; en tests se sustituye por uno falso.
Los comandos se registran en el log con los secretos enmascarados.
"""

import getpass
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from forja.core.errors import ApplyError, ProbeError
from forja.core.infra.base import BaseAdapter
from forja.core.runtime.masking import mask_sensitive_data

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    argv: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return ((self.stdout or "") + (self.stderr or "")).strip()


class CommandRunner:
    """
    Ejecuta comandos con subprocess de forma segura (sin shell).

    Un comando inexistente o un timeout se devuelven como CommandResult con
    returncode 127 / 124 para que el adapter decida (ProbeError o ApplyError).
    """

    def __init__(self, timeout: int = 600, secrets: Iterable[str] = ()):
        self.timeout = timeout
        self.secrets = set(secrets)

    def add_secrets(self, secrets: Iterable[str]) -> None:
        self.secrets.update(s for s in secrets if s)

    def run(
        self,
        argv: Sequence[str],
        input: Optional[str] = None,
        user: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[Path] = None,
    ) -> CommandResult:
        """
        Ejecuta un comando del sistema

        Args:
            argv: Lista con comando y argumentos
            input: Texto para stdin (SQL, contenido; nunca aparece en el log)
            user: Ejecutar como otro usuario (sudo -u) si no es el actual
            env: Variables de entorno adicionales
            cwd: Directorio de trabajo

        Returns:
            CommandResult
        """
        command = list(argv)
        if user and user != _current_user():
            command = ["sudo", "-n", "-u", user, "--"] + command
        logger.debug("$ %s", mask_sensitive_data(" ".join(command), self.secrets))
        full_env = None
        if env:
            full_env = {**os.environ, **env}
        try:
            result = subprocess.run(
                command,
                input=input,
                cwd=cwd,
                env=full_env,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            return CommandResult(command, 124, "", f"Timeout ({self.timeout}s) ejecutando: {command[0]}")
        except FileNotFoundError:
            return CommandResult(command, 127, "", f"Comando no encontrado: {command[0]}")
        except PermissionError as e:
            return CommandResult(command, 126, "", f"Sin permisos para ejecutar {command[0]}: {e}")
        return CommandResult(command, result.returncode, result.stdout or "", result.stderr or "")

    def mask(self, text: str) -> str:
        return mask_sensitive_data(text, self.secrets)


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return str(os.geteuid())


class CommandAdapter(BaseAdapter):
    """Base para adapters que delegan en herramientas del sistema."""

    def __init__(self, runner: Optional[CommandRunner] = None):
        self.runner = runner or CommandRunner()

    def _check(self, resource_id: str, argv: Sequence[str], **kwargs) -> CommandResult:
        """Ejecuta un comando de apply; si falla lanza ApplyError con la salida enmascarada."""
        result = self.runner.run(argv, **kwargs)
        if not result.ok:
            raise ApplyError(
                resource_id,
                f"'{argv[0]}' terminó con código {result.returncode}",
                self.runner.mask(result.output) or None,
            )
        return result

    def _probe_error(self, resource_id: str, result: CommandResult) -> ProbeError:
        reason = self.runner.mask(result.output) or f"'{result.argv[0]}' terminó con código {result.returncode}"
        return ProbeError(resource_id, reason)
