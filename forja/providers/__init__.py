"""
Adapters concretos del host: paquetes, ficheros, servicios, usuarios y PostgreSQL.
"""

from typing import Optional

from forja.config import Settings
from forja.core.infra.registry import AdapterRegistry
from forja.providers.commands import CommandResult, CommandRunner
from forja.providers.database import DatabaseAdapter
from forja.providers.files import FileAdapter
from forja.providers.package import PackageAdapter
from forja.providers.service import ServiceAdapter
from forja.providers.template import TemplateRenderer
from forja.providers.users import UserAdapter


def default_registry(
    settings: Optional[Settings] = None,
    runner: Optional[CommandRunner] = None,
    renderer: Optional[TemplateRenderer] = None,
) -> AdapterRegistry:
    """
    Registry con todos los adapters del host.

    Args:
        settings: timeout de comandos y usuario administrador de PostgreSQL
        runner: CommandRunner compartido (en tests, uno falso)
        renderer: renderizador con las variables de la declaración
    """
    settings = settings or Settings()
    runner = runner or CommandRunner(timeout=settings.command_timeout)
    return AdapterRegistry([
        PackageAdapter(runner),
        FileAdapter(renderer),
        ServiceAdapter(runner),
        UserAdapter(runner),
        DatabaseAdapter(runner, admin_user=settings.db_admin_user),
    ])


__all__ = [
    "CommandResult",
    "CommandRunner",
    "DatabaseAdapter",
    "FileAdapter",
    "PackageAdapter",
    "ServiceAdapter",
    "TemplateRenderer",
    "UserAdapter",
    "default_registry",
]
