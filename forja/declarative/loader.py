"""
Loader y parser de declaraciones
Carga YAML, resuelve variables y secretos, y los convierte a modelos Pydantic
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Set, Tuple

import yaml
from pydantic import ValidationError as PydanticValidationError

from forja.core.errors import ConfigError, ValidationError
from forja.core.project.models import Declaration, ResourceKind
from forja.providers.template import TemplateRenderer

logger = logging.getLogger(__name__)

# Claves de un recurso que no son atributos
_RESOURCE_KEYS = ("kind", "name", "depends_on", "notify", "description")
# Atributos de file con rutas relativas a la declaración
_PATH_ATTRIBUTES = ("template", "source")
# Atributos que nunca deben verse en claro
_SECRET_ATTRIBUTES = ("password",)


def _split_attributes(entry: Dict[str, Any], reserved: tuple) -> Dict[str, Any]:
    """Separa atributos del resto de claves; admite `attributes:` explícito o atributos en línea."""
    attributes = dict(entry.get("attributes") or {})
    for key, value in entry.items():
        if key not in reserved and key != "attributes":
            attributes[key] = value
    return attributes


class DeclarationLoader:
    """Carga una declaración YAML y recoge los secretos que contiene."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.base_dir = self.path.resolve().parent
        self.secrets: Set[str] = set()
        self.renderer = TemplateRenderer()

    def load(self) -> Declaration:
        """
        Carga la declaración completa

        Returns:
            Declaration validada estructuralmente (sin reglas de grafo)

        Raises:
            ConfigError: archivo ilegible, YAML inválido, secreto sin resolver
            ValidationError: estructura de la declaración inválida
        """
        data = self._read()
        variables = self._resolve_vars(data.get("vars") or {})
        self.renderer = TemplateRenderer(variables)

        resources = [self._resource(entry, i) for i, entry in enumerate(data.get("resources") or [])]
        handlers = [self._handler(entry, i) for i, entry in enumerate(data.get("handlers") or [])]
        try:
            declaration = Declaration(
                name=data.get("name") or self.path.stem,
                vars=variables,
                resources=resources,
                handlers=handlers,
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Declaración inválida en {self.path}:\n{e}") from e
        logger.debug(
            "Declaración '%s': %d recursos, %d handlers",
            declaration.name,
            len(declaration.resources),
            len(declaration.handlers),
        )
        return declaration

    def _read(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"No se pudo leer la declaración {self.path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"YAML inválido en {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise ValidationError(f"{self.path}: la raíz debe ser un mapa (vars, resources, handlers)")
        for key in ("resources", "handlers"):
            if data.get(key) is not None and not isinstance(data[key], list):
                raise ValidationError(f"{self.path}: '{key}' debe ser una lista")
        if data.get("vars") is not None and not isinstance(data["vars"], dict):
            raise ValidationError(f"{self.path}: 'vars' debe ser un mapa")
        return data

    def _resolve_vars(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        """Resuelve en orden: cada variable puede usar las anteriores."""
        resolved: Dict[str, Any] = {}
        for name, value in raw.items():
            if self._is_secret_ref(value):
                value = self._resolve_secret(name, value)
                if value:
                    self.secrets.add(value)
            else:
                value = TemplateRenderer(resolved).render_value(value)
            resolved[name] = value
        return resolved

    @staticmethod
    def _is_secret_ref(value: Any) -> bool:
        return isinstance(value, dict) and len(value) == 1 and next(iter(value)) in ("env", "file")

    def _resolve_secret(self, name: str, ref: Dict[str, str]) -> str:
        source, target = next(iter(ref.items()))
        if source == "env":
            value = os.environ.get(str(target))
            if value is None:
                raise ConfigError(f"Variable '{name}': la variable de entorno {target} no está definida")
            return value
        path = self._relative(str(target))
        try:
            return path.read_text().strip()
        except OSError as e:
            raise ConfigError(f"Variable '{name}': no se pudo leer {path}: {e}") from e

    def _relative(self, value: str) -> Path:
        path = Path(value).expanduser()
        return path if path.is_absolute() else self.base_dir / path

    def _resource(self, entry: Any, position: int) -> Dict[str, Any]:
        if not isinstance(entry, dict):
            raise ValidationError(f"{self.path}: resources[{position}] debe ser un mapa")
        entry = self.renderer.render_value(entry)
        attributes = _split_attributes(entry, _RESOURCE_KEYS)
        if entry.get("kind") == ResourceKind.FILE.value:
            for key in _PATH_ATTRIBUTES:
                if key in attributes:
                    attributes[key] = str(self._relative(str(attributes[key])))
        self._collect_secrets(attributes)
        resource = {k: entry[k] for k in _RESOURCE_KEYS if k in entry}
        resource["attributes"] = attributes
        return resource

    def _handler(self, entry: Any, position: int) -> Dict[str, Any]:
        if not isinstance(entry, dict):
            raise ValidationError(f"{self.path}: handlers[{position}] debe ser un mapa")
        entry = self.renderer.render_value(entry)
        effect = entry.get("effect")
        if not isinstance(effect, dict):
            raise ValidationError(f"{self.path}: handler '{entry.get('name')}' requiere 'effect'")
        attributes = _split_attributes(effect, ("kind", "name"))
        self._collect_secrets(attributes)
        return {
            "name": entry.get("name"),
            "triggers": entry.get("triggers") or (),
            "effect": {"kind": effect.get("kind"), "name": effect.get("name"), "attributes": attributes},
        }

    def _collect_secrets(self, attributes: Dict[str, Any]) -> None:
        for key in _SECRET_ATTRIBUTES:
            if attributes.get(key):
                self.secrets.add(str(attributes[key]))


def load_declaration(path: Path) -> Tuple[Declaration, List[str]]:
    """Atajo: (declaración, secretos a enmascarar)."""
    loader = DeclarationLoader(path)
    declaration = loader.load()
    return declaration, sorted(loader.secrets)
