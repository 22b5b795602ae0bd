"""
Renderizado de plantillas (Jinja2, StrictUndefined).

Se usa para sustituir variables de la declaración en atributos ({{ app_dir }})
y para generar el contenido de ficheros con `template:`.
"""

from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from jinja2 import Environment, StrictUndefined, TemplateError

from forja.core.errors import ConfigError


class TemplateRenderer:
    """Renderizador compartido entre el loader y el adapter de ficheros."""

    def __init__(self, variables: Optional[Mapping[str, Any]] = None):
        self.variables: Dict[str, Any] = dict(variables or {})
        self._env = Environment(
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )

    def with_variables(self, variables: Mapping[str, Any]) -> "TemplateRenderer":
        return TemplateRenderer({**self.variables, **variables})

    def render_string(self, text: str, extra: Optional[Mapping[str, Any]] = None) -> str:
        context = {**self.variables, **(extra or {})}
        try:
            return self._env.from_string(text).render(context)
        except TemplateError as e:
            raise ConfigError(f"Error de plantilla en {text[:60]!r}: {e}") from e

    def render_file(self, path: Path, extra: Optional[Mapping[str, Any]] = None) -> str:
        try:
            source = path.read_text()
        except OSError as e:
            raise ConfigError(f"No se pudo leer la plantilla {path}: {e}") from e
        context = {**self.variables, **(extra or {})}
        try:
            return self._env.from_string(source).render(context)
        except TemplateError as e:
            raise ConfigError(f"Error en la plantilla {path}: {e}") from e

    def render_value(self, value: Any, extra: Optional[Mapping[str, Any]] = None) -> Any:
        """Renderiza recursivamente strings dentro de dicts/listas; el resto se devuelve igual."""
        if isinstance(value, str):
            if "{{" in value or "{%" in value:
                return self.render_string(value, extra)
            return value
        if isinstance(value, dict):
            return {k: self.render_value(v, extra) for k, v in value.items()}
        if isinstance(value, list):
            return [self.render_value(v, extra) for v in value]
        return value
