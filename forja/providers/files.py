"""
Adapter de ficheros y directorios (filesystem local).

El name del recurso es la ruta absoluta.

Atributos:
    state: file | directory | absent (por defecto file)
    content: contenido completo del fichero
    template: (directiva) plantilla Jinja2 → content; vars: variables extra
    source: (directiva) fichero local cuyo contenido se copia → content
    url: (directiva) recurso HTTP(S) de texto descargado → content (ej: claves de repositorios apt)
    line / regexp: una línea gestionada; si regexp coincide se reemplaza la
        última coincidencia, si no se añade al final
    mode: permisos en octal ("0644")
    owner / group: dueño y grupo
    recurse: (directiva) aplicar owner/group a todo el árbol de un directorio
"""

import grp
import os
import pwd
import re
import shutil
import stat
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from forja.core.errors import ApplyError, ConfigError, ProbeError
from forja.core.infra.base import BaseAdapter
from forja.core.project.models import Action, ActionStatus, ActionVerb, Resource, ResourceKind
from forja.providers.template import TemplateRenderer

_CONTENT_SOURCES = ("content", "template", "source", "url")
_DOWNLOAD_TIMEOUT = 30


def normalize_mode(value: Any) -> str:
    """
    '0755', '755', 0o755 (YAML lee 0755 como octal) → '0755'.

    >>> normalize_mode(0o644)
    '0644'
    >>> normalize_mode('755')
    '0755'
    """
    if isinstance(value, int):
        return format(value, "04o")
    text = str(value).strip().lower()
    if text.startswith("0o"):
        text = text[2:]
    if not re.fullmatch(r"[0-7]{3,4}", text):
        raise ValueError(f"modo inválido: {value!r}")
    return text.zfill(4)


def _user_name(uid: int) -> str:
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def _group_name(gid: int) -> str:
    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return str(gid)


class FileAdapter(BaseAdapter):
    kind = ResourceKind.FILE
    states = ("file", "directory", "absent")
    known_attributes = frozenset({"content", "line", "regexp", "mode", "owner", "group"})
    directives = frozenset({"template", "source", "url", "vars", "recurse"})

    def __init__(self, renderer: Optional[TemplateRenderer] = None, timeout: int = _DOWNLOAD_TIMEOUT):
        self.renderer = renderer or TemplateRenderer()
        self.timeout = timeout
        self._downloads: Dict[str, str] = {}

    def validate(self, resource: Resource) -> List[str]:
        errors = super().validate(resource)
        attrs = resource.attributes
        if not Path(resource.name).is_absolute():
            errors.append(f"{resource.id}: la ruta debe ser absoluta")
        sources = [k for k in _CONTENT_SOURCES if k in attrs]
        if len(sources) > 1:
            errors.append(f"{resource.id}: {', '.join(sources)} son excluyentes")
        if sources and "line" in attrs:
            errors.append(f"{resource.id}: line no se combina con {sources[0]}")
        for key in ("content", "line"):
            if key in attrs and isinstance(attrs[key], (dict, list, tuple, set)):
                errors.append(f"{resource.id}: {key} debe ser texto")
        if "url" in attrs and not str(attrs["url"]).startswith(("http://", "https://")):
            errors.append(f"{resource.id}: url debe ser http:// o https://")
        if "regexp" in attrs and "line" not in attrs:
            errors.append(f"{resource.id}: regexp requiere line")
        if "regexp" in attrs:
            try:
                re.compile(attrs["regexp"])
            except re.error as e:
                errors.append(f"{resource.id}: regexp inválida: {e}")
        state = attrs.get("state", "file")
        if state == "directory" and (sources or "line" in attrs):
            errors.append(f"{resource.id}: un directorio no tiene contenido")
        if "mode" in attrs:
            try:
                normalize_mode(attrs["mode"])
            except ValueError as e:
                errors.append(f"{resource.id}: {e}")
        return errors

    def desired(self, resource: Resource) -> Dict[str, Any]:
        attrs = resource.attributes
        desired = super().desired(resource)
        desired.pop("regexp", None)
        desired.setdefault("state", "file")
        for key in ("content", "line"):
            if key in desired and desired[key] is not None:
                desired[key] = str(desired[key])
        if "mode" in desired:
            desired["mode"] = normalize_mode(desired["mode"])
        if "template" in attrs:
            desired["content"] = self.renderer.render_file(Path(attrs["template"]), attrs.get("vars"))
        elif "source" in attrs:
            try:
                desired["content"] = Path(attrs["source"]).read_text()
            except OSError as e:
                raise ConfigError(f"{resource.id}: no se pudo leer source {attrs['source']}: {e}") from e
        elif "url" in attrs:
            desired["content"] = self._download(resource, str(attrs["url"]))
        return desired

    def _download(self, resource: Resource, url: str) -> str:
        """Descarga (una vez por ejecución) el contenido de texto de una URL."""
        if url not in self._downloads:
            try:
                response = requests.get(url, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                raise ConfigError(f"{resource.id}: no se pudo descargar {url}: {e}") from e
            if response.status_code != 200:
                raise ConfigError(f"{resource.id}: error {response.status_code} al descargar {url}")
            self._downloads[url] = response.text
        return self._downloads[url]

    def probe(self, resource: Resource) -> Optional[Dict[str, Any]]:
        path = Path(resource.name)
        attrs = resource.attributes
        try:
            st = path.stat()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ProbeError(resource.id, str(e)) from e

        is_dir = stat.S_ISDIR(st.st_mode)
        observed: Dict[str, Any] = {
            "state": "directory" if is_dir else "file",
            "mode": format(stat.S_IMODE(st.st_mode), "04o"),
            "owner": _user_name(st.st_uid),
            "group": _group_name(st.st_gid),
        }
        wants_text = any(k in attrs for k in _CONTENT_SOURCES) or "line" in attrs
        if is_dir or not wants_text:
            return observed
        try:
            text = path.read_text()
        except UnicodeDecodeError:
            text = None
        except OSError as e:
            raise ProbeError(resource.id, str(e)) from e
        if any(k in attrs for k in _CONTENT_SOURCES):
            observed["content"] = text
        if "line" in attrs:
            lines = text.splitlines() if text is not None else []
            line = str(attrs["line"])
            observed["line"] = line if line in lines else None
        return observed

    def apply(self, action: Action) -> ActionStatus:
        resource = action.resource
        path = Path(resource.name)
        try:
            if action.verb == ActionVerb.REMOVE:
                self._remove(path)
                return ActionStatus.APPLIED
            desired = self.desired(resource)
            if desired["state"] == "directory":
                path.mkdir(parents=True, exist_ok=True)
            elif "content" in desired:
                self._write(path, desired["content"])
            elif "line" in desired:
                self._ensure_line(path, desired["line"], resource.attributes.get("regexp"))
            elif not path.exists():
                path.parent.mkdir(parents=True, exist_ok=True)
                path.touch()
            if "mode" in desired:
                os.chmod(path, int(desired["mode"], 8))
            if "owner" in desired or "group" in desired:
                self._chown(path, desired.get("owner"), desired.get("group"), bool(resource.attributes.get("recurse")))
        except (OSError, LookupError, ConfigError) as e:
            raise ApplyError(resource.id, str(e)) from e
        return ActionStatus.APPLIED

    def _remove(self, path: Path) -> None:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink(missing_ok=True)

    def _write(self, path: Path, content: str) -> None:
        """Escritura atómica: fichero temporal en el mismo directorio + rename."""
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.is_file() and path.read_text(errors="replace") == content:
            return
        previous_mode = stat.S_IMODE(path.stat().st_mode) if path.exists() else None
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
            if previous_mode is not None:
                os.chmod(tmp, previous_mode)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def _ensure_line(self, path: Path, line: str, regexp: Optional[str]) -> None:
        lines = path.read_text().splitlines() if path.exists() else []
        if line in lines:
            return
        index = None
        if regexp:
            pattern = re.compile(regexp)
            matches = [i for i, current in enumerate(lines) if pattern.search(current)]
            if matches:
                index = matches[-1]
        if index is None:
            lines.append(line)
        else:
            lines[index] = line
        self._write(path, "\n".join(lines) + "\n")

    def _chown(self, path: Path, owner: Optional[str], group: Optional[str], recurse: bool) -> None:
        shutil.chown(path, owner, group)
        if recurse and path.is_dir():
            for root, dirs, files in os.walk(path):
                for name in dirs + files:
                    shutil.chown(os.path.join(root, name), owner, group)
