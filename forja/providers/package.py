"""
Adapter de paquetes (apt/dpkg).

Atributos:
    state: present | absent
    version: patrón glob de versión (ej: 1.26.*); se instala como <name>=<version>
    update_cache: (directiva) apt-get update antes de instalar
    purge: (directiva) purgar configuración al eliminar

El nombre puede ser un glob (golang*) solo con state: absent.
"""

import fnmatch
from typing import Any, Dict, List, Optional

from forja.core.project.models import Action, ActionStatus, ActionVerb, Resource, ResourceKind
from forja.providers.commands import CommandAdapter

_APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}
_QUERY_FORMAT = "${Package}\t${Status}\t${Version}\n"


def _is_glob(name: str) -> bool:
    return any(c in name for c in "*?[")


class PackageAdapter(CommandAdapter):
    kind = ResourceKind.PACKAGE
    states = ("present", "absent")
    known_attributes = frozenset({"version"})
    directives = frozenset({"update_cache", "purge"})

    def validate(self, resource: Resource) -> List[str]:
        errors = super().validate(resource)
        if _is_glob(resource.name) and not resource.wants_absent:
            errors.append(f"{resource.id}: un nombre con glob solo admite state: absent")
        if "version" in resource.attributes and resource.wants_absent:
            errors.append(f"{resource.id}: version no tiene sentido con state: absent")
        return errors

    def desired(self, resource: Resource) -> Dict[str, Any]:
        desired = super().desired(resource)
        desired.setdefault("state", "present")
        if "version" in desired:
            desired["version"] = str(desired["version"])
        return desired

    def probe(self, resource: Resource) -> Optional[Dict[str, Any]]:
        result = self.runner.run(["dpkg-query", "-W", f"-f={_QUERY_FORMAT}", resource.name])
        if not result.ok:
            if result.returncode == 1 and "no packages found" in result.output.lower():
                return None
            raise self._probe_error(resource.id, result)

        installed = []
        for line in result.stdout.splitlines():
            parts = line.split("\t")
            if len(parts) < 3:
                continue
            package, status, version = parts[0], parts[1], parts[2]
            if status.split()[-1:] == ["installed"]:
                installed.append((package, version))
        if not installed:
            return None
        return {"state": "present", "version": installed[0][1]}

    def differs(self, field: str, desired: Any, actual: Any) -> bool:
        if field == "version":
            return actual is None or not fnmatch.fnmatchcase(str(actual), str(desired))
        return desired != actual

    def apply(self, action: Action) -> ActionStatus:
        resource = action.resource
        attrs = resource.attributes

        if action.verb == ActionVerb.REMOVE:
            verb = "purge" if attrs.get("purge") else "remove"
            self._check(resource.id, ["apt-get", verb, "-y", "-q", resource.name], env=_APT_ENV)
            return ActionStatus.APPLIED

        if attrs.get("update_cache"):
            self._check(resource.id, ["apt-get", "update", "-q"], env=_APT_ENV)
        target = resource.name
        if "version" in attrs:
            target = f"{resource.name}={attrs['version']}"
        self._check(
            resource.id,
            ["apt-get", "install", "-y", "-q", "--no-install-recommends", target],
            env=_APT_ENV,
        )
        return ActionStatus.APPLIED
