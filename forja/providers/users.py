"""
Adapter de usuarios del sistema (useradd/usermod/userdel).

Atributos:
    state: present | absent
    shell, home: observables vía getent passwd
    groups: grupos suplementarios; semántica append (se añaden, nunca se quitan)
    system / create_home / remove_home: directivas de useradd/userdel
"""

from typing import Any, Dict, List, Optional

from forja.core.project.models import Action, ActionStatus, ActionVerb, Resource, ResourceKind
from forja.providers.commands import CommandAdapter


def _as_groups(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [g.strip() for g in value.split(",") if g.strip()]
    return [str(g) for g in value]


class UserAdapter(CommandAdapter):
    kind = ResourceKind.USER
    states = ("present", "absent")
    known_attributes = frozenset({"shell", "home", "groups"})
    directives = frozenset({"system", "create_home", "remove_home"})

    def validate(self, resource: Resource) -> List[str]:
        errors = super().validate(resource)
        if ":" in resource.name or " " in resource.name:
            errors.append(f"{resource.id}: nombre de usuario inválido")
        return errors

    def desired(self, resource: Resource) -> Dict[str, Any]:
        desired = super().desired(resource)
        desired.setdefault("state", "present")
        if "groups" in desired:
            desired["groups"] = sorted(set(_as_groups(desired["groups"])))
        return desired

    def probe(self, resource: Resource) -> Optional[Dict[str, Any]]:
        result = self.runner.run(["getent", "passwd", resource.name])
        if result.returncode == 2:
            return None
        if not result.ok:
            raise self._probe_error(resource.id, result)
        fields = result.stdout.strip().split(":")
        if len(fields) < 7:
            raise self._probe_error(resource.id, result)

        groups = self.runner.run(["id", "-nG", resource.name])
        if not groups.ok:
            raise self._probe_error(resource.id, groups)
        return {
            "state": "present",
            "home": fields[5],
            "shell": fields[6],
            "groups": sorted(set(groups.stdout.split())),
        }

    def differs(self, field: str, desired: Any, actual: Any) -> bool:
        if field == "groups":
            return not set(desired or []) <= set(actual or [])
        return desired != actual

    def apply(self, action: Action) -> ActionStatus:
        resource = action.resource
        attrs = resource.attributes
        name = resource.name

        if action.verb == ActionVerb.REMOVE:
            argv = ["userdel"]
            if attrs.get("remove_home"):
                argv.append("-r")
            self._check(resource.id, argv + [name])
            return ActionStatus.APPLIED

        groups = _as_groups(attrs.get("groups"))
        if action.verb == ActionVerb.CREATE:
            argv = ["useradd"]
            if attrs.get("system"):
                argv.append("-r")
            if attrs.get("create_home", not attrs.get("system")):
                argv.append("-m")
            if "shell" in attrs:
                argv += ["-s", attrs["shell"]]
            if "home" in attrs:
                argv += ["-d", attrs["home"]]
            if groups:
                argv += ["-G", ",".join(groups)]
            self._check(resource.id, argv + [name])
            return ActionStatus.APPLIED

        changes = action.changes()
        argv = ["usermod"]
        if "shell" in changes:
            argv += ["-s", changes["shell"]]
        if "home" in changes:
            argv += ["-d", changes["home"]]
        if "groups" in changes:
            argv += ["-a", "-G", ",".join(groups)]
        if len(argv) > 1:
            self._check(resource.id, argv + [name])
        return ActionStatus.APPLIED
