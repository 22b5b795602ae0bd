"""
Adapter de servicios (systemd).

Atributos:
    state: running | stopped
    enabled: arranque en boot
    daemon_reload: (directiva) systemctl daemon-reload antes de actuar
    action: (directiva, pensada para handlers) restarted | reloaded | started | stopped
"""

from typing import Any, Dict, List, Optional

from forja.core.project.models import Action, ActionStatus, Resource, ResourceKind
from forja.providers.commands import CommandAdapter

_ACTIVE = ("active", "activating", "reloading")
_ACTIONS = {
    "restarted": "restart",
    "reloaded": "reload",
    "started": "start",
    "stopped": "stop",
}


class ServiceAdapter(CommandAdapter):
    kind = ResourceKind.SERVICE
    states = ("running", "stopped")
    known_attributes = frozenset({"enabled"})
    directives = frozenset({"daemon_reload", "action"})

    def validate(self, resource: Resource) -> List[str]:
        errors = super().validate(resource)
        action = resource.attributes.get("action")
        if action is not None and action not in _ACTIONS:
            errors.append(
                f"{resource.id}: action '{action}' no válida (permitidas: {', '.join(_ACTIONS)})"
            )
        if "enabled" in resource.attributes and not isinstance(resource.attributes["enabled"], bool):
            errors.append(f"{resource.id}: enabled debe ser booleano")
        return errors

    def probe(self, resource: Resource) -> Optional[Dict[str, Any]]:
        result = self.runner.run([
            "systemctl", "show", resource.name,
            "--property=LoadState,ActiveState,UnitFileState", "--no-pager",
        ])
        if not result.ok:
            raise self._probe_error(resource.id, result)
        props: Dict[str, str] = {}
        for line in result.stdout.splitlines():
            key, sep, value = line.partition("=")
            if sep:
                props[key.strip()] = value.strip()
        if props.get("LoadState", "not-found") == "not-found":
            return None
        return {
            "state": "running" if props.get("ActiveState") in _ACTIVE else "stopped",
            "enabled": props.get("UnitFileState", "").startswith("enabled"),
        }

    def apply(self, action: Action) -> ActionStatus:
        resource = action.resource
        attrs = resource.attributes
        changes = action.changes()

        if attrs.get("daemon_reload"):
            self._check(resource.id, ["systemctl", "daemon-reload"])

        if attrs.get("action"):
            self._check(resource.id, ["systemctl", _ACTIONS[attrs["action"]], resource.name])
        elif "state" in changes:
            verb = "start" if changes["state"] == "running" else "stop"
            self._check(resource.id, ["systemctl", verb, resource.name])

        if "enabled" in changes:
            verb = "enable" if changes["enabled"] else "disable"
            self._check(resource.id, ["systemctl", verb, resource.name])
        return ActionStatus.APPLIED
