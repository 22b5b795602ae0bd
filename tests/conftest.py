"""Fakes compartidos: runner de comandos con respuestas guionizadas y adapters en memoria."""

import copy
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from forja.core.errors import ApplyError, ProbeError
from forja.core.infra.base import BaseAdapter
from forja.core.infra.registry import AdapterRegistry
from forja.core.project.models import Action, ActionStatus, ActionVerb, Resource, ResourceKind
from forja.providers.commands import CommandResult, CommandRunner


class FakeRunner(CommandRunner):
    """
    CommandRunner que no ejecuta nada.

    script(prefix, ...) registra la respuesta para los comandos que empiezan
    por `prefix`; gana el prefijo más largo. Varias respuestas para el mismo
    prefijo se consumen en orden (la última se repite).
    """

    def __init__(self):
        super().__init__(timeout=5)
        self.calls: List[Dict[str, Any]] = []
        self._responses: Dict[Tuple[str, ...], List[CommandResult]] = {}

    def script(self, prefix: Sequence[str], returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        key = tuple(prefix)
        self._responses.setdefault(key, []).append(CommandResult(list(prefix), returncode, stdout, stderr))

    def run(self, argv, input=None, user=None, env=None, cwd=None) -> CommandResult:
        command = list(argv)
        self.calls.append({"argv": command, "input": input, "user": user, "env": env})
        matches = [k for k in self._responses if tuple(command[: len(k)]) == k]
        if not matches:
            return CommandResult(command, 0, "", "")
        queue = self._responses[max(matches, key=len)]
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        return CommandResult(command, response.returncode, response.stdout, response.stderr)

    @property
    def commands(self) -> List[List[str]]:
        return [c["argv"] for c in self.calls]


class MemoryAdapter(BaseAdapter):
    """Adapter sobre un dict: host[name] = atributos observados."""

    directives = frozenset({"action", "daemon_reload", "update_cache"})

    def __init__(self, kind: ResourceKind, host: Optional[Dict[str, Dict[str, Any]]] = None):
        self.kind = kind
        self.host: Dict[str, Dict[str, Any]] = host if host is not None else {}
        self.probed: List[str] = []
        self.applied: List[Action] = []
        self.fail_on: set = set()
        self.unreadable: set = set()

    def probe(self, resource: Resource) -> Optional[Dict[str, Any]]:
        self.probed.append(resource.name)
        if resource.name in self.unreadable:
            raise ProbeError(resource.id, "permiso denegado")
        observed = self.host.get(resource.name)
        return copy.deepcopy(observed) if observed is not None else None

    def apply(self, action: Action) -> ActionStatus:
        self.applied.append(action)
        resource = action.resource
        if resource.name in self.fail_on:
            raise ApplyError(resource.id, "fallo simulado")
        if action.verb == ActionVerb.REMOVE:
            self.host.pop(resource.name, None)
            return ActionStatus.APPLIED
        current = self.host.setdefault(resource.name, {})
        current.update(self.desired(resource))
        current.setdefault("state", "present")
        return ActionStatus.APPLIED


class MemoryHost:
    """Un adapter en memoria por kind, agrupados en un registry."""

    def __init__(self):
        self.adapters = {kind: MemoryAdapter(kind) for kind in ResourceKind}
        self.registry = AdapterRegistry(self.adapters.values())

    def __getitem__(self, kind: ResourceKind) -> MemoryAdapter:
        return self.adapters[kind]

    @property
    def applied(self) -> List[str]:
        return [a.resource_id for adapter in self.adapters.values() for a in adapter.applied]

    @property
    def probed(self) -> List[str]:
        return [name for adapter in self.adapters.values() for name in adapter.probed]


def make_resource(kind: str, name: str, depends_on=(), notify=(), **attributes) -> Resource:
    return Resource(
        kind=ResourceKind(kind),
        name=name,
        attributes=attributes,
        depends_on=tuple(depends_on),
        notify=tuple(notify),
    )


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def memory_host() -> MemoryHost:
    return MemoryHost()
