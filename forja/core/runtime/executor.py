"""
Action Executor: aplica el plan en orden estricto a través de los adapters.

- no-op → skipped, sin llamar al adapter.
- ApplyError → failed; por defecto aborta el resto (not-run).
- continue_on_error: sigue, pero las acciones cuya dependencia (directa o
  transitiva) falló quedan not-run.
Cada acción produce exactamente un ActionResult; las ejecutadas emiten un ChangeEvent.
"""

import logging
import time
from typing import Callable, Iterable, List, Optional, Sequence, Set

from forja.core.errors import ApplyError
from forja.core.infra.registry import AdapterRegistry
from forja.core.project.models import Action, ActionStatus, ChangeEvent
from forja.core.runtime.report import ActionResult

logger = logging.getLogger(__name__)

EventSink = Callable[[ChangeEvent], None]


class ActionExecutor:

    def __init__(
        self,
        registry: AdapterRegistry,
        continue_on_error: bool = False,
        sinks: Optional[Iterable[EventSink]] = None,
    ):
        self.registry = registry
        self.continue_on_error = continue_on_error
        self._sinks: List[EventSink] = list(sinks or ())
        self.aborted = False

    def subscribe(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    def execute(self, actions: Sequence[Action]) -> List[ActionResult]:
        results: List[ActionResult] = []
        broken: Set[str] = set()  # fallidos o no ejecutados por dependencia
        self.aborted = False

        for action in actions:
            if self.aborted:
                results.append(ActionResult(action, ActionStatus.NOT_RUN, "ejecución abortada"))
                continue

            blocked_by = [d for d in action.resource.depends_on if d in broken]
            if blocked_by:
                broken.add(action.resource_id)
                results.append(ActionResult(
                    action, ActionStatus.NOT_RUN, f"dependencia fallida: {', '.join(blocked_by)}"
                ))
                continue

            result = self._run(action)
            results.append(result)
            self._emit(ChangeEvent(action, result.status))

            if result.status == ActionStatus.FAILED:
                broken.add(action.resource_id)
                if not self.continue_on_error:
                    logger.error("Abortando: %s falló", action.resource_id)
                    self.aborted = True
        return results

    def _run(self, action: Action) -> ActionResult:
        if action.is_noop:
            logger.debug("%s: ya satisfecho", action.resource_id)
            return ActionResult(action, ActionStatus.SKIPPED, "ya satisfecho")

        adapter = self.registry.get(action.resource.kind)
        logger.info("%s: %s", action.resource_id, action.verb.value)
        start = time.monotonic()
        try:
            status = adapter.apply(action)
        except ApplyError as e:
            elapsed = time.monotonic() - start
            logger.error("%s: %s", action.resource_id, e)
            return ActionResult(action, ActionStatus.FAILED, str(e), elapsed)
        elapsed = time.monotonic() - start
        message = action.describe() if status == ActionStatus.APPLIED else "sin cambios efectivos"
        return ActionResult(action, status, message, elapsed)

    def _emit(self, event: ChangeEvent) -> None:
        for sink in self._sinks:
            sink(event)
