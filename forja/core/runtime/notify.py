"""
Notification Bus: agrupa los ChangeEvent y dispara handlers diferidos.

- Un handler se dispara como máximo una vez por ejecución, aunque lo
  activen varios eventos.
- Solo se dispara tras completar la lista primaria (nunca intercalado).
- Orden de disparo = orden de declaración de los handlers.
- Un handler fallido se reporta (HandlerError) y no revierte nada.
"""

import logging
from typing import Dict, List, Sequence, Set

from forja.core.errors import ApplyError, HandlerError
from forja.core.infra.registry import AdapterRegistry
from forja.core.project.models import Action, ActionVerb, ChangeEvent, HandlerSpec
from forja.core.runtime.report import HandlerResult, HandlerStatus
from forja.core.runtime.state import StateDiff

logger = logging.getLogger(__name__)


class NotificationBus:

    def __init__(self, handlers: Sequence[HandlerSpec]):
        self._handlers: List[HandlerSpec] = list(handlers)
        self._triggered: Dict[str, List[str]] = {h.name: [] for h in self._handlers}
        self._fired: Set[str] = set()

    def publish(self, event: ChangeEvent) -> None:
        """Registra un evento; solo los cambios efectivos (applied) activan handlers."""
        if not event.changed:
            return
        for handler in self._handlers:
            if event.resource_id in handler.triggers:
                sources = self._triggered[handler.name]
                if event.resource_id not in sources:
                    sources.append(event.resource_id)
                    logger.debug("Handler '%s' notificado por %s", handler.name, event.resource_id)

    __call__ = publish

    def pending(self) -> List[str]:
        """Handlers activados y aún no disparados, en orden de declaración."""
        return [h.name for h in self._handlers if self._triggered[h.name] and h.name not in self._fired]

    def flush(
        self,
        registry: AdapterRegistry,
        primary_aborted: bool = False,
        force: bool = False,
    ) -> List[HandlerResult]:
        """
        Dispara los handlers pendientes. Devuelve un resultado por handler declarado.

        Args:
            registry: adapters con los que ejecutar los efectos
            primary_aborted: la lista primaria no terminó
            force: disparar igualmente aunque la lista primaria abortara
        """
        results: List[HandlerResult] = []
        for handler in self._handlers:
            sources = list(self._triggered[handler.name])
            if not sources:
                results.append(HandlerResult(handler.name, HandlerStatus.NOT_TRIGGERED))
                continue
            if handler.name in self._fired:
                continue
            if primary_aborted and not force:
                results.append(HandlerResult(
                    handler.name, HandlerStatus.NOT_RUN, sources, "ejecución primaria abortada"
                ))
                continue
            self._fired.add(handler.name)
            try:
                self._fire(handler, registry)
            except HandlerError as e:
                logger.error("%s", e)
                results.append(HandlerResult(handler.name, HandlerStatus.FAILED, sources, e.reason))
                continue
            logger.info("Handler '%s' disparado", handler.name)
            results.append(HandlerResult(handler.name, HandlerStatus.FIRED, sources, "disparado"))
        return results

    def _fire(self, handler: HandlerSpec, registry: AdapterRegistry) -> None:
        resource = handler.effect.to_resource()
        diff = tuple(StateDiff(resource.id, k, v, None) for k, v in resource.attributes.items())
        action = Action(resource, ActionVerb.MODIFY, diff)
        try:
            adapter = registry.get(resource.kind)
            adapter.apply(action)
        except ApplyError as e:
            raise HandlerError(handler.name, str(e)) from e
