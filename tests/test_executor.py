"""Tests del ActionExecutor y del NotificationBus."""

from forja.core.project.models import (
    Action,
    ActionStatus,
    ActionVerb,
    ChangeEvent,
    HandlerEffect,
    HandlerSpec,
    ResourceKind,
)
from forja.core.runtime.executor import ActionExecutor
from forja.core.runtime.notify import NotificationBus
from forja.core.runtime.report import HandlerStatus
from forja.core.runtime.state import StateDiff

from conftest import make_resource


def _create(kind, name, depends_on=()):
    resource = make_resource(kind, name, depends_on=depends_on, state="present")
    return Action(resource, ActionVerb.CREATE, (StateDiff(resource.id, "state", "present", None),))


def _noop(kind, name):
    return Action(make_resource(kind, name), ActionVerb.NOOP)


class TestActionExecutor:
    def test_noop_is_skipped_without_calling_adapter(self, memory_host):
        results = ActionExecutor(memory_host.registry).execute([_noop("package", "git")])
        assert results[0].status == ActionStatus.SKIPPED
        assert memory_host.applied == []

    def test_actions_are_applied_in_order(self, memory_host):
        actions = [_create("package", "nginx"), _create("service", "nginx", ["package:nginx"])]
        results = ActionExecutor(memory_host.registry).execute(actions)
        assert [r.status for r in results] == [ActionStatus.APPLIED, ActionStatus.APPLIED]
        assert memory_host.applied == ["package:nginx", "service:nginx"]

    def test_failure_aborts_remaining_actions(self, memory_host):
        memory_host[ResourceKind.PACKAGE].fail_on.add("broken")
        executor = ActionExecutor(memory_host.registry)
        results = executor.execute([
            _create("package", "git"),
            _create("package", "broken"),
            _create("package", "acl"),
            _noop("package", "curl"),
        ])
        assert [r.status for r in results] == [
            ActionStatus.APPLIED,
            ActionStatus.FAILED,
            ActionStatus.NOT_RUN,
            ActionStatus.NOT_RUN,
        ]
        assert executor.aborted
        assert "fallo simulado" in results[1].message
        assert "package:acl" not in memory_host.applied

    def test_continue_on_error_skips_only_dependents(self, memory_host):
        memory_host[ResourceKind.PACKAGE].fail_on.add("nginx")
        executor = ActionExecutor(memory_host.registry, continue_on_error=True)
        results = executor.execute([
            _create("package", "nginx"),
            _create("file", "/etc/nginx/conf.d/default.conf", ["package:nginx"]),
            _create("service", "nginx", ["file:/etc/nginx/conf.d/default.conf"]),
            _create("package", "git"),
        ])
        statuses = {r.resource_id: r.status for r in results}
        assert statuses == {
            "package:nginx": ActionStatus.FAILED,
            "file:/etc/nginx/conf.d/default.conf": ActionStatus.NOT_RUN,
            "service:nginx": ActionStatus.NOT_RUN,
            "package:git": ActionStatus.APPLIED,
        }
        assert not executor.aborted
        assert "package:nginx" in results[1].message

    def test_every_executed_action_emits_one_event(self, memory_host):
        events = []
        executor = ActionExecutor(memory_host.registry, sinks=[events.append])
        executor.execute([_create("package", "git"), _noop("package", "acl")])
        assert [(e.resource_id, e.status) for e in events] == [
            ("package:git", ActionStatus.APPLIED),
            ("package:acl", ActionStatus.SKIPPED),
        ]

    def test_subscribe_adds_sink(self, memory_host):
        events = []
        executor = ActionExecutor(memory_host.registry)
        executor.subscribe(events.append)
        executor.execute([_create("package", "git")])
        assert len(events) == 1


def _restart(name, service, triggers):
    return HandlerSpec(
        name=name,
        triggers=triggers,
        effect=HandlerEffect(kind=ResourceKind.SERVICE, name=service, attributes={"action": "restarted"}),
    )


class TestNotificationBus:
    def setup_method(self):
        self.handlers = [
            _restart("restart-postgres", "postgresql", ["file:/etc/pg_hba.conf", "file:/etc/postgresql.conf"]),
            _restart("restart-app", "app", ["file:/etc/app.service"]),
            _restart("reload-nginx", "nginx", ["file:/etc/nginx.conf"]),
        ]

    def _event(self, name, status=ActionStatus.APPLIED):
        return ChangeEvent(_create("file", name), status)

    def test_handler_fires_once_for_many_events(self, memory_host):
        bus = NotificationBus(self.handlers)
        bus.publish(self._event("/etc/pg_hba.conf"))
        bus.publish(self._event("/etc/postgresql.conf"))
        results = bus.flush(memory_host.registry)

        by_name = {r.name: r for r in results}
        assert by_name["restart-postgres"].status == HandlerStatus.FIRED
        assert by_name["restart-postgres"].triggered_by == ["file:/etc/pg_hba.conf", "file:/etc/postgresql.conf"]
        assert memory_host.applied == ["service:postgresql"]

    def test_unchanged_resources_do_not_trigger(self, memory_host):
        bus = NotificationBus(self.handlers)
        bus.publish(self._event("/etc/nginx.conf", ActionStatus.SKIPPED))
        bus.publish(self._event("/etc/app.service", ActionStatus.FAILED))
        assert bus.pending() == []
        results = bus.flush(memory_host.registry)
        assert {r.status for r in results} == {HandlerStatus.NOT_TRIGGERED}
        assert memory_host.applied == []

    def test_handlers_fire_in_declaration_order(self, memory_host):
        bus = NotificationBus(self.handlers)
        bus(self._event("/etc/nginx.conf"))
        bus(self._event("/etc/app.service"))
        bus(self._event("/etc/pg_hba.conf"))
        assert bus.pending() == ["restart-postgres", "restart-app", "reload-nginx"]
        bus.flush(memory_host.registry)
        assert memory_host.applied == ["service:postgresql", "service:app", "service:nginx"]

    def test_second_flush_does_not_fire_again(self, memory_host):
        bus = NotificationBus(self.handlers)
        bus.publish(self._event("/etc/nginx.conf"))
        bus.flush(memory_host.registry)
        bus.flush(memory_host.registry)
        assert memory_host.applied == ["service:nginx"]

    def test_aborted_run_reports_not_run(self, memory_host):
        bus = NotificationBus(self.handlers)
        bus.publish(self._event("/etc/nginx.conf"))
        results = bus.flush(memory_host.registry, primary_aborted=True)
        assert {r.name: r.status for r in results}["reload-nginx"] == HandlerStatus.NOT_RUN
        assert memory_host.applied == []

    def test_force_fires_after_abort(self, memory_host):
        bus = NotificationBus(self.handlers)
        bus.publish(self._event("/etc/nginx.conf"))
        results = bus.flush(memory_host.registry, primary_aborted=True, force=True)
        assert {r.name: r.status for r in results}["reload-nginx"] == HandlerStatus.FIRED

    def test_failed_handler_does_not_stop_others(self, memory_host):
        memory_host[ResourceKind.SERVICE].fail_on.add("postgresql")
        bus = NotificationBus(self.handlers)
        bus.publish(self._event("/etc/pg_hba.conf"))
        bus.publish(self._event("/etc/nginx.conf"))
        results = {r.name: r for r in bus.flush(memory_host.registry)}
        assert results["restart-postgres"].status == HandlerStatus.FAILED
        assert "fallo simulado" in results["restart-postgres"].message
        assert results["reload-nginx"].status == HandlerStatus.FIRED
