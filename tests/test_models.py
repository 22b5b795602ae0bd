"""Tests de modelos de declaración y validación estructural."""

import pytest

from forja.core.errors import CyclicDependencyError, ValidationError
from forja.core.project.models import (
    Action,
    ActionVerb,
    Declaration,
    HandlerEffect,
    HandlerSpec,
    Resource,
    ResourceKind,
    resource_id,
)
from forja.core.project.planner import order_resources
from forja.core.project.validator import collect_errors, validate_declaration, validate_identifier
from forja.core.runtime.state import StateDiff

from conftest import make_resource


def _handler(name, triggers=(), kind="service", target="nginx", **attributes):
    return HandlerSpec(
        name=name,
        triggers=triggers,
        effect=HandlerEffect(kind=ResourceKind(kind), name=target, attributes=attributes),
    )


class TestResource:
    def test_identifier_is_kind_and_name(self):
        resource = make_resource("package", "nginx")
        assert resource.id == "package:nginx"
        assert resource_id(ResourceKind.DB_OBJECT, "app_db") == "db-object:app_db"

    def test_single_string_references_become_tuples(self):
        resource = Resource(kind="service", name="nginx", depends_on="package:nginx")
        assert resource.depends_on == ("package:nginx",)

    def test_wants_absent(self):
        assert make_resource("package", "golang*", state="absent").wants_absent
        assert not make_resource("package", "git").wants_absent

    def test_resource_is_immutable(self):
        resource = make_resource("package", "git")
        with pytest.raises(Exception):
            resource.name = "other"


class TestEffectiveHandlers:
    def test_notify_extends_triggers_in_declaration_order(self):
        declaration = Declaration(
            resources=[
                make_resource("file", "/etc/nginx/a.conf", notify=["reload-nginx"]),
                make_resource("file", "/etc/nginx/b.conf", notify=["reload-nginx"]),
            ],
            handlers=[_handler("reload-nginx", triggers=["file:/etc/nginx/b.conf"], action="reloaded")],
        )
        handler = declaration.effective_handlers()[0]
        assert handler.triggers == ("file:/etc/nginx/b.conf", "file:/etc/nginx/a.conf")

    def test_declared_handlers_are_not_mutated(self):
        handler = _handler("reload-nginx")
        declaration = Declaration(
            resources=[make_resource("file", "/etc/nginx/a.conf", notify=["reload-nginx"])],
            handlers=[handler],
        )
        declaration.effective_handlers()
        assert declaration.handlers[0].triggers == ()


class TestAction:
    def test_changes_and_describe(self):
        resource = make_resource("package", "nginx", state="present")
        action = Action(resource, ActionVerb.CREATE, (StateDiff(resource.id, "state", "present", None),))
        assert action.changes() == {"state": "present"}
        assert action.describe().startswith("crear")
        assert action.to_dict()["verb"] == "create"

    def test_noop(self):
        action = Action(make_resource("package", "git"), ActionVerb.NOOP)
        assert action.is_noop
        assert action.describe() == "sin cambios"


class TestValidator:
    def test_valid_declaration(self):
        declaration = Declaration(
            resources=[
                make_resource("package", "nginx"),
                make_resource("service", "nginx", depends_on=["package:nginx"]),
            ],
            handlers=[_handler("reload-nginx", triggers=["package:nginx"])],
        )
        assert collect_errors(declaration) == []
        validate_declaration(declaration)

    def test_duplicate_resource(self):
        declaration = Declaration(resources=[make_resource("package", "git"), make_resource("package", "git")])
        with pytest.raises(ValidationError, match="Recurso duplicado: package:git"):
            validate_declaration(declaration)

    def test_same_name_different_kind_is_allowed(self):
        declaration = Declaration(resources=[make_resource("package", "nginx"), make_resource("service", "nginx")])
        assert collect_errors(declaration) == []

    def test_undeclared_dependency(self):
        declaration = Declaration(resources=[make_resource("service", "nginx", depends_on=["package:nginx"])])
        errors = collect_errors(declaration)
        assert any("no declarado 'package:nginx'" in e for e in errors)

    def test_self_dependency_is_a_cycle(self):
        declaration = Declaration(resources=[make_resource("package", "git", depends_on=["package:git"])])
        assert collect_errors(declaration) == []
        with pytest.raises(CyclicDependencyError) as excinfo:
            order_resources(declaration.resources)
        assert excinfo.value.cycle == ["package:git", "package:git"]

    def test_unknown_handler_in_notify(self):
        declaration = Declaration(resources=[make_resource("file", "/etc/x", notify=["nope"])])
        assert any("handler no declarado 'nope'" in e for e in collect_errors(declaration))

    def test_undeclared_trigger_and_duplicate_handler(self):
        declaration = Declaration(
            resources=[make_resource("package", "git")],
            handlers=[_handler("h", triggers=["file:/nope"]), _handler("h")],
        )
        errors = collect_errors(declaration)
        assert any("trigger no declarado 'file:/nope'" in e for e in errors)
        assert any("Handler duplicado" in e for e in errors)

    def test_errors_are_reported_together(self):
        declaration = Declaration(resources=[
            make_resource("package", "git"),
            make_resource("package", "git"),
            make_resource("service", "x", depends_on=["package:missing"]),
        ])
        with pytest.raises(ValidationError) as excinfo:
            validate_declaration(declaration)
        message = str(excinfo.value)
        assert "duplicado" in message
        assert "package:missing" in message

    @pytest.mark.parametrize("identifier", ["nginx", "package:", "daemon:nginx"])
    def test_invalid_identifiers(self, identifier):
        with pytest.raises(ValidationError):
            validate_identifier(identifier)
