"""Tests del adapter de ficheros y del renderizador de plantillas (sobre tmp_path)."""

import os
import stat

import pytest

from forja.core.engine import Engine
from forja.core.errors import ConfigError
from forja.core.infra.registry import AdapterRegistry
from forja.core.project.models import ActionStatus, ActionVerb, Declaration
from forja.core.project.planner import DiffPlanner
from forja.core.runtime.state import FactSnapshot
from forja.providers.files import FileAdapter, normalize_mode
from forja.providers.template import TemplateRenderer

from conftest import make_resource


class TestTemplateRenderer:
    def test_render_string(self):
        renderer = TemplateRenderer({"app_dir": "/opt/app"})
        assert renderer.render_string("{{ app_dir }}/app") == "/opt/app/app"

    def test_undefined_variable_is_an_error(self):
        with pytest.raises(ConfigError, match="app_dir"):
            TemplateRenderer().render_string("{{ app_dir }}")

    def test_render_value_is_recursive(self):
        renderer = TemplateRenderer({"user": "hng"})
        value = {"owner": "{{ user }}", "groups": ["{{ user }}", "sudo"], "mode": 493}
        assert renderer.render_value(value) == {"owner": "hng", "groups": ["hng", "sudo"], "mode": 493}

    def test_render_file_keeps_trailing_newline(self, tmp_path):
        template = tmp_path / "unit.j2"
        template.write_text("User={{ user }}\n")
        assert TemplateRenderer({"user": "hng"}).render_file(template) == "User=hng\n"

    def test_missing_template_file(self, tmp_path):
        with pytest.raises(ConfigError):
            TemplateRenderer().render_file(tmp_path / "missing.j2")

    def test_with_variables_does_not_mutate(self):
        base = TemplateRenderer({"a": "1"})
        extended = base.with_variables({"b": "2"})
        assert extended.render_string("{{ a }}{{ b }}") == "12"
        assert base.variables == {"a": "1"}


class TestNormalizeMode:
    @pytest.mark.parametrize("value, expected", [
        (0o755, "0755"),
        ("755", "0755"),
        ("0644", "0644"),
        ("0o600", "0600"),
    ])
    def test_forms(self, value, expected):
        assert normalize_mode(value) == expected

    def test_invalid(self):
        with pytest.raises(ValueError):
            normalize_mode("rwxr-xr-x")


class TestFileAdapter:
    def setup_method(self):
        self.adapter = FileAdapter(TemplateRenderer({"port": 3000}))
        self.planner = DiffPlanner(AdapterRegistry([self.adapter]))

    def _converge(self, resource):
        snapshot = FactSnapshot({resource.id: self.adapter.probe(resource)})
        action = self.planner.plan_resource(resource, snapshot)
        if not action.is_noop:
            assert self.adapter.apply(action) == ActionStatus.APPLIED
        return action

    def test_missing_file_probe(self, tmp_path):
        assert self.adapter.probe(make_resource("file", str(tmp_path / "nope"))) is None

    def test_write_content_and_mode(self, tmp_path):
        path = tmp_path / "conf.d" / "default.conf"
        resource = make_resource("file", str(path), content="server {}\n", mode="0640")

        action = self._converge(resource)
        assert action.verb == ActionVerb.CREATE
        assert path.read_text() == "server {}\n"
        assert stat.S_IMODE(path.stat().st_mode) == 0o640

        assert self._converge(resource).is_noop

    def test_content_drift_is_corrected(self, tmp_path):
        path = tmp_path / "motd"
        path.write_text("old\n")
        resource = make_resource("file", str(path), content="new\n")
        action = self._converge(resource)
        assert action.verb == ActionVerb.MODIFY
        assert action.changes() == {"content": "new\n"}
        assert path.read_text() == "new\n"

    def test_template(self, tmp_path):
        template = tmp_path / "nginx.conf.j2"
        template.write_text("proxy_pass http://127.0.0.1:{{ port }};\n")
        path = tmp_path / "default.conf"
        resource = make_resource("file", str(path), template=str(template))

        self._converge(resource)
        assert path.read_text() == "proxy_pass http://127.0.0.1:3000;\n"
        assert self._converge(resource).is_noop

    def test_template_extra_vars(self, tmp_path):
        template = tmp_path / "x.j2"
        template.write_text("{{ port }}-{{ name }}")
        path = tmp_path / "x"
        self._converge(make_resource("file", str(path), template=str(template), vars={"name": "app"}))
        assert path.read_text() == "3000-app"

    def test_source(self, tmp_path):
        source = tmp_path / "app-sample.env"
        source.write_text("PORT=3000\n")
        path = tmp_path / "app" / "app.env"
        self._converge(make_resource("file", str(path), source=str(source)))
        assert path.read_text() == "PORT=3000\n"

    def test_line_is_appended_once(self, tmp_path):
        path = tmp_path / "go.sh"
        resource = make_resource("file", str(path), line="export PATH=$PATH:/usr/local/go/bin")
        self._converge(resource)
        assert self._converge(resource).is_noop
        assert path.read_text() == "export PATH=$PATH:/usr/local/go/bin\n"

    def test_line_replaces_last_regexp_match(self, tmp_path):
        path = tmp_path / "postgresql.conf"
        path.write_text("#listen_addresses = 'localhost'\nport = 5432\n")
        resource = make_resource(
            "file", str(path), regexp=r"^#?listen_addresses\s*=", line="listen_addresses = '*'"
        )
        action = self._converge(resource)
        assert action.verb == ActionVerb.MODIFY
        assert path.read_text() == "listen_addresses = '*'\nport = 5432\n"
        assert self._converge(resource).is_noop

    def test_directory(self, tmp_path):
        path = tmp_path / "opt" / "app"
        resource = make_resource("file", str(path), state="directory", mode="0700")
        self._converge(resource)
        assert path.is_dir()
        assert stat.S_IMODE(path.stat().st_mode) == 0o700
        assert self._converge(resource).is_noop

    def test_remove_directory_tree(self, tmp_path):
        path = tmp_path / "old"
        (path / "sub").mkdir(parents=True)
        (path / "sub" / "f").write_text("x")
        action = self._converge(make_resource("file", str(path), state="absent"))
        assert action.verb == ActionVerb.REMOVE
        assert not path.exists()

    def test_probe_reports_owner_and_mode(self, tmp_path):
        path = tmp_path / "f"
        path.write_text("x")
        os.chmod(path, 0o600)
        observed = self.adapter.probe(make_resource("file", str(path), mode="0600"))
        assert observed["state"] == "file"
        assert observed["mode"] == "0600"
        assert observed["owner"]
        assert "content" not in observed

    def test_validation(self):
        assert self.adapter.validate(make_resource("file", "relative/path")) != []
        assert self.adapter.validate(make_resource("file", "/etc/x", content="a", template="t.j2")) != []
        assert self.adapter.validate(make_resource("file", "/etc/x", content="a", line="b")) != []
        assert self.adapter.validate(make_resource("file", "/etc/x", regexp="^a")) != []
        assert self.adapter.validate(make_resource("file", "/etc/x", state="directory", content="a")) != []
        assert self.adapter.validate(make_resource("file", "/etc/x", mode="999")) != []
        assert self.adapter.validate(make_resource("file", "/etc/x", content="a", mode="0644")) == []

    def test_numeric_content_is_written_as_text(self, tmp_path):
        path = tmp_path / "port"
        resource = make_resource("file", str(path), content=8080)
        assert self._converge(resource).verb == ActionVerb.CREATE
        assert path.read_text() == "8080"
        assert self._converge(resource).is_noop

    def test_numeric_line(self, tmp_path):
        path = tmp_path / "ports.conf"
        path.write_text("Listen 80\n")
        resource = make_resource("file", str(path), line=8080)
        self._converge(resource)
        assert path.read_text() == "Listen 80\n8080\n"
        assert self._converge(resource).is_noop

    def test_non_scalar_content_is_rejected(self):
        assert self.adapter.validate(make_resource("file", "/etc/x", content=["a", "b"])) != []
        assert self.adapter.validate(make_resource("file", "/etc/x", line={"a": 1})) != []

    def test_symlink_reports_target_mode(self, tmp_path):
        target = tmp_path / "real.conf"
        target.write_text("x")
        os.chmod(target, 0o640)
        link = tmp_path / "link.conf"
        link.symlink_to(target)
        resource = make_resource("file", str(link), mode="0640")
        assert self.adapter.probe(resource)["mode"] == "0640"
        assert self._converge(resource).is_noop

    def test_numeric_content_converges_through_engine(self, tmp_path):
        path = tmp_path / "port"
        path.write_text("8080")
        declaration = Declaration(resources=[make_resource("file", str(path), content=8080)])
        engine = Engine(AdapterRegistry([self.adapter]), continue_on_error=True)
        assert engine.plan(declaration).converged
        report = engine.run(declaration)
        assert report.exit_code == 0
        assert [r.status for r in report.actions] == [ActionStatus.SKIPPED]

    def test_url_content_is_downloaded_once(self, tmp_path, monkeypatch):
        calls = []

        class _Response:
            status_code = 200
            text = "-----BEGIN PGP PUBLIC KEY BLOCK-----\n"

        def fake_get(url, timeout):
            calls.append(url)
            return _Response()

        monkeypatch.setattr("forja.providers.files.requests.get", fake_get)
        path = tmp_path / "keyrings" / "nginx.asc"
        resource = make_resource("file", str(path), url="https://nginx.org/keys/nginx_signing.key")
        assert self._converge(resource).verb == ActionVerb.CREATE
        assert path.read_text() == "-----BEGIN PGP PUBLIC KEY BLOCK-----\n"
        assert self._converge(resource).is_noop
        assert calls == ["https://nginx.org/keys/nginx_signing.key"]

    def test_url_http_error(self, monkeypatch):
        class _Response:
            status_code = 404
            text = "not found"

        monkeypatch.setattr("forja.providers.files.requests.get", lambda url, timeout: _Response())
        with pytest.raises(ConfigError, match="404"):
            self.adapter.desired(make_resource("file", "/etc/apt/keyrings/x.asc", url="https://example.org/x"))

    def test_url_validation(self):
        assert self.adapter.validate(make_resource("file", "/etc/x", url="ftp://example.org/x")) != []
        assert self.adapter.validate(make_resource("file", "/etc/x", url="https://example.org/x", content="a")) != []
