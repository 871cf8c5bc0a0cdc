"""Unit tests for handlers/go.py -- go.mod parsing and go tool invocations."""

from unittest.mock import patch

import pytest

from core.errors import FixReason, ManifestError, UnsupportedFixError
from core.models import FixTarget
from handlers.go import GoHandler, Replace, go_version, parse_go_mod

_GO_MOD = """module example.com/app

go 1.20

require (
	github.com/gin-gonic/gin v1.7.0
	golang.org/x/net v0.7.0 // indirect
)

require gopkg.in/yaml.v3 v3.0.0

replace github.com/old/lib v1.0.0 => github.com/new/lib v1.1.0

replace example.com/local => ../local
"""


def _target(name, fix, is_direct=True):
    return FixTarget(name, "go", "", fix, is_direct=is_direct)


@pytest.fixture
def project(tmp_path):
    (tmp_path / "go.mod").write_text(_GO_MOD, encoding="utf-8")
    return tmp_path


class TestParseGoMod:
    def test_requires_and_replaces(self):
        requires, replaces = parse_go_mod(_GO_MOD)
        assert requires == {
            "github.com/gin-gonic/gin": "v1.7.0",
            "golang.org/x/net": "v0.7.0",
            "gopkg.in/yaml.v3": "v3.0.0",
        }
        assert replaces == [
            Replace("github.com/old/lib", "v1.0.0", "github.com/new/lib", "v1.1.0"),
            Replace("example.com/local", "", "../local", ""),
        ]
        assert replaces[1].is_local

    def test_go_version(self):
        assert go_version("1.2.3") == "v1.2.3"
        assert go_version("v1.2.3") == "v1.2.3"


class TestGoFix:
    def test_required_module(self, project, settings):
        handler = GoHandler(project, settings)
        with patch.object(handler, "run_command") as run:
            handler.apply_fix(_target("github.com/gin-gonic/gin", "1.9.1"))
        run.assert_called_once_with(["go", "get", "github.com/gin-gonic/gin@v1.9.1"], project)

    def test_indirect_module_accepted(self, project, settings):
        handler = GoHandler(project, settings)
        with patch.object(handler, "run_command") as run:
            handler.apply_fix(_target("golang.org/x/net", "0.17.0", is_direct=False))
        run.assert_called_once_with(["go", "get", "golang.org/x/net@v0.17.0"], project)

    def test_unlisted_module_added_at_root(self, project, settings):
        handler = GoHandler(project, settings)
        with patch.object(handler, "run_command") as run:
            handler.apply_fix(_target("github.com/transitive/dep", "1.0.1", is_direct=False))
        run.assert_called_once_with(["go", "get", "github.com/transitive/dep@v1.0.1"], project)

    def test_replace_directive(self, project, settings):
        handler = GoHandler(project, settings)
        with patch.object(handler, "run_command") as run:
            handler.apply_fix(_target("github.com/new/lib", "1.2.0"))
        run.assert_called_once_with(
            ["go", "mod", "edit", "-replace=github.com/old/lib@v1.0.0=github.com/new/lib@v1.2.0"], project
        )

    def test_local_replace_refused(self, project, settings):
        handler = GoHandler(project, settings)
        with patch.object(handler, "run_command") as run:
            with pytest.raises(UnsupportedFixError):
                handler.apply_fix(_target("example.com/local", "1.0.0"))
        run.assert_not_called()

    def test_toolchain_refused(self, project, settings):
        with pytest.raises(UnsupportedFixError) as exc_info:
            GoHandler(project, settings).apply_fix(_target("github.com/golang/go", "1.21.0"))
        assert exc_info.value.reason == FixReason.BUILD_TOOLS_DEPENDENCY

    def test_already_fixed_is_noop(self, project, settings):
        handler = GoHandler(project, settings)
        with patch.object(handler, "run_command") as run:
            handler.apply_fix(_target("github.com/gin-gonic/gin", "1.7.0"))
        run.assert_not_called()

    def test_nested_module_runs_in_its_directory(self, tmp_path, settings):
        (tmp_path / "tools").mkdir()
        (tmp_path / "tools" / "go.mod").write_text("module example.com/tools\n\nrequire gopkg.in/yaml.v3 v3.0.0\n")
        handler = GoHandler(tmp_path, settings)
        with patch.object(handler, "run_command") as run:
            handler.apply_fix(_target("gopkg.in/yaml.v3", "3.0.1"))
        run.assert_called_once_with(["go", "get", "gopkg.in/yaml.v3@v3.0.1"], tmp_path / "tools")

    def test_unlisted_module_without_root_go_mod_refused(self, tmp_path, settings):
        (tmp_path / "tools").mkdir()
        (tmp_path / "tools" / "go.mod").write_text("module example.com/tools\n")
        with pytest.raises(UnsupportedFixError):
            GoHandler(tmp_path, settings).apply_fix(_target("github.com/other/dep", "1.0.0"))

    def test_no_go_mod(self, tmp_path, settings):
        with pytest.raises(ManifestError):
            GoHandler(tmp_path, settings).apply_fix(_target("github.com/other/dep", "1.0.0"))
