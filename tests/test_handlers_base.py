"""Unit tests for handlers/base.py -- subprocess seam, version checks, manifest discovery."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from core.errors import CommandError, FixReason, ManifestError, UnsupportedFixError
from core.models import FixTarget
from handlers.base import PackageHandler, declared_satisfies, run_command


class _TextHandler(PackageHandler):
    technology = "text"
    manifest_patterns = ("deps.txt",)
    build_tools = frozenset({"toolchain"})

    def update_dependency(self, target):
        self.updated = target


# ---------------------------------------------------------------------------
# run_command
# ---------------------------------------------------------------------------


class TestRunCommand:
    def test_returns_combined_output(self, tmp_path):
        proc = MagicMock(returncode=0, stdout="added 1 package\n")
        with patch("handlers.base.subprocess.run", return_value=proc) as mock_run:
            assert run_command(["npm", "install", "a@1.0.0"], tmp_path) == "added 1 package\n"
        args, kwargs = mock_run.call_args
        assert args[0] == ["npm", "install", "a@1.0.0"]
        assert kwargs["cwd"] == str(tmp_path)
        assert kwargs["stderr"] == subprocess.STDOUT

    def test_non_zero_exit_raises(self, tmp_path):
        proc = MagicMock(returncode=1, stdout="ERR! 404 Not Found")
        with patch("handlers.base.subprocess.run", return_value=proc):
            with pytest.raises(CommandError) as exc_info:
                run_command(["npm", "install", "nope@9.9.9"], tmp_path)
        err = exc_info.value
        assert err.returncode == 1
        assert "npm install nope@9.9.9" in str(err)
        assert "ERR! 404 Not Found" in str(err)

    def test_missing_executable_raises(self, tmp_path):
        with patch("handlers.base.subprocess.run", side_effect=FileNotFoundError("No such file: 'mvn'")):
            with pytest.raises(CommandError, match="mvn"):
                run_command(["mvn", "-v"], tmp_path)


# ---------------------------------------------------------------------------
# declared_satisfies
# ---------------------------------------------------------------------------


class TestDeclaredSatisfies:
    @pytest.mark.parametrize(
        "declared,fix",
        [("1.2.3", "1.2.3"), ("^1.2.3", "1.2.3"), ("~=2.0", "1.9"), (">=3.0.0", "2.5.0"), ("==1.0", "1.0"), ("v1.4.0", "1.4.0")],
    )
    def test_satisfied(self, declared, fix):
        assert declared_satisfies(declared, fix) is True

    @pytest.mark.parametrize(
        "declared,fix",
        [("1.2.2", "1.2.3"), ("^1.0.0", "1.2.3"), ("<2.0", "1.0"), ("!=1.0", "1.0"), ("", "1.0"), ("*", "1.0"), ("latest", "1.0")],
    )
    def test_not_satisfied(self, declared, fix):
        assert declared_satisfies(declared, fix) is False


# ---------------------------------------------------------------------------
# PackageHandler
# ---------------------------------------------------------------------------


class TestPackageHandler:
    def test_build_tool_refused(self, tmp_path, settings):
        handler = _TextHandler(tmp_path, settings)
        with pytest.raises(UnsupportedFixError) as exc_info:
            handler.apply_fix(FixTarget("Toolchain", "text", "1.0", "1.1", is_direct=True))
        assert exc_info.value.reason == FixReason.BUILD_TOOLS_DEPENDENCY

    def test_indirect_refused(self, tmp_path, settings):
        handler = _TextHandler(tmp_path, settings)
        with pytest.raises(UnsupportedFixError) as exc_info:
            handler.apply_fix(FixTarget("lib", "text", "1.0", "1.1", is_direct=False))
        assert exc_info.value.reason == FixReason.INDIRECT_DEPENDENCY
        assert "indirect dependency fix not supported" in str(exc_info.value)

    def test_direct_reaches_update(self, tmp_path, settings):
        handler = _TextHandler(tmp_path, settings)
        target = FixTarget("lib", "text", "1.0", "1.1", is_direct=True)
        handler.apply_fix(target)
        assert handler.updated is target

    def test_find_manifests_skips_vendored_dirs(self, tmp_path, settings):
        (tmp_path / "deps.txt").write_text("")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "deps.txt").write_text("")
        (tmp_path / "node_modules" / "x").mkdir(parents=True)
        (tmp_path / "node_modules" / "x" / "deps.txt").write_text("")
        handler = _TextHandler(tmp_path, settings)
        assert handler.find_manifests() == [tmp_path / "deps.txt", tmp_path / "sub" / "deps.txt"]

    def test_find_manifests_cached_per_instance(self, tmp_path, settings):
        handler = _TextHandler(tmp_path, settings)
        assert handler.find_manifests() == []
        (tmp_path / "deps.txt").write_text("")
        assert handler.find_manifests() == []
        assert _TextHandler(tmp_path, settings).find_manifests() == [tmp_path / "deps.txt"]

    def test_require_manifests(self, tmp_path, settings):
        with pytest.raises(ManifestError, match="no text manifest found"):
            _TextHandler(tmp_path, settings).require_manifests()
