"""Unit tests for handlers/pip.py, handlers/pipenv.py and handlers/poetry.py."""

from unittest.mock import patch

import pytest

from core.config import Settings
from core.errors import FixReason, ManifestError, UnsupportedFixError
from core.models import FixTarget
from handlers.pip import PipHandler, replace_requirement_versions
from handlers.pipenv import PipenvHandler
from handlers.poetry import PoetryHandler

_REQUIREMENTS = """# web
Django[bcrypt] >= 3.2.1
requests==2.25.0
types-requests==2.25.0
PyYAML==5.3
zope.interface==5.0
urllib3
"""

_PIPFILE = """[[source]]
url = "https://pypi.org/simple"
verify_ssl = true
name = "pypi"

[packages]
requests = "==2.25.0"
flask = {version = "==1.1.2", extras = ["async"]}

[dev-packages]
pytest = "*"
"""

_PYPROJECT = """[tool.poetry]
name = "app"
version = "0.1.0"

[tool.poetry.dependencies]
python = "^3.10"
requests = "^2.25.0"
Jinja2 = {version = "^2.11", optional = true}

[tool.poetry.group.test.dependencies]
pytest = "^6.2.0"

[tool.poetry.dev-dependencies]
black = "22.1.0"
"""


def _target(name, fix, technology="pip", is_direct=True):
    return FixTarget(name, technology, "", fix, is_direct=is_direct)


# ---------------------------------------------------------------------------
# pip
# ---------------------------------------------------------------------------


class TestRequirementEdits:
    def test_extras_spacing_and_operator_kept(self):
        text, found = replace_requirement_versions(_REQUIREMENTS, "django", "3.2.19")
        assert found
        assert "Django[bcrypt] >= 3.2.19\n" in text

    def test_separator_insensitive_names(self):
        text, found = replace_requirement_versions(_REQUIREMENTS, "zope-interface", "5.5.2")
        assert found
        assert "zope.interface==5.5.2" in text

    def test_prefixed_package_untouched(self):
        text, _ = replace_requirement_versions(_REQUIREMENTS, "requests", "2.31.0")
        assert "\nrequests==2.31.0\n" in text
        assert "types-requests==2.25.0" in text

    def test_unpinned_requirement_gets_pinned(self):
        text, found = replace_requirement_versions(_REQUIREMENTS, "urllib3", "1.26.18")
        assert found
        assert text.endswith("\nurllib3==1.26.18\n")

    def test_name_in_comment_or_prose_ignored(self):
        text, found = replace_requirement_versions("# requests\n# we use requests a lot\n", "requests", "2.31.0")
        assert not found
        assert text == "# requests\n# we use requests a lot\n"

    def test_longer_name_not_matched(self):
        text, found = replace_requirement_versions("requests-toolbelt\n", "requests", "2.31.0")
        assert not found
        assert text == "requests-toolbelt\n"


class TestPipFix:
    @pytest.fixture
    def project(self, tmp_path):
        (tmp_path / "requirements.txt").write_text(_REQUIREMENTS, encoding="utf-8")
        return tmp_path

    def test_requirements_file(self, project, settings):
        PipHandler(project, settings).apply_fix(_target("PyYAML", "5.4"))
        assert "PyYAML==5.4\n" in (project / "requirements.txt").read_text()

    def test_setup_py(self, tmp_path, settings):
        (tmp_path / "setup.py").write_text(
            'from setuptools import setup\nsetup(name="x", install_requires=["requests>=2.20.0"])\n', encoding="utf-8"
        )
        PipHandler(tmp_path, settings).apply_fix(_target("requests", "2.31.0"))
        assert '"requests>=2.31.0"' in (tmp_path / "setup.py").read_text()

    def test_configured_requirements_file(self, tmp_path):
        (tmp_path / "requirements").mkdir()
        (tmp_path / "requirements" / "prod.txt").write_text("requests==2.25.0\n", encoding="utf-8")
        (tmp_path / "requirements.txt").write_text("requests==2.25.0\n", encoding="utf-8")
        settings = Settings(_env_file=None, requirements_file="requirements/prod.txt")
        PipHandler(tmp_path, settings).apply_fix(_target("requests", "2.31.0"))
        assert (tmp_path / "requirements" / "prod.txt").read_text() == "requests==2.31.0\n"
        assert (tmp_path / "requirements.txt").read_text() == "requests==2.25.0\n"

    def test_unpinned_requirement_pinned(self, project, settings):
        handler = PipHandler(project, settings)
        handler.apply_fix(_target("urllib3", "1.26.18"))
        handler.apply_fix(_target("urllib3", "1.26.18"))
        assert (project / "requirements.txt").read_text().count("urllib3==1.26.18") == 1

    def test_unpinned_setup_py_requirement(self, tmp_path, settings):
        (tmp_path / "setup.py").write_text(
            'from setuptools import setup\nsetup(name="x", install_requires=["requests"])\n', encoding="utf-8"
        )
        PipHandler(tmp_path, settings).apply_fix(_target("requests", "2.31.0"))
        assert '"requests==2.31.0"' in (tmp_path / "setup.py").read_text()

    def test_undeclared_refused(self, project, settings):
        with pytest.raises(UnsupportedFixError) as exc_info:
            PipHandler(project, settings).apply_fix(_target("flask", "2.3.2"))
        assert exc_info.value.reason == FixReason.INDIRECT_DEPENDENCY

    def test_build_tools_refused(self, project, settings):
        with pytest.raises(UnsupportedFixError) as exc_info:
            PipHandler(project, settings).apply_fix(_target("setuptools", "65.5.1"))
        assert exc_info.value.reason == FixReason.BUILD_TOOLS_DEPENDENCY

    def test_indirect_refused(self, project, settings):
        with pytest.raises(UnsupportedFixError):
            PipHandler(project, settings).apply_fix(_target("PyYAML", "5.4", is_direct=False))
        assert (project / "requirements.txt").read_text() == _REQUIREMENTS

    def test_already_fixed_leaves_file(self, project, settings):
        PipHandler(project, settings).apply_fix(_target("requests", "2.25.0"))
        assert (project / "requirements.txt").read_text() == _REQUIREMENTS

    def test_no_manifest(self, tmp_path, settings):
        with pytest.raises(ManifestError):
            PipHandler(tmp_path, settings).apply_fix(_target("requests", "2.31.0"))


# ---------------------------------------------------------------------------
# pipenv
# ---------------------------------------------------------------------------


class TestPipenvFix:
    @pytest.fixture
    def project(self, tmp_path):
        (tmp_path / "Pipfile").write_text(_PIPFILE, encoding="utf-8")
        return tmp_path

    def test_package(self, project, settings):
        handler = PipenvHandler(project, settings)
        with patch.object(handler, "run_command") as run:
            handler.apply_fix(_target("requests", "2.31.0", "pipenv"))
        run.assert_called_once_with(["pipenv", "install", "requests==2.31.0"])

    def test_table_entry(self, project, settings):
        handler = PipenvHandler(project, settings)
        with patch.object(handler, "run_command") as run:
            handler.apply_fix(_target("Flask", "2.2.5", "pipenv"))
        run.assert_called_once_with(["pipenv", "install", "Flask==2.2.5"])

    def test_dev_package(self, project, settings):
        handler = PipenvHandler(project, settings)
        with patch.object(handler, "run_command") as run:
            handler.apply_fix(_target("pytest", "7.2.0", "pipenv"))
        run.assert_called_once_with(["pipenv", "install", "pytest==7.2.0", "--dev"])

    def test_already_fixed_is_noop(self, project, settings):
        handler = PipenvHandler(project, settings)
        with patch.object(handler, "run_command") as run:
            handler.apply_fix(_target("requests", "2.25.0", "pipenv"))
        run.assert_not_called()

    def test_undeclared_refused(self, project, settings):
        with pytest.raises(UnsupportedFixError):
            PipenvHandler(project, settings).apply_fix(_target("django", "4.2.7", "pipenv"))

    def test_invalid_pipfile(self, tmp_path, settings):
        (tmp_path / "Pipfile").write_text("[packages\nrequests = ", encoding="utf-8")
        with pytest.raises(ManifestError, match="invalid TOML"):
            PipenvHandler(tmp_path, settings).apply_fix(_target("requests", "2.31.0", "pipenv"))

    def test_missing_pipfile(self, tmp_path, settings):
        with pytest.raises(ManifestError, match="no Pipfile"):
            PipenvHandler(tmp_path, settings).apply_fix(_target("requests", "2.31.0", "pipenv"))


# ---------------------------------------------------------------------------
# poetry
# ---------------------------------------------------------------------------


class TestPoetryFix:
    @pytest.fixture
    def project(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text(_PYPROJECT, encoding="utf-8")
        return tmp_path

    @pytest.mark.parametrize(
        "name,fix,expected",
        [
            ("requests", "2.31.0", ["poetry", "add", "requests==2.31.0"]),
            ("jinja2", "2.11.3", ["poetry", "add", "jinja2==2.11.3"]),
            ("pytest", "7.2.0", ["poetry", "add", "pytest==7.2.0", "--group", "test"]),
            ("black", "24.3.0", ["poetry", "add", "black==24.3.0", "--group", "dev"]),
        ],
    )
    def test_groups(self, project, settings, name, fix, expected):
        handler = PoetryHandler(project, settings)
        with patch.object(handler, "run_command") as run:
            handler.apply_fix(_target(name, fix, "poetry"))
        run.assert_called_once_with(expected)

    def test_pep621_dependencies(self, tmp_path, settings):
        (tmp_path / "pyproject.toml").write_text(
            '[project]\nname = "app"\ndependencies = ["httpx>=0.23.0", "anyio"]\n', encoding="utf-8"
        )
        handler = PoetryHandler(tmp_path, settings)
        with patch.object(handler, "run_command") as run:
            handler.apply_fix(_target("httpx", "0.24.1", "poetry"))
        run.assert_called_once_with(["poetry", "add", "httpx==0.24.1"])

    def test_pep621_unversioned_dependency(self, tmp_path, settings):
        (tmp_path / "pyproject.toml").write_text(
            '[project]\nname = "app"\ndependencies = ["requests", "requests-toolbelt>=1.0"]\n', encoding="utf-8"
        )
        handler = PoetryHandler(tmp_path, settings)
        with patch.object(handler, "run_command") as run:
            handler.apply_fix(_target("requests", "2.31.0", "poetry"))
        run.assert_called_once_with(["poetry", "add", "requests==2.31.0"])

    def test_already_fixed_is_noop(self, project, settings):
        handler = PoetryHandler(project, settings)
        with patch.object(handler, "run_command") as run:
            handler.apply_fix(_target("black", "22.1.0", "poetry"))
        run.assert_not_called()

    def test_undeclared_refused(self, project, settings):
        with pytest.raises(UnsupportedFixError):
            PoetryHandler(project, settings).apply_fix(_target("django", "4.2.7", "poetry"))

    def test_missing_pyproject(self, tmp_path, settings):
        with pytest.raises(ManifestError, match="no pyproject.toml"):
            PoetryHandler(tmp_path, settings).apply_fix(_target("requests", "2.31.0", "poetry"))
