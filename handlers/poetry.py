"""
handlers/poetry.py -- Poetry projects, edited through poetry add.

Looks for the package in, in order:

  [project] dependencies                      (PEP 621, Poetry 2)
  [tool.poetry.dependencies]                  main group
  [tool.poetry.group.<name>.dependencies]     --group <name>
  [tool.poetry.dev-dependencies]              --group dev (legacy layout)
"""

import logging
import re
from typing import Any, Optional

from core.errors import ManifestError
from core.models import FixTarget

from .base import PackageHandler
from .pip import PYTHON_BUILD_TOOLS
from .pipenv import declared_version, load_toml, normalize_name

logger = logging.getLogger("remediator.handlers.poetry")


_PEP508_NAME_RE = re.compile(r"^\s*(?P<name>[A-Za-z0-9][\w.-]*)\s*(?:\[[^\]]*\])?(?P<spec>[^;]*)")


def _pep621_declaration(requirement: Any, name: str) -> Optional[str]:
    """Version spec of a PEP 508 string naming the package ("" when unversioned), else None."""
    match = _PEP508_NAME_RE.match(requirement) if isinstance(requirement, str) else None
    if match is None or normalize_name(match.group("name")) != normalize_name(name):
        return None
    return match.group("spec").strip()


def _find_in_table(table: Any, name: str) -> Optional[str]:
    if not isinstance(table, dict):
        return None
    wanted = normalize_name(name)
    for key, value in table.items():
        if normalize_name(key) == wanted:
            return declared_version(value)
    return None


class PoetryHandler(PackageHandler):
    technology = "poetry"
    manifest_patterns = ("pyproject.toml",)
    build_tools = PYTHON_BUILD_TOOLS

    def declaration(self, pyproject: dict[str, Any], name: str) -> Optional[tuple[str, str]]:
        """Return (group, declared version) where group is "" for the main dependencies."""
        for requirement in (pyproject.get("project") or {}).get("dependencies") or []:
            declared = _pep621_declaration(requirement, name)
            if declared is not None:
                return "", declared

        poetry = (pyproject.get("tool") or {}).get("poetry") or {}
        declared = _find_in_table(poetry.get("dependencies"), name)
        if declared is not None:
            return "", declared
        for group, body in (poetry.get("group") or {}).items():
            declared = _find_in_table((body or {}).get("dependencies"), name)
            if declared is not None:
                return group, declared
        declared = _find_in_table(poetry.get("dev-dependencies"), name)
        if declared is not None:
            return "dev", declared
        return None

    def update_dependency(self, target: FixTarget) -> None:
        path = self.working_dir / "pyproject.toml"
        if not path.is_file():
            raise ManifestError(str(path), "no pyproject.toml found")
        found = self.declaration(load_toml(path), target.name)
        if found is None:
            raise self.not_declared(target)
        group, declared = found
        if self.already_fixed(target, declared, path):
            return
        command = ["poetry", "add", f"{target.name}=={target.fix_version}"]
        if group:
            command += ["--group", group]
        self.run_command(command)
        logger.info("Updated %s to %s in %s", target.name, target.fix_version, path)
