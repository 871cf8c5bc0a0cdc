"""
handlers/pipenv.py -- Pipfile projects, edited through pipenv.
"""

import logging
import re
from pathlib import Path
from typing import Any, Optional

import toml

from core.errors import ManifestError
from core.models import FixTarget

from .base import PackageHandler
from .pip import PYTHON_BUILD_TOOLS

logger = logging.getLogger("remediator.handlers.pipenv")

DEV_SECTION = "dev-packages"
SECTIONS = ("packages", DEV_SECTION)


def normalize_name(name: str) -> str:
    return re.sub(r"[-_.]+", "-", name).lower()


def declared_version(value: Any) -> str:
    """The version text of a Pipfile/pyproject entry: "==1.0" or {version = "==1.0", ...}."""
    if isinstance(value, dict):
        value = value.get("version", "")
    return str(value or "")


def load_toml(path: Path) -> dict[str, Any]:
    try:
        return toml.load(path)
    except toml.TomlDecodeError as e:
        raise ManifestError(str(path), f"invalid TOML: {e}") from e
    except OSError as e:
        raise ManifestError(str(path), e.strerror or str(e)) from e


class PipenvHandler(PackageHandler):
    technology = "pipenv"
    manifest_patterns = ("Pipfile",)
    build_tools = PYTHON_BUILD_TOOLS

    def declaration(self, pipfile: dict[str, Any], name: str) -> Optional[tuple[str, str]]:
        wanted = normalize_name(name)
        for section in SECTIONS:
            for key, value in (pipfile.get(section) or {}).items():
                if normalize_name(key) == wanted:
                    return section, declared_version(value)
        return None

    def update_dependency(self, target: FixTarget) -> None:
        pipfile_path = self.working_dir / "Pipfile"
        if not pipfile_path.is_file():
            raise ManifestError(str(pipfile_path), "no Pipfile found")
        found = self.declaration(load_toml(pipfile_path), target.name)
        if found is None:
            raise self.not_declared(target)
        section, declared = found
        if self.already_fixed(target, declared, pipfile_path):
            return
        command = ["pipenv", "install", f"{target.name}=={target.fix_version}"]
        if section == DEV_SECTION:
            command.append("--dev")
        self.run_command(command)
        logger.info("Updated %s to %s in %s", target.name, target.fix_version, pipfile_path)
