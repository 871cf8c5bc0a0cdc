"""
handlers/npm.py -- npm and Yarn projects.

Every package.json under the working directory (node_modules excluded) that
declares the package is updated by the package manager in its own directory.
Only direct dependencies are fixed: a transitive package's version belongs
to whichever package depends on it.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from core.errors import ManifestError
from core.models import FixTarget

from .base import PackageHandler

logger = logging.getLogger("remediator.handlers.npm")

DEPENDENCY_SECTIONS = ("dependencies", "devDependencies", "optionalDependencies", "peerDependencies")


class NpmHandler(PackageHandler):
    technology = "npm"
    manifest_patterns = ("package.json",)

    def load_manifest(self, path: Path) -> dict[str, Any]:
        try:
            data = json.loads(self.read_text(path))
        except ValueError as e:
            raise ManifestError(str(path), f"invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ManifestError(str(path), "package.json must be a JSON object")
        return data

    def declaration(self, manifest: dict[str, Any], name: str) -> Optional[tuple[str, str]]:
        """Return (section, declared version) for name, or None when not declared."""
        for section in DEPENDENCY_SECTIONS:
            deps = manifest.get(section) or {}
            if isinstance(deps, dict) and name in deps:
                return section, str(deps[name])
        return None

    def update_dependency(self, target: FixTarget) -> None:
        declared_anywhere = False
        for path in self.require_manifests():
            found = self.declaration(self.load_manifest(path), target.name)
            if found is None:
                continue
            declared_anywhere = True
            section, declared = found
            if self.already_fixed(target, declared, path):
                continue
            self.run_command(self.install_command(target, section, path.parent), path.parent)
            logger.info("Updated %s to %s in %s", target.name, target.fix_version, path)
        if not declared_anywhere:
            raise self.not_declared(target)

    def install_command(self, target: FixTarget, section: str, project_dir: Path) -> list[str]:
        command = ["npm", "install", f"{target.name}@{target.fix_version}", "--package-lock-only", "--ignore-scripts"]
        if section == "devDependencies":
            command.append("--save-dev")
        return command


class YarnHandler(NpmHandler):
    technology = "yarn"

    def __init__(self, working_dir, settings=None) -> None:
        super().__init__(working_dir, settings)
        self._berry: Optional[bool] = None

    def is_berry(self) -> bool:
        """Yarn 2+ ("berry") when the project has .yarnrc.yml or pins yarn@2+ in packageManager. Cached."""
        if self._berry is None:
            self._berry = self._detect_berry()
            logger.debug("Detected yarn %s in %s", "berry" if self._berry else "classic", self.working_dir)
        return self._berry

    def _detect_berry(self) -> bool:
        if (self.working_dir / ".yarnrc.yml").is_file():
            return True
        root = self.working_dir / "package.json"
        if not root.is_file():
            return False
        package_manager = str(self.load_manifest(root).get("packageManager") or "")
        if not package_manager.startswith("yarn@"):
            return False
        major = package_manager[len("yarn@"):].split(".", 1)[0]
        return major.isdigit() and int(major) >= 2

    def install_command(self, target: FixTarget, section: str, project_dir: Path) -> list[str]:
        spec = f"{target.name}@{target.fix_version}"
        if self.is_berry():
            return ["yarn", "up", spec]
        return ["yarn", "upgrade", spec]
