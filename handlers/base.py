"""
handlers/base.py -- Shared machinery for the per-ecosystem package handlers.

A handler instance belongs to one working directory for one remediation
pass. Everything it learns about the project (manifest paths, dependency
maps, which yarn flavour is in use) is cached on the instance and dies with
it. Create a new handler, never reuse one, when switching projects.

apply_fix() is the only public entry point:

  1. refuse build-tool packages (the toolchain itself)
  2. refuse indirect dependencies for ecosystems that only edit declarations
  3. update_dependency() -- the ecosystem-specific edit
"""

import fnmatch
import logging
import os
import re
import shlex
import subprocess
from pathlib import Path
from typing import Optional

from core.config import Settings, get_settings
from core.errors import CommandError, FixReason, ManifestError, UnsupportedFixError
from core.models import FixTarget
from core.versions import compare, is_comparable

logger = logging.getLogger("remediator.handlers")

# Never descended into while looking for manifests
SKIPPED_DIRS = frozenset({"node_modules", ".git", "target", "build", "venv", ".venv", "vendor"})

# Operators after which a declared version is a lower bound
_LOWER_BOUND_RE = re.compile(r"^\s*(?:\^|~=|~|>=|===|==|=)?\s*v?")


def run_command(command: list[str], cwd: Path) -> str:
    """Run a build tool and return its combined stdout/stderr.

    Blocks until the process exits; there is no timeout and no retry.
    Raises CommandError when the executable is missing or exits non-zero.
    """
    logger.debug("Running '%s' in %s", shlex.join(command), cwd)
    try:
        proc = subprocess.run(
            command,
            cwd=str(cwd),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=False,
        )
    except FileNotFoundError as e:
        raise CommandError(command, str(e)) from e
    if proc.returncode != 0:
        raise CommandError(command, proc.stdout or "", proc.returncode)
    return proc.stdout or ""


def declared_satisfies(declared: str, fix_version: str) -> bool:
    """True when a declared version (optionally prefixed by ^ ~ >= ==) already meets fix_version."""
    declared = (declared or "").strip()
    if not declared or declared.startswith(("<", "!")):
        return False
    bare = _LOWER_BOUND_RE.sub("", declared, count=1)
    if bare == fix_version.lstrip("v"):
        return True
    if not is_comparable(bare) or not is_comparable(fix_version):
        return False
    return compare(bare, fix_version) >= 0


class PackageHandler:
    """Base class. Subclasses set the class attributes and implement update_dependency()."""

    technology = ""
    manifest_patterns: tuple[str, ...] = ()
    # Only declared (direct) dependencies can be edited
    direct_only = True
    # Lower-cased package names that are part of the toolchain
    build_tools: frozenset[str] = frozenset()

    def __init__(self, working_dir, settings: Optional[Settings] = None) -> None:
        self.working_dir = Path(working_dir)
        self.settings = settings or get_settings()
        self._manifests: Optional[list[Path]] = None

    def apply_fix(self, target: FixTarget) -> None:
        self.check_supported(target)
        self.update_dependency(target)

    def check_supported(self, target: FixTarget) -> None:
        if target.name.lower() in self.build_tools:
            raise UnsupportedFixError(
                target.name, target.fix_version, FixReason.BUILD_TOOLS_DEPENDENCY, self.technology
            )
        if self.direct_only and not target.is_direct:
            raise UnsupportedFixError(target.name, target.fix_version, FixReason.INDIRECT_DEPENDENCY, self.technology)

    def update_dependency(self, target: FixTarget) -> None:
        raise NotImplementedError

    def not_declared(self, target: FixTarget) -> UnsupportedFixError:
        """The error for a package no manifest declares: it can only be transitive."""
        return UnsupportedFixError(target.name, target.fix_version, FixReason.INDIRECT_DEPENDENCY, self.technology)

    # ------------------------------------------------------------------
    # Manifests
    # ------------------------------------------------------------------

    def find_manifests(self) -> list[Path]:
        """Every file under working_dir matching manifest_patterns, in a stable order. Cached."""
        if self._manifests is None:
            found: list[Path] = []
            for root, dirs, files in os.walk(self.working_dir):
                dirs[:] = sorted(d for d in dirs if d not in SKIPPED_DIRS)
                for name in sorted(files):
                    if any(fnmatch.fnmatch(name, pattern) for pattern in self.manifest_patterns):
                        found.append(Path(root) / name)
            self._manifests = found
            logger.debug("Found %d %s manifest(s) under %s", len(found), self.technology, self.working_dir)
        return self._manifests

    def require_manifests(self) -> list[Path]:
        manifests = self.find_manifests()
        if not manifests:
            raise ManifestError(
                str(self.working_dir), f"no {self.technology} manifest found ({', '.join(self.manifest_patterns)})"
            )
        return manifests

    def read_text(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise ManifestError(str(path), e.strerror or str(e)) from e

    def write_text(self, path: Path, content: str) -> None:
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise ManifestError(str(path), e.strerror or str(e)) from e

    # ------------------------------------------------------------------
    # Subprocesses
    # ------------------------------------------------------------------

    def run_command(self, command: list[str], cwd: Optional[Path] = None) -> str:
        return run_command(command, cwd or self.working_dir)

    def already_fixed(self, target: FixTarget, declared: str, where: Path) -> bool:
        if declared_satisfies(declared, target.fix_version):
            logger.info("%s is already at %s in %s, nothing to do", target.name, declared, where)
            return True
        return False
