"""
handlers/pip.py -- requirements files and setup.py, edited in place.

A requirement such as "Django[bcrypt] >= 3.2.1" keeps its extras, spacing
and operator; only the version text changes. A bare "urllib3" gets an
"==<fix>" pin. Names match the way pip matches them: case-insensitive,
with "-", "_" and "." interchangeable.
"""

import logging
import re
from pathlib import Path

from core.models import FixTarget

from .base import PackageHandler, declared_satisfies

logger = logging.getLogger("remediator.handlers.pip")

PYTHON_BUILD_TOOLS = frozenset({"pip", "setuptools", "wheel"})


def requirement_pattern(name: str) -> re.Pattern:
    """Match "<name>[extras]" with an optional "<op> <version>" that pins or lower-bounds it.

    Without a version the requirement must end right after the name (end of
    line, comment, quote, comma or marker), so "requests" never matches
    inside prose such as "requests is great".
    """
    parts = [re.escape(part) for part in re.split(r"[-_.]+", name) if part]
    return re.compile(
        r"(?<![\w.-])(?P<name>"
        + r"[-_.]+".join(parts)
        + r")(?![\w.-])(?P<extras>\s*\[[^\]]*\])?"
        + r"(?:(?P<op>\s*(?:===|==|~=|>=)\s*)(?P<version>[\w.+!*-]+)|(?=[ \t]*(?:[\"';,#]|$)))",
        re.IGNORECASE | re.MULTILINE,
    )


def _in_comment(text: str, position: int) -> bool:
    line_start = text.rfind("\n", 0, position) + 1
    return "#" in text[line_start:position]


def replace_requirement_versions(text: str, name: str, fix_version: str) -> tuple[str, bool]:
    """Return (updated text, whether name was found at all).

    A versioned requirement keeps its operator and only the version changes;
    an unversioned one is pinned with "==".
    """
    pattern = requirement_pattern(name)
    found = False

    def swap(match: re.Match) -> str:
        nonlocal found
        if _in_comment(text, match.start()):
            return match.group(0)
        found = True
        whole, offset = match.group(0), match.start()
        if match.group("version") is None:
            return f"{whole}=={fix_version}"
        if declared_satisfies(match.group("op").strip() + match.group("version"), fix_version):
            return whole
        start, end = match.span("version")
        return whole[: start - offset] + fix_version + whole[end - offset :]

    return pattern.sub(swap, text), found


class PipHandler(PackageHandler):
    technology = "pip"
    manifest_patterns = ("requirements*.txt", "setup.py")
    build_tools = PYTHON_BUILD_TOOLS

    def find_manifests(self) -> list[Path]:
        """The configured requirements file, or requirements*.txt and setup.py at the project root."""
        if self._manifests is None:
            override = self.settings.requirements_file
            if override:
                path = self.working_dir / override
                self._manifests = [path] if path.is_file() else []
            else:
                self._manifests = sorted(
                    p for pattern in self.manifest_patterns for p in self.working_dir.glob(pattern) if p.is_file()
                )
        return self._manifests

    def update_dependency(self, target: FixTarget) -> None:
        declared = False
        for path in self.require_manifests():
            text = self.read_text(path)
            updated, found = replace_requirement_versions(text, target.name, target.fix_version)
            declared = declared or found
            if updated != text:
                self.write_text(path, updated)
                logger.info("Updated %s to %s in %s", target.name, target.fix_version, path)
            elif found:
                logger.info("%s is already at %s or later in %s, nothing to do", target.name, target.fix_version, path)
        if not declared:
            raise self.not_declared(target)
