"""
handlers/gradle.py -- Gradle build scripts, edited in place.

Gradle has no rewrite tool, so declarations are edited as text:

  implementation 'g:a:1.0'                      string notation
  implementation("g:a:1.0")                     kotlin DSL
  implementation group: 'g', name: 'a', version: '1.0'
  implementation(group = "g", name = "a", version = "1.0")

A version written as $var or ${var} is not edited at the use site. The
variable's definition is rewritten instead (gradle.properties, ext blocks,
def/val/var declarations), so every declaration sharing it moves together.
"""

import logging
import re
from pathlib import Path

from core.models import FixTarget

from .base import PackageHandler, declared_satisfies

logger = logging.getLogger("remediator.handlers.gradle")

_VAR_RE = re.compile(r"^\$\{?([\w.]+)\}?$")


def _string_notation(group: str, artifact: str) -> re.Pattern:
    return re.compile(
        r"""(?P<q>["'])(?P<ga>"""
        + re.escape(group)
        + ":"
        + re.escape(artifact)
        + r""":)(?P<version>[^"':@]+)(?P<rest>[^"']*)(?P=q)"""
    )


def _map_notation(group: str, artifact: str) -> re.Pattern:
    return re.compile(
        r"""(?P<head>group\s*[:=]\s*["']"""
        + re.escape(group)
        + r"""["']\s*,\s*name\s*[:=]\s*["']"""
        + re.escape(artifact)
        + r"""["']\s*,\s*version\s*[:=]\s*)(?P<q>["'])(?P<version>[^"']+)(?P=q)"""
    )


def _variable_definition(name: str) -> re.Pattern:
    # def x = '1.0' | val x = "1.0" | ext.x = '1.0' | x = '1.0' | set("x", "1.0")
    escaped = re.escape(name)
    return re.compile(
        r"""(?P<head>(?:\b(?:def|val|var)\s+|\bext\.|(?<![\w.]))"""
        + escaped
        + r"""\s*=\s*|\bset\(\s*["']"""
        + escaped
        + r"""["']\s*,\s*)(?P<q>["'])(?P<version>[^"']+)(?P=q)"""
    )


def _swap_version(match: re.Match, new_version: str) -> str:
    """Replace only the version group of a match.

    Variable references and versions already at or above new_version are left alone.
    """
    version = match.group("version")
    if _VAR_RE.match(version) or declared_satisfies(version, new_version):
        return match.group(0)
    start, end = match.span("version")
    offset = match.start()
    whole = match.group(0)
    return whole[: start - offset] + new_version + whole[end - offset :]


def _property_line(name: str) -> re.Pattern:
    return re.compile(r"^(?P<head>\s*" + re.escape(name) + r"\s*[=:]\s*)(?P<version>\S+)\s*$", re.MULTILINE)


class GradleHandler(PackageHandler):
    technology = "gradle"
    manifest_patterns = ("build.gradle", "build.gradle.kts", "gradle.properties")

    def update_dependency(self, target: FixTarget) -> None:
        group, sep, artifact = target.name.partition(":")
        if not sep:
            raise self.not_declared(target)

        manifests = self.require_manifests()
        scripts = [p for p in manifests if p.name != "gradle.properties"]
        patterns = (_string_notation(group, artifact), _map_notation(group, artifact))

        found = False
        variables: list[str] = []
        for path in scripts:
            text = self.read_text(path)
            updated = text
            for pattern in patterns:
                for match in pattern.finditer(text):
                    found = True
                    var = _VAR_RE.match(match.group("version"))
                    if var and var.group(1) not in variables:
                        variables.append(var.group(1))
                updated = pattern.sub(lambda m: _swap_version(m, target.fix_version), updated)
            if updated != text:
                self.write_text(path, updated)
                logger.info("Updated %s to %s in %s", target.name, target.fix_version, path)

        if not found:
            raise self.not_declared(target)
        for var in variables:
            self.update_variable(var, target, manifests)

    def update_variable(self, name: str, target: FixTarget, manifests: list[Path]) -> None:
        """Rewrite every definition of a version variable."""
        defined = False
        for path in manifests:
            pattern = _property_line(name) if path.name == "gradle.properties" else _variable_definition(name)
            text = self.read_text(path)
            matches = list(pattern.finditer(text))
            if not matches:
                continue
            defined = True
            if all(declared_satisfies(m.group("version"), target.fix_version) for m in matches):
                logger.info("%s is already %s in %s, nothing to do", name, target.fix_version, path)
                continue
            updated = pattern.sub(lambda m: _swap_version(m, target.fix_version), text)
            self.write_text(path, updated)
            logger.info("Updated variable %s to %s in %s", name, target.fix_version, path)
        if not defined:
            logger.warning("Version variable %s for %s is not defined in any build file", name, target.name)
            raise self.not_declared(target)
