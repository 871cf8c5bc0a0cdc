"""
handlers/maven.py -- Maven projects, edited only through versions-maven-plugin.

The handler never rewrites a pom itself. It reads the pom tree to decide
which mvn invocation to issue:

  literal version               versions:use-dep-version -Dincludes=g:a
  ${property} version           versions:set-property -Dproperty=p, once per property
  declared under
  <dependencyManagement>        -DprocessDependencyManagement=true and
                                -DprocessDependencies=false (and vice versa)

A package missing from every pom is transitive-only and is refused.

The pom tree is the root pom.xml plus every <module> it lists, recursively.
Walks use explicit stacks, so arbitrarily deep module trees and
plugin-in-plugin configurations never hit the recursion limit.
"""

import logging
import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from core.errors import ManifestError
from core.models import FixTarget

from .base import PackageHandler, declared_satisfies

logger = logging.getLogger("remediator.handlers.maven")

VERSIONS_PLUGIN = "org.codehaus.mojo:versions-maven-plugin"


@dataclass
class Gav:
    group_id: str = ""
    artifact_id: str = ""
    version: str = ""
    in_dependency_management: bool = False

    @property
    def name(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"

    def is_empty(self) -> bool:
        return not (self.group_id or self.artifact_id or self.version)


@dataclass
class PomDependency:
    current_version: str
    in_dependency_management: bool = False
    # Property names the version is interpolated from
    properties: list[str] = field(default_factory=list)


def _local(tag) -> str:
    """Tag name without its XML namespace."""
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _child(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element:
        if _local(child.tag) == name:
            return child
    return None


def _children(element: ET.Element, *path: str) -> list[ET.Element]:
    """Elements reached by following path (namespace-agnostic), e.g. ("dependencies", "dependency")."""
    current = [element]
    for name in path:
        current = [child for parent in current for child in parent if _local(child.tag) == name]
    return current


def _text(element: ET.Element, name: str) -> str:
    child = _child(element, name)
    return (child.text or "").strip() if child is not None else ""


def _gav(element: ET.Element, in_management: bool) -> Gav:
    return Gav(
        group_id=_text(element, "groupId"),
        artifact_id=_text(element, "artifactId"),
        version=_text(element, "version"),
        in_dependency_management=in_management,
    )


def collect_gavs(project: ET.Element) -> list[Gav]:
    """Every dependency and plugin coordinate declared in a pom, in document order.

    Visits the project itself, its dependencies, its dependencyManagement
    entries (flagged) and its build plugins, including plugins nested in a
    plugin's <configuration>.
    """
    result: list[Gav] = []
    # (element, in dependency management, is plugin)
    stack: list[tuple[ET.Element, bool, bool]] = [(project, False, False)]
    while stack:
        element, in_management, is_plugin = stack.pop()
        gav = _gav(element, in_management)
        if not gav.is_empty():
            result.append(gav)

        children: list[tuple[ET.Element, bool, bool]] = []
        if is_plugin:
            children += [(p, False, True) for p in _children(element, "configuration", "plugins", "plugin")]
        else:
            children += [(d, in_management, False) for d in _children(element, "dependencies", "dependency")]
            children += [
                (d, True, False) for d in _children(element, "dependencyManagement", "dependencies", "dependency")
            ]
            children += [(p, False, True) for p in _children(element, "build", "plugins", "plugin")]
        stack.extend(reversed(children))
    return result


def _property_name(version: str) -> str:
    if version.startswith("${") and version.endswith("}"):
        return version[2:-1]
    return ""


class MavenHandler(PackageHandler):
    technology = "maven"
    manifest_patterns = ("pom.xml",)
    # The dependency map decides what can be fixed
    direct_only = False

    def __init__(self, working_dir, settings=None) -> None:
        super().__init__(working_dir, settings)
        self._pom_paths: Optional[list[Path]] = None
        self.dependencies: dict[str, PomDependency] = {}
        self.properties: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Pom tree
    # ------------------------------------------------------------------

    def _parse(self, path: Path) -> ET.Element:
        try:
            return ET.parse(path).getroot()
        except ET.ParseError as e:
            raise ManifestError(str(path), f"malformed pom: {e}") from e
        except OSError as e:
            raise ManifestError(str(path), e.strerror or str(e)) from e

    def pom_paths(self) -> list[Path]:
        """The root pom followed by every module pom, depth first. Cached."""
        if self._pom_paths is not None:
            return self._pom_paths
        root = self.working_dir / "pom.xml"
        if not root.is_file():
            raise ManifestError(str(root), "couldn't find any pom.xml files in the current project")

        paths: list[Path] = []
        seen: set[Path] = set()
        stack = [root]
        while stack:
            path = stack.pop()
            if path in seen:
                continue
            seen.add(path)
            paths.append(path)
            modules = []
            for module in _children(self._parse(path), "modules", "module"):
                name = (module.text or "").strip()
                if not name:
                    continue
                module_path = path.parent / name
                if module_path.suffix != ".xml":
                    module_path = module_path / "pom.xml"
                if module_path.is_file():
                    modules.append(Path(os.path.normpath(module_path)))
                else:
                    logger.warning("Module %s listed in %s has no pom.xml", name, path)
            stack.extend(reversed(modules))
        self._pom_paths = paths
        return paths

    def load_dependencies(self) -> dict[str, PomDependency]:
        """Rebuild the groupId:artifactId -> declaration map from every pom in the tree."""
        self.dependencies = {}
        self.properties = {}
        for path in self.pom_paths():
            project = self._parse(path)
            for prop in _children(project, "properties"):
                for entry in prop:
                    self.properties.setdefault(_local(entry.tag), (entry.text or "").strip())
            for gav in collect_gavs(project):
                if not gav.version:
                    continue
                details = self.dependencies.setdefault(
                    gav.name,
                    PomDependency(current_version=gav.version, in_dependency_management=gav.in_dependency_management),
                )
                prop = _property_name(gav.version)
                if prop and prop not in details.properties:
                    details.properties.append(prop)
                    details.current_version = gav.version
                    details.in_dependency_management = gav.in_dependency_management
        return self.dependencies

    # ------------------------------------------------------------------
    # Fix
    # ------------------------------------------------------------------

    def update_dependency(self, target: FixTarget) -> None:
        details = self.load_dependencies().get(target.name)
        if details is None:
            raise self.not_declared(target)
        if details.properties:
            self.update_properties(target, details)
        else:
            self.update_package_version(target, details)

    def _scope_flags(self, details: PomDependency) -> list[str]:
        mgmt = details.in_dependency_management
        return [
            "-DgenerateBackupPoms=false",
            f"-DprocessDependencies={str(not mgmt).lower()}",
            f"-DprocessDependencyManagement={str(mgmt).lower()}",
        ]

    def update_package_version(self, target: FixTarget, details: PomDependency) -> None:
        if self.already_fixed(target, details.current_version, self.working_dir / "pom.xml"):
            return
        self.run_command(
            [
                "mvn",
                "-U",
                "-B",
                f"{VERSIONS_PLUGIN}:use-dep-version",
                f"-Dincludes={target.name}",
                f"-DdepVersion={target.fix_version}",
                *self._scope_flags(details),
            ]
        )
        logger.info("Updated %s to %s", target.name, target.fix_version)

    def update_properties(self, target: FixTarget, details: PomDependency) -> None:
        for prop in details.properties:
            current = self.properties.get(prop, "")
            # Shared properties (jackson.version) may already sit above this target.
            if declared_satisfies(current, target.fix_version):
                logger.info("Property %s is already %s, nothing to do", prop, current)
                continue
            self.run_command(
                [
                    "mvn",
                    "-U",
                    "-B",
                    f"{VERSIONS_PLUGIN}:set-property",
                    f"-Dproperty={prop}",
                    f"-DnewVersion={target.fix_version}",
                    *self._scope_flags(details),
                ]
            )
            logger.info("Updated property %s to %s for %s", prop, target.fix_version, target.name)
