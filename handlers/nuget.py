"""
handlers/nuget.py -- .NET projects (csproj/fsproj/vbproj).

Three ways a package version can be declared, three edits:

  <PackageReference Include="X" Version="1.0" />      dotnet add <proj> package X --version V
  <PackageReference Include="X" Version="$(XVer)" />  every <XVer> property definition, in place
  <PackageVersion Include="X" Version="1.0" />        Directory.Packages.props entry, in place
  (central package management)

Package ids are case-insensitive. Text edits touch only the version text,
so the rest of the file keeps its formatting.
"""

import logging
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional

from core.errors import ManifestError
from core.models import FixTarget

from .base import PackageHandler, declared_satisfies

logger = logging.getLogger("remediator.handlers.nuget")

PROJECT_SUFFIXES = (".csproj", ".fsproj", ".vbproj")
_PROPERTY_REF_RE = re.compile(r"^\$\((\w[\w.]*)\)$")
_PACKAGE_VERSION_TAG_RE = re.compile(r"<PackageVersion\b[^>]*>", re.IGNORECASE)
_VERSION_ATTR_RE = re.compile(r'(\bVersion\s*=\s*")([^"]*)(")')
_INCLUDE_ATTR_RE = re.compile(r'\bInclude\s*=\s*"([^"]*)"')


def _local(tag) -> str:
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


class NugetHandler(PackageHandler):
    technology = "nuget"
    manifest_patterns = ("*.csproj", "*.fsproj", "*.vbproj", "Directory.Packages.props", "Directory.Build.props")

    def _parse(self, path: Path) -> ET.Element:
        try:
            return ET.parse(path).getroot()
        except ET.ParseError as e:
            raise ManifestError(str(path), f"malformed project file: {e}") from e
        except OSError as e:
            raise ManifestError(str(path), e.strerror or str(e)) from e

    def package_reference(self, project: ET.Element, name: str) -> Optional[str]:
        """Declared version of a PackageReference ("" when centrally managed), or None."""
        for element in project.iter():
            if _local(element.tag) != "PackageReference":
                continue
            if element.get("Include", "").lower() != name.lower():
                continue
            version = element.get("Version") or element.get("VersionOverride")
            if version is None:
                for child in element:
                    if _local(child.tag) == "Version":
                        version = (child.text or "").strip()
            return version or ""
        return None

    def update_dependency(self, target: FixTarget) -> None:
        manifests = self.require_manifests()
        found = False
        properties: list[str] = []
        for path in manifests:
            if path.suffix not in PROJECT_SUFFIXES:
                continue
            declared = self.package_reference(self._parse(path), target.name)
            if declared is None:
                continue
            found = True
            ref = _PROPERTY_REF_RE.match(declared)
            if ref:
                if ref.group(1) not in properties:
                    properties.append(ref.group(1))
            elif declared and not self.already_fixed(target, declared, path):
                self.run_command(
                    ["dotnet", "add", path.name, "package", target.name, "--version", target.fix_version],
                    path.parent,
                )
                logger.info("Updated %s to %s in %s", target.name, target.fix_version, path)

        central = [p for p in manifests if p.name == "Directory.Packages.props"]
        for path in central:
            listed, refs = self.update_package_version(path, target)
            found = found or listed
            properties += [ref for ref in refs if ref not in properties]
        if not found:
            raise self.not_declared(target)
        for prop in properties:
            self.update_property(prop, target, manifests)

    def update_package_version(self, path: Path, target: FixTarget) -> tuple[bool, list[str]]:
        """Edit a central PackageVersion entry.

        Returns whether the package is listed, and the properties its version refers to.
        """
        text = self.read_text(path)
        listed = False
        refs: list[str] = []

        def replace_tag(match: re.Match) -> str:
            nonlocal listed
            tag = match.group(0)
            include = _INCLUDE_ATTR_RE.search(tag)
            if include is None or include.group(1).lower() != target.name.lower():
                return tag
            listed = True
            version = _VERSION_ATTR_RE.search(tag)
            if version is None:
                return tag
            ref = _PROPERTY_REF_RE.match(version.group(2))
            if ref:
                refs.append(ref.group(1))
                return tag
            if declared_satisfies(version.group(2), target.fix_version):
                return tag
            return tag[: version.start(2)] + target.fix_version + tag[version.end(2) :]

        updated = _PACKAGE_VERSION_TAG_RE.sub(replace_tag, text)
        if updated != text:
            self.write_text(path, updated)
            logger.info("Updated central version of %s to %s in %s", target.name, target.fix_version, path)
        return listed, refs

    def update_property(self, name: str, target: FixTarget, manifests: list[Path]) -> None:
        pattern = re.compile(r"(<" + re.escape(name) + r">\s*)([^<]*?)(\s*</" + re.escape(name) + r">)")
        defined = False
        for path in manifests:
            text = self.read_text(path)
            if not pattern.search(text):
                continue
            defined = True
            updated = pattern.sub(
                lambda m: m.group(0)
                if declared_satisfies(m.group(2), target.fix_version)
                else m.group(1) + target.fix_version + m.group(3),
                text,
            )
            if updated != text:
                self.write_text(path, updated)
                logger.info("Updated property %s to %s in %s", name, target.fix_version, path)
        if not defined:
            logger.warning("Property %s for %s is not defined in any project file", name, target.name)
            raise self.not_declared(target)
