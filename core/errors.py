"""
core/errors.py -- Structured errors raised by the remediation engine.

Every failure the engine surfaces is one of the classes below, carrying enough
context for the caller to render it without re-parsing the message:

  UnsupportedFixError -- the ecosystem or the dependency's directness prevents
                         a safe automated edit. Recoverable per fix target.
  ManifestError       -- a manifest is missing or malformed. Ends the pass for
                         the whole project.
  CommandError        -- an ecosystem build tool exited non-zero or could not
                         be found. Ends the pass for one fix target.
  SnapshotError       -- a scan snapshot document could not be read or decoded.

"No fix version available" is not an error: the resolver signals it with an
empty string.
"""

import shlex
from enum import Enum
from typing import Optional


class FixReason(str, Enum):
    INDIRECT_DEPENDENCY = "indirect dependency fix not supported"
    BUILD_TOOLS_DEPENDENCY = "build tools dependency fix not supported"
    UNSUPPORTED_TECHNOLOGY = "technology fix not supported"


class RemediationError(Exception):
    """Base class for every error raised by the engine."""


class UnsupportedFixError(RemediationError):
    def __init__(
        self,
        package_name: str,
        fixed_version: str,
        reason: FixReason = FixReason.INDIRECT_DEPENDENCY,
        technology: str = "",
    ) -> None:
        self.package_name = package_name
        self.fixed_version = fixed_version
        self.reason = reason
        self.technology = technology
        super().__init__(f"Cannot fix {package_name} to {fixed_version}: {reason.value}")


class ManifestError(RemediationError):
    def __init__(self, path: str, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class CommandError(RemediationError):
    def __init__(self, command: list[str], output: str, returncode: Optional[int] = None) -> None:
        self.command = list(command)
        self.output = output
        self.returncode = returncode
        super().__init__(f"failed running command '{self.command_line}':\n{output}")

    @property
    def command_line(self) -> str:
        return shlex.join(self.command)


class SnapshotError(RemediationError):
    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Could not load scan snapshot from {source}: {reason}")
