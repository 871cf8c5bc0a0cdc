"""
handlers/go.py -- Go modules, edited through the go tool.

  required module       go get <module>@v<fix>
  replaced module       go mod edit -replace=<old>=<new>@v<fix>

Go resolves indirect modules too, so indirect targets are accepted; a module
no go.mod mentions is added with go get at the root module. Fixing the Go
toolchain itself (github.com/golang/go) is refused.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from core.errors import FixReason, UnsupportedFixError
from core.models import FixTarget

from .base import PackageHandler, declared_satisfies

logger = logging.getLogger("remediator.handlers.go")


@dataclass
class Replace:
    old_path: str
    old_version: str
    new_path: str
    new_version: str

    @property
    def is_local(self) -> bool:
        return self.new_path.startswith((".", "/"))


def _strip_comment(line: str) -> str:
    return line.split("//", 1)[0].strip()


def parse_go_mod(text: str) -> tuple[dict[str, str], list[Replace]]:
    """Return (module -> required version, replace directives) from go.mod content."""
    requires: dict[str, str] = {}
    replaces: list[Replace] = []
    block = ""
    for raw in text.splitlines():
        line = _strip_comment(raw)
        if not line:
            continue
        if block:
            if line == ")":
                block = ""
                continue
            directive, rest = block, line
        else:
            directive, _, rest = line.partition(" ")
            rest = rest.strip()
            if rest == "(":
                block = directive
                continue
        if directive == "require":
            fields = rest.split()
            if len(fields) >= 2:
                requires[fields[0]] = fields[1]
        elif directive == "replace" and "=>" in rest:
            old, new = (side.split() for side in rest.split("=>", 1))
            if old and new:
                replaces.append(
                    Replace(
                        old_path=old[0],
                        old_version=old[1] if len(old) > 1 else "",
                        new_path=new[0],
                        new_version=new[1] if len(new) > 1 else "",
                    )
                )
    return requires, replaces


def go_version(version: str) -> str:
    return version if version.startswith("v") else f"v{version}"


class GoHandler(PackageHandler):
    technology = "go"
    manifest_patterns = ("go.mod",)
    direct_only = False
    build_tools = frozenset({"github.com/golang/go"})

    def update_dependency(self, target: FixTarget) -> None:
        fix = go_version(target.fix_version)
        touched = False
        for path in self.require_manifests():
            requires, replaces = parse_go_mod(self.read_text(path))
            replace = next((r for r in replaces if target.name in (r.old_path, r.new_path)), None)
            if replace is not None:
                self.update_replace(target, replace, fix, path)
                touched = True
            elif target.name in requires:
                if not self.already_fixed(target, requires[target.name], path):
                    self.go_get(target.name, fix, path.parent)
                touched = True

        if not touched:
            root = self.working_dir / "go.mod"
            if not root.is_file():
                raise self.not_declared(target)
            self.go_get(target.name, fix, self.working_dir)

    def go_get(self, module: str, version: str, cwd: Path) -> None:
        self.run_command(["go", "get", f"{module}@{version}"], cwd)
        logger.info("Updated %s to %s in %s", module, version, cwd)

    def update_replace(self, target: FixTarget, replace: Replace, fix: str, path: Path) -> None:
        if replace.is_local:
            raise UnsupportedFixError(target.name, target.fix_version, FixReason.INDIRECT_DEPENDENCY, self.technology)
        if declared_satisfies(replace.new_version, fix):
            logger.info("%s is already replaced by %s in %s, nothing to do", target.name, replace.new_version, path)
            return
        old = f"{replace.old_path}@{replace.old_version}" if replace.old_version else replace.old_path
        self.run_command(["go", "mod", "edit", f"-replace={old}={replace.new_path}@{fix}"], path.parent)
        logger.info("Updated replace directive for %s to %s in %s", target.name, fix, path)
