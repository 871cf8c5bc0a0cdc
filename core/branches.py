"""
branches.py -- Names remediation branches, commits and pull requests.

A fix branch name is derived only from (base branch, package, fix version):

  frogbot-<package with ref-unsafe characters replaced>-<md5 hex>

The hash covers the original, unsanitized package name, so two packages
that sanitize to the same text still get different branches. It also covers
the base branch, so fixing the same package on "dev" and on "master" never
shares a branch.
"""

import hashlib
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from .models import FixTarget

if TYPE_CHECKING:
    from .config import Settings

BRANCH_PREFIX = "frogbot"
HASH_SALT = "frogbot"

PACKAGE_VAR = "${IMPACTED_PACKAGE}"
VERSION_VAR = "${FIX_VERSION}"
HASH_VAR = "${BRANCH_NAME_HASH}"

DEFAULT_BRANCH_TEMPLATE = f"{BRANCH_PREFIX}-{PACKAGE_VAR}-{HASH_VAR}"
DEFAULT_COMMIT_TEMPLATE = f"Upgrade {PACKAGE_VAR} to {VERSION_VAR}"
DEFAULT_TITLE_TEMPLATE = f"[🐸 Frogbot] Update version of {PACKAGE_VAR} to {VERSION_VAR}"
AGGREGATED_TITLE_TEMPLATE = "[🐸 Frogbot] Update {technology} dependencies"

# ":" whitespace "~" "^" "?" "*" "[" "\" are not allowed in a git ref
_UNSAFE_REF_RE = re.compile(r"[:\s~^?*\[\\]")


def sanitize_ref(name: str) -> str:
    return _UNSAFE_REF_RE.sub("_", name)


def branch_hash(base_branch: str, package: str, fix_version: str) -> str:
    content = HASH_SALT + base_branch + package + fix_version
    return hashlib.md5(content.encode("utf-8")).hexdigest()


def validate_branch_template(template: str) -> str:
    """Return template unchanged, or raise ValueError when it lacks the hash variable."""
    if template and HASH_VAR not in template:
        raise ValueError(f"branch name template must contain {HASH_VAR}: {template!r}")
    return template


def _render(template: str, values: dict[str, str]) -> str:
    for var, value in values.items():
        template = template.replace(var, value)
    return template


def generate_fix_branch_name(base_branch: str, package: str, fix_version: str, template: str = "") -> str:
    """Return the branch that carries the fix of package to fix_version."""
    validate_branch_template(template)
    return _render(
        template or DEFAULT_BRANCH_TEMPLATE,
        {
            PACKAGE_VAR: sanitize_ref(package),
            VERSION_VAR: sanitize_ref(fix_version),
            HASH_VAR: branch_hash(base_branch, package, fix_version),
        },
    )


def generate_aggregated_branch_name(technology: str, template: str = "") -> str:
    """Return the single branch that carries every fix for one technology."""
    validate_branch_template(template)
    group = f"update-{technology}-dependencies"
    if not template:
        return f"{BRANCH_PREFIX}-{group}"
    return _render(
        template,
        {
            PACKAGE_VAR: group,
            VERSION_VAR: "",
            HASH_VAR: branch_hash("", group, ""),
        },
    )


def commit_message(package: str, fix_version: str, template: str = "") -> str:
    return _render(template or DEFAULT_COMMIT_TEMPLATE, {PACKAGE_VAR: package, VERSION_VAR: fix_version})


def pull_request_title(package: str, fix_version: str, template: str = "") -> str:
    return _render(template or DEFAULT_TITLE_TEMPLATE, {PACKAGE_VAR: package, VERSION_VAR: fix_version})


def aggregated_pull_request_title(technology: str) -> str:
    return AGGREGATED_TITLE_TEMPLATE.format(technology=technology)


@dataclass(frozen=True)
class FixNaming:
    """Branch, commit and pull request names for every fix of one remediation pass.

    With aggregate set, all fixes of one technology share a branch and a pull
    request title; each commit still names its own package.
    """

    base_branch: str
    branch_template: str = ""
    commit_template: str = ""
    title_template: str = ""
    aggregate: bool = False

    @classmethod
    def from_settings(cls, base_branch: str, settings: "Settings", aggregate: Optional[bool] = None) -> "FixNaming":
        return cls(
            base_branch=base_branch,
            branch_template=settings.branch_name_template,
            commit_template=settings.commit_message_template,
            title_template=settings.pull_request_title_template,
            aggregate=settings.aggregate_fixes if aggregate is None else aggregate,
        )

    def branch(self, target: FixTarget) -> str:
        if self.aggregate:
            return generate_aggregated_branch_name(target.technology, self.branch_template)
        return generate_fix_branch_name(self.base_branch, target.name, target.fix_version, self.branch_template)

    def commit_message(self, target: FixTarget) -> str:
        return commit_message(target.name, target.fix_version, self.commit_template)

    def pull_request_title(self, target: FixTarget) -> str:
        if self.aggregate:
            return aggregated_pull_request_title(target.technology)
        return pull_request_title(target.name, target.fix_version, self.title_template)
