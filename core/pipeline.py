"""
core/pipeline.py -- Delta -> fix targets -> branch -> handler.

No print statements. Designed to be called by both the CLI (via main.py)
and the REST API (via api/routes/v1/remediation.py).

The remediation loop is serial on purpose: two build tools running against
the same working tree would race on manifests and lock files. Each target
is attempted once; a failed command is reported, never retried.
"""

import logging
from collections.abc import Iterable
from typing import Optional, Protocol

from .branches import FixNaming
from .differ import diff
from .errors import CommandError, UnsupportedFixError
from .models import FindingDelta, FixOutcome, FixTarget, ScanSnapshot, VulnerabilityRow
from .resolver import build_fix_targets

logger = logging.getLogger("remediator.pipeline")

FIXED = "fixed"
NO_FIX = "no_fix"
UNSUPPORTED = "unsupported"
FAILED = "failed"


class FixApplier(Protocol):
    def apply_fix(self, target: FixTarget) -> None: ...


def find_new_issues(
    baseline: ScanSnapshot,
    candidate: ScanSnapshot,
    allowed_licenses: Optional[Iterable[str]] = None,
) -> FindingDelta:
    """Return the findings candidate introduces over baseline."""
    delta = diff(baseline, candidate, allowed_licenses)
    logger.info(
        "Found %d new issue(s): %d vulnerabilities, %d security violations, %d license violations, %d source code",
        delta.total,
        len(delta.vulnerabilities),
        len(delta.security_violations),
        len(delta.license_violations),
        len(delta.source_code),
    )
    return delta


def plan_fixes(rows: Iterable[VulnerabilityRow], technology: Optional[str] = None) -> list[FixTarget]:
    """Build one fix target per fixable component.

    Targets without a version above the installed one keep fix_version == ""
    so the caller can report them as having no fix.
    """
    return build_fix_targets(rows, technology)


def remediate(
    targets: Iterable[FixTarget],
    dispatcher: FixApplier,
    naming: FixNaming,
) -> list[FixOutcome]:
    """Apply each fix target in order and report one outcome per target.

    Every attempted target carries the branch, commit message and pull request
    title naming assigns it.

    UnsupportedFixError and CommandError end only the current target.
    ManifestError propagates: a broken manifest ends the pass for the project.
    """
    outcomes: list[FixOutcome] = []
    for target in targets:
        if not target.fix_version:
            logger.warning("Skipping %s %s: no fix version available", target.name, target.current_version)
            outcomes.append(FixOutcome(target=target, status=NO_FIX))
            continue

        names = {
            "branch": naming.branch(target),
            "commit_message": naming.commit_message(target),
            "pull_request_title": naming.pull_request_title(target),
        }
        try:
            dispatcher.apply_fix(target)
        except UnsupportedFixError as e:
            logger.warning("Skipping %s: %s", target.name, e.reason.value)
            outcomes.append(FixOutcome(target=target, status=UNSUPPORTED, error=e, **names))
            continue
        except CommandError as e:
            logger.warning("Fix of %s to %s failed: %s", target.name, target.fix_version, e.command_line)
            outcomes.append(FixOutcome(target=target, status=FAILED, error=e, **names))
            continue

        logger.info("Fixed %s to %s on %s", target.name, target.fix_version, names["branch"])
        outcomes.append(FixOutcome(target=target, status=FIXED, **names))
    return outcomes
