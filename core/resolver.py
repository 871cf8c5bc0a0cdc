"""
resolver.py -- Picks the minimal safe fix version per vulnerable component.

Two steps:
  minimal_fix()        one component, one list of candidate fix versions
  build_fix_targets()  merges every row that names the same component into a
                       single FixTarget and resolves it once

Heuristic worth knowing about: when the installed version does not start
with a number ("latest", a commit hash, an empty string) it cannot be
ordered against the candidates, so the first candidate is returned. This
gives ecosystems with non-semver tags *a* fix, but the chosen version is not
guaranteed to be newer under the ecosystem's own ordering rules.
"""

import logging
from collections.abc import Iterable
from typing import Optional

from .models import FixTarget, VulnerabilityRow
from .versions import compare, is_comparable, parse_exact_version, version_key

logger = logging.getLogger("remediator.resolver")


def minimal_fix(current_version: str, candidates: Iterable[str]) -> str:
    """Return the smallest candidate strictly greater than current_version, or "".

    Candidates may be plain versions or range expressions ("[1.2.3]"); ranges
    that do not name one available version are dropped. Duplicates are
    removed, keeping first-seen order.
    """
    exact: list[str] = []
    seen: set[str] = set()
    for candidate in candidates:
        version, ok = parse_exact_version(candidate)
        if ok and version not in seen:
            seen.add(version)
            exact.append(version)
    if not exact:
        return ""

    if not is_comparable(current_version):
        logger.debug("Current version %r is not comparable; taking %s", current_version, exact[0])
        return exact[0]

    greater = [version for version in exact if compare(version, current_version) > 0]
    if not greater:
        return ""
    return min(greater, key=version_key)


def build_fix_targets(rows: Iterable[VulnerabilityRow], technology: Optional[str] = None) -> list[FixTarget]:
    """Merge rows per impacted component and resolve one fix version for each.

    Only rows that carry at least one candidate fix version produce a target.
    The first row seen for a component fixes its installed version and
    technology (the row's own technology wins over the fallback argument).
    A component is direct when any of its rows is direct. CVE ids and
    candidate versions are unioned in first-seen order.

    Targets whose candidates are all at or below the installed version are
    kept with fix_version == "" so the caller can report "no fix available".
    """
    targets: dict[str, FixTarget] = {}
    for row in rows:
        if not row.fixed_versions:
            continue
        target = targets.get(row.impacted_name)
        if target is None:
            target = FixTarget(
                name=row.impacted_name,
                technology=row.technology or technology or "",
                current_version=row.impacted_version,
                fix_version="",
                is_direct=row.is_direct,
            )
            targets[row.impacted_name] = target
        else:
            target.is_direct = target.is_direct or row.is_direct
        for version in row.fixed_versions:
            if version not in target.candidate_versions:
                target.candidate_versions.append(version)
        for cve in row.cves:
            if cve.id and cve.id not in target.cves:
                target.cves.append(cve.id)

    for target in targets.values():
        target.fix_version = minimal_fix(target.current_version, target.candidate_versions)
        if not target.fix_version:
            logger.debug("No fix version above %s for %s", target.current_version, target.name)
    return list(targets.values())
