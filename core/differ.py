"""
differ.py -- Finds the issues a candidate snapshot introduces over a baseline.

Findings are first flattened into rows: a vulnerability or violation that
impacts N components becomes N rows, because each component is fixed
independently. Each row then gets a fingerprint built only from identity
fields:

  dependency rows    (kind, issue id, impacted component name)
  source-code rows   (kind, rule id, file, start line, start column)

Severity, summary and CVE lists are payload. A finding whose severity
changed between scans is still the same finding.

Rows keep the candidate snapshot's order, kind by kind. Nothing is sorted,
so diffing the same inputs twice yields the same lists in the same order.
"""

import copy
from collections.abc import Iterable, Sequence
from typing import Optional, Union

from .models import (
    Applicability,
    Finding,
    FindingDelta,
    FindingKind,
    LicenseRow,
    ScanSnapshot,
    SourceCodeFinding,
    VulnerabilityRow,
)

APPLICABLE = "Applicable"
NOT_APPLICABLE = "Not Applicable"
UNDETERMINED = "Undetermined"

Row = Union[VulnerabilityRow, LicenseRow, SourceCodeFinding]


def fingerprint(row: Row) -> tuple:
    """Return the identity of a row for differencing purposes."""
    if isinstance(row, SourceCodeFinding):
        loc = row.location
        return (row.kind.value, row.rule_id, loc.file, loc.start_line, loc.start_column)
    if isinstance(row, LicenseRow):
        return (FindingKind.LICENSE_VIOLATION.value, row.issue_id, row.impacted_name)
    return (row.kind.value, row.issue_id, row.impacted_name)


# ---------------------------------------------------------------------------
# Row expansion
# ---------------------------------------------------------------------------


def _vulnerability_rows(finding: Finding) -> list[VulnerabilityRow]:
    rows: list[VulnerabilityRow] = []
    for component in finding.components:
        rows.append(
            VulnerabilityRow(
                kind=finding.kind,
                issue_id=finding.issue_id,
                impacted_name=component.name,
                impacted_version=component.version,
                summary=finding.summary,
                severity=finding.severity,
                technology=finding.technology,
                fixed_versions=list(component.fixed_versions),
                # Rows own their CVE entries; applicability is written onto them later.
                cves=copy.deepcopy(finding.cves),
                direct_dependencies=component.direct_dependencies,
                is_direct=component.is_direct,
            )
        )
    return rows


def _license_rows(finding: Finding) -> list[LicenseRow]:
    return [
        LicenseRow(
            # Plain license entries have no issue id; the key identifies them.
            issue_id=finding.issue_id or finding.license_key,
            license_key=finding.license_key,
            impacted_name=component.name,
            impacted_version=component.version,
            severity=finding.severity,
            direct_dependencies=component.direct_dependencies,
        )
        for component in finding.components
    ]


def collect_rows(snapshot: ScanSnapshot, allowed_licenses: Optional[Iterable[str]] = None) -> FindingDelta:
    """Flatten every finding of a snapshot into rows, grouped by kind.

    License violations whose key is on the allow-list are dropped. When an
    allow-list is given, plain license entries outside it are reported as
    license violations too.
    """
    allowed = set(allowed_licenses or ())
    rows = FindingDelta()
    for result in snapshot.results:
        for finding in result.vulnerabilities:
            rows.vulnerabilities.extend(_vulnerability_rows(finding))
        for finding in result.violations:
            if finding.kind == FindingKind.SECURITY_VIOLATION:
                rows.security_violations.extend(_vulnerability_rows(finding))
            elif finding.kind == FindingKind.LICENSE_VIOLATION:
                rows.license_violations.extend(_license_rows(finding))
        if allowed:
            for finding in result.licenses:
                rows.license_violations.extend(_license_rows(finding))
    rows.license_violations = [row for row in rows.license_violations if row.license_key not in allowed]
    rows.source_code = list(snapshot.secrets) + list(snapshot.iac)
    return rows


# ---------------------------------------------------------------------------
# Differencing
# ---------------------------------------------------------------------------


def _new_rows(candidate_rows: Sequence[Row], baseline_rows: Sequence[Row]) -> list:
    known = {fingerprint(row) for row in baseline_rows}
    return [row for row in candidate_rows if fingerprint(row) not in known]


def diff(
    baseline: ScanSnapshot,
    candidate: ScanSnapshot,
    allowed_licenses: Optional[Iterable[str]] = None,
    applicability: Optional[dict[str, Applicability]] = None,
) -> FindingDelta:
    """Return the rows of candidate whose fingerprint is absent from baseline.

    applicability defaults to the candidate snapshot's own evidence map.
    """
    allowed = list(allowed_licenses or ())
    before = collect_rows(baseline, allowed)
    after = collect_rows(candidate, allowed)
    delta = FindingDelta(
        vulnerabilities=_new_rows(after.vulnerabilities, before.vulnerabilities),
        security_violations=_new_rows(after.security_violations, before.security_violations),
        license_violations=_new_rows(after.license_violations, before.license_violations),
        source_code=_new_rows(after.source_code, before.source_code),
    )
    evidence = candidate.applicability if applicability is None else applicability
    if evidence:
        enrich_applicability(delta.vulnerabilities, evidence)
        enrich_applicability(delta.security_violations, evidence)
    return delta


# ---------------------------------------------------------------------------
# Contextual analysis
# ---------------------------------------------------------------------------


def _row_status(statuses: list[str]) -> str:
    if APPLICABLE in statuses:
        return APPLICABLE
    if all(status == NOT_APPLICABLE for status in statuses):
        return NOT_APPLICABLE
    return UNDETERMINED


def enrich_applicability(rows: Iterable[VulnerabilityRow], evidence: dict[str, Applicability]) -> None:
    """Annotate each row's CVE entries with applicability evidence, joined on CVE id.

    Rows are never added or removed. A row with no matching CVE keeps an
    empty applicable status.
    """
    for row in rows:
        statuses: list[str] = []
        for cve in row.cves:
            verdict = evidence.get(cve.id)
            if verdict is None:
                continue
            cve.applicability = Applicability(status=verdict.status, evidence=list(verdict.evidence))
            statuses.append(verdict.status)
        if statuses:
            row.applicable = _row_status(statuses)
