"""
snapshot.py -- Decodes scanner output into a ScanSnapshot.

Accepted document shapes:

  {"scans": [<xray scan response>, ...],
   "secrets": [<sarif run>, ...],
   "iac": [<sarif run>, ...],
   "applicability": [<sarif run>, ...]}

or a bare Xray scan response ({"vulnerabilities": [...], "violations": [...],
"licenses": [...]}), read as a single-root snapshot.

A document that is not a JSON object raises SnapshotError. Malformed entries
inside a valid document are skipped with a debug log line, so a partially
broken scan yields fewer findings instead of an exception.
"""

import logging
from typing import Any, Optional

from .errors import SnapshotError
from .models import (
    Applicability,
    Component,
    Cve,
    Evidence,
    Finding,
    FindingKind,
    ImpactedComponent,
    ScanResults,
    ScanSnapshot,
    Severity,
    SourceCodeFinding,
)

logger = logging.getLogger("remediator.snapshot")

# Xray component id scheme -> technology tag
_SCHEME_TECHNOLOGY = {
    "gav": "maven",
    "npm": "npm",
    "go": "go",
    "pypi": "pip",
    "nuget": "nuget",
}

_SARIF_LEVELS = {
    "error": Severity.HIGH,
    "warning": Severity.MEDIUM,
    "note": Severity.LOW,
}

APPLICABILITY_RULE_PREFIX = "applic_"


def split_component_id(component_id: str) -> tuple[str, str, str]:
    """Split "npm://minimist:1.2.5" into ("npm", "minimist", "1.2.5").

    The version is whatever follows the last ":", so Maven coordinates keep
    "group:artifact" as the name. An id with no ":" after the scheme has an
    empty version.
    """
    scheme, sep, rest = component_id.partition("://")
    if not sep:
        scheme, rest = "", component_id
    name, sep, version = rest.rpartition(":")
    if not sep:
        return scheme, rest, ""
    return scheme, name, version


def technology_for_scheme(scheme: str) -> str:
    return _SCHEME_TECHNOLOGY.get(scheme.lower(), "")


# ---------------------------------------------------------------------------
# Field access -- wrong JSON types read as empty
# ---------------------------------------------------------------------------


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


# ---------------------------------------------------------------------------
# Xray scan responses
# ---------------------------------------------------------------------------


def _parse_cves(raw: Any) -> list[Cve]:
    cves: list[Cve] = []
    for entry in _list(raw):
        if not isinstance(entry, dict):
            continue
        score = entry.get("cvss_v3_score")
        if isinstance(score, (int, float)) and not isinstance(score, bool):
            score = str(score)
        cves.append(Cve(id=_str(entry.get("cve")) or _str(entry.get("id")), cvss_v3_score=_str(score) or None))
    return cves


def _parse_path(raw: Any) -> list[Component]:
    path: list[Component] = []
    for node in _list(raw):
        component_id = _str(_dict(node).get("component_id"))
        if not component_id:
            continue
        _, name, version = split_component_id(component_id)
        path.append(Component(name=name, version=version))
    return path


def _parse_components(raw: Any) -> tuple[list[ImpactedComponent], str]:
    """Return the impacted components and the technology implied by their ids."""
    components: list[ImpactedComponent] = []
    technology = ""
    for component_id, details in _dict(raw).items():
        scheme, name, version = split_component_id(component_id)
        technology = technology or technology_for_scheme(scheme)
        details = _dict(details)
        fixed = [v for v in _list(details.get("fixed_versions")) if isinstance(v, str) and v]
        paths = [_parse_path(p) for p in _list(details.get("impact_paths"))]
        components.append(
            ImpactedComponent(
                name=name,
                version=version,
                fixed_versions=fixed,
                impact_paths=[p for p in paths if p],
            )
        )
    return components, technology


def _parse_finding(raw: Any, kind: FindingKind) -> Optional[Finding]:
    if not isinstance(raw, dict):
        return None
    components, implied = _parse_components(raw.get("components"))
    return Finding(
        kind=kind,
        issue_id=_str(raw.get("issue_id")),
        summary=_str(raw.get("summary")),
        severity=Severity.from_string(raw.get("severity")),
        technology=(_str(raw.get("technology")) or implied).lower(),
        cves=_parse_cves(raw.get("cves")),
        components=components,
        license_key=_str(raw.get("license_key")),
    )


_VIOLATION_KINDS = {
    "security": FindingKind.SECURITY_VIOLATION,
    "license": FindingKind.LICENSE_VIOLATION,
}


def parse_scan_response(raw: dict[str, Any]) -> ScanResults:
    """Decode one Xray scan response (one build root)."""
    results = ScanResults(working_dir=_str(raw.get("working_dir")))
    for entry in _list(raw.get("vulnerabilities")):
        finding = _parse_finding(entry, FindingKind.VULNERABILITY)
        if finding is None:
            logger.debug("Skipping malformed vulnerability entry: %r", entry)
            continue
        results.vulnerabilities.append(finding)

    for entry in _list(raw.get("violations")):
        kind = _VIOLATION_KINDS.get(_str(_dict(entry).get("type")).lower())
        if kind is None:
            # Operational-risk and unknown violation types carry nothing to fix.
            continue
        finding = _parse_finding(entry, kind)
        if finding is not None:
            results.violations.append(finding)

    for entry in _list(raw.get("licenses")):
        if not isinstance(entry, dict):
            continue
        components, implied = _parse_components(entry.get("components"))
        results.licenses.append(
            Finding(
                kind=FindingKind.LICENSE_VIOLATION,
                license_key=_str(entry.get("license_key")) or _str(entry.get("key")),
                technology=implied,
                components=components,
            )
        )
    return results


# ---------------------------------------------------------------------------
# SARIF runs
# ---------------------------------------------------------------------------


def _working_dir(run: dict[str, Any]) -> str:
    for invocation in _list(run.get("invocations")):
        uri = _str(_dict(_dict(invocation).get("workingDirectory")).get("uri"))
        if uri:
            return _strip_uri(uri)
    return ""


def _strip_uri(uri: str) -> str:
    return uri[len("file://"):] if uri.startswith("file://") else uri


def _relative(path: str, working_dir: str) -> str:
    if working_dir and path.startswith(working_dir):
        return path[len(working_dir):].lstrip("/")
    return path


def _locations(result: dict[str, Any], working_dir: str) -> list[Evidence]:
    evidence: list[Evidence] = []
    for location in _list(result.get("locations")):
        physical = _dict(_dict(location).get("physicalLocation"))
        uri = _str(_dict(physical.get("artifactLocation")).get("uri"))
        region = _dict(physical.get("region"))
        evidence.append(
            Evidence(
                file=_relative(_strip_uri(uri), working_dir),
                start_line=_int(region.get("startLine")),
                start_column=_int(region.get("startColumn")),
                snippet=_str(_dict(region.get("snippet")).get("text")),
            )
        )
    return evidence


def parse_sarif_runs(runs: Any, kind: FindingKind) -> list[SourceCodeFinding]:
    """Decode secrets or IaC SARIF runs; one finding per result location."""
    findings: list[SourceCodeFinding] = []
    for run in _list(runs):
        if not isinstance(run, dict):
            continue
        working_dir = _working_dir(run)
        for result in _list(run.get("results")):
            if not isinstance(result, dict):
                continue
            severity = _SARIF_LEVELS.get(_str(result.get("level")).lower(), Severity.UNKNOWN)
            text = _str(_dict(result.get("message")).get("text"))
            for location in _locations(result, working_dir):
                findings.append(
                    SourceCodeFinding(
                        kind=kind,
                        severity=severity,
                        finding=text,
                        rule_id=_str(result.get("ruleId")),
                        location=location,
                    )
                )
    return findings


def parse_applicability(runs: Any) -> dict[str, Applicability]:
    """Decode applicability SARIF runs into a CVE id -> verdict map.

    Rules are named "applic_<CVE>". A result of kind "pass" marks the CVE
    not applicable; a result with locations is evidence that it is applicable.
    A rule with no results is undetermined.
    """
    verdicts: dict[str, Applicability] = {}
    for run in _list(runs):
        if not isinstance(run, dict):
            continue
        working_dir = _working_dir(run)
        rules = _list(_dict(_dict(run.get("tool")).get("driver")).get("rules"))
        for rule in rules:
            rule_id = _str(_dict(rule).get("id"))
            if rule_id.startswith(APPLICABILITY_RULE_PREFIX):
                verdicts.setdefault(rule_id[len(APPLICABILITY_RULE_PREFIX):], Applicability(status="Undetermined"))

        for result in _list(run.get("results")):
            if not isinstance(result, dict):
                continue
            rule_id = _str(result.get("ruleId"))
            if not rule_id.startswith(APPLICABILITY_RULE_PREFIX):
                continue
            cve = rule_id[len(APPLICABILITY_RULE_PREFIX):]
            verdict = verdicts.setdefault(cve, Applicability(status="Undetermined"))
            if result.get("kind") == "pass":
                if verdict.status != "Applicable":
                    verdict.status = "Not Applicable"
                continue
            evidence = _locations(result, working_dir)
            if evidence:
                verdict.status = "Applicable"
                verdict.evidence.extend(evidence)
    return verdicts


# ---------------------------------------------------------------------------
# Whole documents
# ---------------------------------------------------------------------------


def decode_snapshot(document: Any, source: str = "<document>") -> ScanSnapshot:
    """Decode a parsed JSON document into a ScanSnapshot."""
    if not isinstance(document, dict):
        raise SnapshotError(source, f"expected a JSON object, got {type(document).__name__}")

    if "scans" not in document:
        if not any(key in document for key in ("vulnerabilities", "violations", "licenses")):
            raise SnapshotError(source, "document has neither 'scans' nor scan response fields")
        return ScanSnapshot(results=[parse_scan_response(document)])

    scans = document.get("scans") or []
    if not isinstance(scans, list):
        raise SnapshotError(source, "'scans' must be a list")
    return ScanSnapshot(
        results=[parse_scan_response(scan) for scan in scans if isinstance(scan, dict)],
        secrets=parse_sarif_runs(document.get("secrets"), FindingKind.SECRET),
        iac=parse_sarif_runs(document.get("iac"), FindingKind.IAC),
        applicability=parse_applicability(document.get("applicability")),
    )
