"""
formatter.py -- Renders finding deltas, fix plans and fix outcomes to the
terminal or to JSON.
"""

import json
import os
import re
import sys
from dataclasses import asdict
from typing import Any, Optional

from .models import FindingDelta, FixOutcome, FixTarget, LicenseRow, Severity, SourceCodeFinding, VulnerabilityRow

W = 68  # output width

# ---------------------------------------------------------------------------
# Color
# ---------------------------------------------------------------------------

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")

# --no-color / enable_color() pin this; None means decide per call.
_color_enabled: Optional[bool] = None

RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
BLUE = "\033[94m"

SEVERITY_COLORS = {
    Severity.CRITICAL: RED,
    Severity.HIGH: RED,
    Severity.MEDIUM: YELLOW,
    Severity.LOW: BLUE,
}

STATUS_COLORS = {
    "fixed": GREEN,
    "no_fix": DIM,
    "unsupported": YELLOW,
    "failed": RED,
}


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


def disable_color() -> None:
    global _color_enabled
    _color_enabled = False


def enable_color() -> None:
    global _color_enabled
    _color_enabled = True


def _color_active() -> bool:
    """NO_COLOR (https://no-color.org) beats FORCE_COLOR; otherwise color only on a TTY."""
    if _color_enabled is not None:
        return _color_enabled
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    return sys.stdout.isatty() if hasattr(sys.stdout, "isatty") else False


def _paint(text: str, code: str) -> str:
    if not code or not _color_active():
        return text
    return f"{code}{text}{RESET}"


# ---------------------------------------------------------------------------
# Layout helpers
# ---------------------------------------------------------------------------


def _bar(char: str = "═") -> str:
    return char * W


def _section(title: str, count: int) -> str:
    return f"\n  {_paint(title, BOLD)} ({count})\n  {'─' * (W - 2)}"


def _severity_cell(severity: Severity) -> str:
    return _paint(f"{severity.label:<9}", SEVERITY_COLORS.get(severity, ""))


# ---------------------------------------------------------------------------
# Terminal renderers
# ---------------------------------------------------------------------------


def _banner(title: str) -> None:
    print(f"\n{_paint(_bar(), BOLD)}")
    print(f"  {_paint(title, BOLD)}")
    print(_paint(_bar(), BOLD))


def _print_vulnerability_rows(title: str, rows: list[VulnerabilityRow]) -> None:
    print(_section(title, len(rows)))
    for row in rows:
        cves = ", ".join(c.id for c in row.cves if c.id) or "-"
        fixes = ", ".join(row.fixed_versions) or "no fix"
        direct = "direct" if row.is_direct else "indirect"
        print(f"    {_severity_cell(row.severity)} {row.impacted_name}:{row.impacted_version}  [{direct}]")
        detail = f"{row.issue_id or '-'}  {cves}  fixed in: {fixes}"
        print(f"    {_paint(detail, DIM)}")
        if row.applicable:
            print(f"    {_paint(f'Contextual analysis: {row.applicable}', DIM)}")


def _print_license_rows(rows: list[LicenseRow]) -> None:
    print(_section("LICENSE VIOLATIONS", len(rows)))
    for row in rows:
        print(f"    {_severity_cell(row.severity)} {row.license_key:<16} {row.impacted_name}:{row.impacted_version}")


def _print_source_code(rows: list[SourceCodeFinding]) -> None:
    print(_section("SECRETS AND IAC", len(rows)))
    for row in rows:
        loc = row.location
        print(f"    {_severity_cell(row.severity)} {loc.file}:{loc.start_line}:{loc.start_column}  [{row.kind.value}]")
        if row.finding:
            print(f"    {_paint(row.finding, DIM)}")


def print_delta(delta: FindingDelta) -> None:
    """Print every new issue, grouped by kind in the order found."""
    _banner(f"NEW ISSUES -- {delta.total} found")

    if delta.is_empty:
        print("\n    No new issues were introduced.")
    if delta.vulnerabilities:
        _print_vulnerability_rows("VULNERABILITIES", delta.vulnerabilities)
    if delta.security_violations:
        _print_vulnerability_rows("SECURITY VIOLATIONS", delta.security_violations)
    if delta.license_violations:
        _print_license_rows(delta.license_violations)
    if delta.source_code:
        _print_source_code(delta.source_code)

    print(f"\n{_bar()}\n")


def print_outcomes(outcomes: list[FixOutcome], dry_run: bool = False) -> None:
    """Print one line per fix target: status, package, versions and branch."""
    _banner(f"{'FIX PLAN' if dry_run else 'FIX RESULTS'} -- {len(outcomes)} package(s)")
    print()

    for outcome in outcomes:
        target = outcome.target
        status = _paint(f"{outcome.status:<12}", STATUS_COLORS.get(outcome.status, ""))
        print(f"  {status}{target.name}  {target.current_version or '?'} -> {target.fix_version or '-'}")
        if outcome.branch:
            print(f"    {_paint(f'branch: {outcome.branch}', DIM)}")
        if outcome.pull_request_title:
            print(f"    {_paint(f'title:  {outcome.pull_request_title}', DIM)}")
        if outcome.error is not None:
            print(f"    {outcome.message}")

    print(f"\n{_bar()}\n")


# ---------------------------------------------------------------------------
# JSON export
# ---------------------------------------------------------------------------


def _severity_fields(d: dict[str, Any], severity: Severity) -> dict[str, Any]:
    d["severity"] = severity.label
    return d


def vulnerability_to_dict(row: VulnerabilityRow) -> dict[str, Any]:
    d = asdict(row)
    d["kind"] = row.kind.value
    return _severity_fields(d, row.severity)


def license_to_dict(row: LicenseRow) -> dict[str, Any]:
    return _severity_fields(asdict(row), row.severity)


def source_code_to_dict(row: SourceCodeFinding) -> dict[str, Any]:
    d = asdict(row)
    d["kind"] = row.kind.value
    return _severity_fields(d, row.severity)


def delta_to_dict(delta: FindingDelta) -> dict[str, Any]:
    return {
        "total": delta.total,
        "vulnerabilities": [vulnerability_to_dict(r) for r in delta.vulnerabilities],
        "security_violations": [vulnerability_to_dict(r) for r in delta.security_violations],
        "license_violations": [license_to_dict(r) for r in delta.license_violations],
        "source_code": [source_code_to_dict(r) for r in delta.source_code],
    }


def target_to_dict(target: FixTarget) -> dict[str, Any]:
    return asdict(target)


def outcome_to_dict(outcome: FixOutcome) -> dict[str, Any]:
    return {
        "target": target_to_dict(outcome.target),
        "status": outcome.status,
        "branch": outcome.branch,
        "commit_message": outcome.commit_message,
        "pull_request_title": outcome.pull_request_title,
        "error": outcome.message or None,
    }


def to_json(data: Any) -> str:
    return json.dumps(data, indent=2)
