#!/usr/bin/env python3
"""
Vulnerability remediator -- finds the issues a change introduces and fixes
the vulnerable dependencies with the smallest safe version bump.

Usage:
  python main.py diff baseline.json candidate.json
  python main.py diff baseline.json candidate.json --allowed-license MIT --allowed-license Apache-2.0
  python main.py diff https://ci.example.com/scans/base.json candidate.json --format json
  python main.py fix candidate.json --working-dir ./project --base-branch main
  python main.py fix candidate.json --working-dir ./project --base-branch main --dry-run
  python main.py fix candidate.json --working-dir ./project --base-branch main --technology npm

Environment variables (all optional, also read from .env):
  JF_ALLOWED_LICENSES            License keys never reported (JSON list or comma-separated).
  JF_FAIL                        Exit 1 from diff when new issues are found (default: true).
  JF_BRANCH_NAME_TEMPLATE        Custom fix branch name; must contain ${BRANCH_NAME_HASH}.
  JF_COMMIT_MESSAGE_TEMPLATE     Commit message; may use ${IMPACTED_PACKAGE} and ${FIX_VERSION}.
  JF_PULL_REQUEST_TITLE_TEMPLATE Pull request title; same variables.
  JF_AGGREGATE_FIXES             One branch per technology instead of per package.
  JF_REQUIREMENTS_FILE           pip requirements file to edit instead of discovering one.
  JF_LOG_LEVEL / JF_DEBUG        Log verbosity.
"""

import argparse
import logging
import sys
from typing import Optional

from pydantic import ValidationError

from core.branches import FixNaming
from core.config import Settings, get_settings
from core.differ import collect_rows
from core.errors import ManifestError, SnapshotError
from core.fetcher import load_snapshot
from core.formatter import delta_to_dict, disable_color, outcome_to_dict, print_delta, print_outcomes, to_json
from core.models import FixOutcome
from core.pipeline import FAILED, NO_FIX, find_new_issues, plan_fixes, remediate
from handlers.dispatcher import PackageHandlerDispatcher

PLANNED = "planned"


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def run_diff(args: argparse.Namespace, settings: Settings) -> int:
    try:
        baseline = load_snapshot(args.baseline, settings.snapshot_timeout)
        candidate = load_snapshot(args.candidate, settings.snapshot_timeout)
    except SnapshotError as e:
        print(f"  [!] {e}")
        return 2

    allowed = args.allowed_license or settings.allowed_licenses
    delta = find_new_issues(baseline, candidate, allowed)

    if args.format == "json":
        print(to_json(delta_to_dict(delta)))
    else:
        print_delta(delta)

    if not delta.is_empty and settings.fail:
        return 1
    return 0


def _dry_run(targets, naming: FixNaming) -> list[FixOutcome]:
    outcomes = []
    for target in targets:
        if not target.fix_version:
            outcomes.append(FixOutcome(target=target, status=NO_FIX))
            continue
        outcomes.append(
            FixOutcome(
                target=target,
                status=PLANNED,
                branch=naming.branch(target),
                commit_message=naming.commit_message(target),
                pull_request_title=naming.pull_request_title(target),
            )
        )
    return outcomes


def run_fix(args: argparse.Namespace, settings: Settings) -> int:
    try:
        snapshot = load_snapshot(args.snapshot, settings.snapshot_timeout)
    except SnapshotError as e:
        print(f"  [!] {e}")
        return 2

    rows = collect_rows(snapshot, settings.allowed_licenses)
    targets = plan_fixes(rows.vulnerabilities + rows.security_violations, args.technology)
    if not targets:
        print("  No fixable vulnerabilities found.")
        return 0

    naming = FixNaming.from_settings(args.base_branch, settings, aggregate=args.aggregate or None)
    if args.dry_run:
        outcomes = _dry_run(targets, naming)
    else:
        dispatcher = PackageHandlerDispatcher(args.working_dir, settings, technology=args.technology)
        try:
            outcomes = remediate(targets, dispatcher, naming)
        except ManifestError as e:
            print(f"  [!] Could not read project manifest {e}")
            return 2

    if args.format == "json":
        print(to_json([outcome_to_dict(o) for o in outcomes]))
    else:
        print_outcomes(outcomes, dry_run=args.dry_run)

    return 1 if any(o.status == FAILED for o in outcomes) else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vuln-remediator",
        description="Find newly introduced vulnerabilities and apply minimal fix versions.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py diff baseline.json candidate.json
  python main.py diff baseline.json candidate.json --format json > delta.json
  python main.py fix candidate.json --working-dir . --base-branch main --dry-run
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    diff = sub.add_parser("diff", help="List the issues CANDIDATE introduces over BASELINE")
    diff.add_argument("baseline", metavar="BASELINE", help="Baseline scan snapshot (path or http(s) URL)")
    diff.add_argument("candidate", metavar="CANDIDATE", help="Candidate scan snapshot (path or http(s) URL)")
    diff.add_argument(
        "--allowed-license",
        action="append",
        default=[],
        metavar="KEY",
        help="License key that is never reported; repeatable (default: JF_ALLOWED_LICENSES)",
    )

    fix = sub.add_parser("fix", help="Apply minimal fix versions for the vulnerabilities in SNAPSHOT")
    fix.add_argument("snapshot", metavar="SNAPSHOT", help="Scan snapshot (path or http(s) URL)")
    fix.add_argument("--working-dir", default=".", metavar="DIR", help="Project to fix (default: .)")
    fix.add_argument("--base-branch", required=True, metavar="BRANCH", help="Branch the fixes will target")
    fix.add_argument(
        "--technology",
        default=None,
        metavar="TECH",
        help="Project technology (maven, gradle, npm, pip, ...); overrides the one the scan reports",
    )
    fix.add_argument("--dry-run", action="store_true", help="Print the fix plan without changing any file")
    fix.add_argument(
        "--aggregate",
        action="store_true",
        help="One branch and pull request per technology instead of per package (default: JF_AGGREGATE_FIXES)",
    )

    for command in (diff, fix):
        command.add_argument(
            "--format",
            choices=["terminal", "json"],
            default="terminal",
            metavar="FORMAT",
            help="Output format: terminal (default) or json",
        )
        command.add_argument(
            "--no-color",
            action="store_true",
            help="Disable ANSI color codes in terminal output",
        )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"  [!] Invalid configuration: {e}")
        return 2
    _configure_logging(settings)

    # Apply color preference before any output
    if args.no_color:
        disable_color()

    if args.command == "diff":
        return run_diff(args, settings)
    return run_fix(args, settings)


if __name__ == "__main__":
    sys.exit(main())
