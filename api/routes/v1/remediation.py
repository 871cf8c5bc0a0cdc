"""
api/routes/v1/remediation.py -- Differencing and fix-planning routes.

Both routes decode the posted scan documents, run the core algorithms and
return the result. A document that fails to decode raises SnapshotError,
which api/main.py turns into a 400 naming the offending field.

@limiter.limit() sits above @router.post so slowapi registers the limit on
the undecorated function.
"""

from fastapi import APIRouter, Request

from api.limiter import limiter
from api.models import DiffRequest, DiffResponse, FixPlanRequest, FixPlanResponse, FixPlanRow
from core.branches import FixNaming
from core.config import get_settings
from core.differ import collect_rows
from core.formatter import delta_to_dict
from core.pipeline import find_new_issues, plan_fixes
from core.snapshot import decode_snapshot

router = APIRouter()

_DELTA_LISTS = ("vulnerabilities", "security_violations", "license_violations", "source_code")


@limiter.limit("30/minute")
@router.post("/diff", response_model=DiffResponse)
def post_diff(request: Request, body: DiffRequest) -> DiffResponse:
    """Return the issues the candidate snapshot introduces over the baseline."""
    baseline = decode_snapshot(body.baseline, "baseline")
    candidate = decode_snapshot(body.candidate, "candidate")
    allowed = body.allowed_licenses if body.allowed_licenses is not None else get_settings().allowed_licenses

    delta = delta_to_dict(find_new_issues(baseline, candidate, allowed))
    return DiffResponse(
        total=delta["total"],
        counts={name: len(delta[name]) for name in _DELTA_LISTS},
        **{name: delta[name] for name in _DELTA_LISTS},
    )


@limiter.limit("30/minute")
@router.post("/fix-plan", response_model=FixPlanResponse)
def post_fix_plan(request: Request, body: FixPlanRequest) -> FixPlanResponse:
    """Return one fix target per fixable component, with the branch each fix would use.

    Targets with no version above the installed one are listed with an
    empty fix_version and no branch. Commit messages and pull request titles
    follow the JF_ templates, as the CLI would use them.
    """
    settings = get_settings()
    snapshot = decode_snapshot(body.snapshot, "snapshot")
    rows = collect_rows(snapshot, settings.allowed_licenses)
    targets = plan_fixes(rows.vulnerabilities + rows.security_violations, body.technology)

    naming = FixNaming.from_settings(body.base_branch, settings, aggregate=body.aggregate)
    plan = [FixPlanRow.from_target(target, naming) for target in targets]
    return FixPlanResponse(total=len(plan), fixable=sum(1 for row in plan if row.branch), targets=plan)
