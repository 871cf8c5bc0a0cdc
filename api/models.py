"""
API request and response models for the remediation REST endpoints.

Pydantic v2 models for what goes over the wire. Routes convert core results
through core.formatter's dict helpers or FixPlanRow.from_target.

Snapshot documents are passed through as plain JSON objects and decoded by
core.snapshot, so the scanner's schema is validated in one place only.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.branches import FixNaming
from core.models import FixTarget

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class DiffRequest(BaseModel):
    """Request body for POST /api/v1/diff."""

    baseline: dict[str, Any]
    candidate: dict[str, Any]
    allowed_licenses: Optional[list[str]] = Field(
        default=None,
        description="License keys never reported. Defaults to JF_ALLOWED_LICENSES.",
    )


class FixPlanRequest(BaseModel):
    """Request body for POST /api/v1/fix-plan."""

    model_config = ConfigDict(str_strip_whitespace=True)

    snapshot: dict[str, Any]
    base_branch: str = Field(min_length=1, max_length=255)
    technology: Optional[str] = Field(default=None, max_length=32)
    # None means JF_AGGREGATE_FIXES decides
    aggregate: Optional[bool] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class DiffResponse(BaseModel):
    """Response body for POST /api/v1/diff: the four delta lists plus counts."""

    model_config = ConfigDict(frozen=True)

    total: int
    counts: dict[str, int]
    vulnerabilities: list[dict[str, Any]]
    security_violations: list[dict[str, Any]]
    license_violations: list[dict[str, Any]]
    source_code: list[dict[str, Any]]


class FixPlanRow(BaseModel):
    """One fix target. branch, commit_message and pull_request_title are None without a fix version."""

    model_config = ConfigDict(frozen=True)

    name: str
    technology: str
    current_version: str
    fix_version: str
    is_direct: bool
    cves: list[str]
    branch: Optional[str] = None
    commit_message: Optional[str] = None
    pull_request_title: Optional[str] = None

    @classmethod
    def from_target(cls, target: FixTarget, naming: FixNaming) -> "FixPlanRow":
        fixable = bool(target.fix_version)
        return cls(
            name=target.name,
            technology=target.technology,
            current_version=target.current_version,
            fix_version=target.fix_version,
            is_direct=target.is_direct,
            cves=list(target.cves),
            branch=naming.branch(target) if fixable else None,
            commit_message=naming.commit_message(target) if fixable else None,
            pull_request_title=naming.pull_request_title(target) if fixable else None,
        )


class FixPlanResponse(BaseModel):
    """Response body for POST /api/v1/fix-plan."""

    model_config = ConfigDict(frozen=True)

    total: int
    fixable: int
    targets: list[FixPlanRow]


class ErrorDetail(BaseModel):
    """code is stable for clients to match on; message is for people."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
