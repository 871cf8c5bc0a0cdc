from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Severity(IntEnum):
    """Ordered severity scale. Comparison follows the integer value."""

    UNKNOWN = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @classmethod
    def from_string(cls, value: Optional[str]) -> "Severity":
        """Case-insensitive lookup. Anything unrecognised maps to UNKNOWN."""
        if not isinstance(value, str) or not value:
            return cls.UNKNOWN
        return cls.__members__.get(value.strip().upper(), cls.UNKNOWN)

    @property
    def label(self) -> str:
        return self.name.capitalize()


class FindingKind(str, Enum):
    VULNERABILITY = "vulnerability"
    SECURITY_VIOLATION = "security_violation"
    LICENSE_VIOLATION = "license_violation"
    SECRET = "secret"
    IAC = "iac"


class Technology(str, Enum):
    GO = "go"
    MAVEN = "maven"
    GRADLE = "gradle"
    NPM = "npm"
    YARN = "yarn"
    NUGET = "nuget"
    DOTNET = "dotnet"
    PIP = "pip"
    PIPENV = "pipenv"
    POETRY = "poetry"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> Optional["Technology"]:
        """Return the Technology for a tag, or None when the tag is not supported."""
        if not tag:
            return None
        try:
            return cls(tag.strip().lower())
        except ValueError:
            return None


# ---------------------------------------------------------------------------
# Raw findings -- one scan snapshot
# ---------------------------------------------------------------------------


@dataclass
class Evidence:
    file: str = ""
    start_line: int = 0
    start_column: int = 0
    snippet: str = ""


@dataclass
class Applicability:
    status: str  # Applicable | Not Applicable | Undetermined
    evidence: list[Evidence] = field(default_factory=list)


@dataclass
class Cve:
    id: str = ""
    cvss_v3_score: Optional[str] = None
    applicability: Optional[Applicability] = None


@dataclass
class Component:
    name: str
    version: str = ""


@dataclass
class ImpactedComponent:
    name: str
    version: str = ""
    fixed_versions: list[str] = field(default_factory=list)
    # Each path starts at the scanned project root and ends at this component.
    impact_paths: list[list[Component]] = field(default_factory=list)

    @property
    def is_direct(self) -> bool:
        """A component is direct when the path below the root has a single hop."""
        if not self.impact_paths:
            return False
        return len(self.impact_paths[0]) <= 2

    @property
    def direct_dependencies(self) -> list[Component]:
        """The first hop below the root on every impact path, deduplicated in order."""
        seen: set[tuple[str, str]] = set()
        result: list[Component] = []
        for path in self.impact_paths:
            if len(path) < 2:
                continue
            hop = path[1]
            if (hop.name, hop.version) not in seen:
                seen.add((hop.name, hop.version))
                result.append(hop)
        return result


@dataclass
class Finding:
    """A vulnerability, security violation or license violation as reported by the scanner."""

    kind: FindingKind
    issue_id: str = ""
    summary: str = ""
    severity: Severity = Severity.UNKNOWN
    technology: str = ""
    cves: list[Cve] = field(default_factory=list)
    components: list[ImpactedComponent] = field(default_factory=list)
    license_key: str = ""


@dataclass
class SourceCodeFinding:
    """A secret or IaC finding, located in a file rather than a component."""

    kind: FindingKind
    severity: Severity = Severity.UNKNOWN
    finding: str = ""
    rule_id: str = ""
    location: Evidence = field(default_factory=Evidence)


@dataclass
class ScanResults:
    """Dependency scan output for one build root."""

    working_dir: str = ""
    vulnerabilities: list[Finding] = field(default_factory=list)
    violations: list[Finding] = field(default_factory=list)
    licenses: list[Finding] = field(default_factory=list)


@dataclass
class ScanSnapshot:
    results: list[ScanResults] = field(default_factory=list)
    secrets: list[SourceCodeFinding] = field(default_factory=list)
    iac: list[SourceCodeFinding] = field(default_factory=list)
    # CVE id -> applicability verdict from the static applicability pass
    applicability: dict[str, Applicability] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Rows -- one row per (finding, impacted component)
# ---------------------------------------------------------------------------


@dataclass
class VulnerabilityRow:
    kind: FindingKind
    issue_id: str
    impacted_name: str
    impacted_version: str = ""
    summary: str = ""
    severity: Severity = Severity.UNKNOWN
    technology: str = ""
    fixed_versions: list[str] = field(default_factory=list)
    cves: list[Cve] = field(default_factory=list)
    direct_dependencies: list[Component] = field(default_factory=list)
    is_direct: bool = False
    applicable: str = ""


@dataclass
class LicenseRow:
    issue_id: str
    license_key: str
    impacted_name: str
    impacted_version: str = ""
    severity: Severity = Severity.UNKNOWN
    direct_dependencies: list[Component] = field(default_factory=list)


@dataclass
class FindingDelta:
    """Findings present in the candidate snapshot but absent from the baseline."""

    vulnerabilities: list[VulnerabilityRow] = field(default_factory=list)
    security_violations: list[VulnerabilityRow] = field(default_factory=list)
    license_violations: list[LicenseRow] = field(default_factory=list)
    source_code: list[SourceCodeFinding] = field(default_factory=list)

    @property
    def total(self) -> int:
        return (
            len(self.vulnerabilities)
            + len(self.security_violations)
            + len(self.license_violations)
            + len(self.source_code)
        )

    @property
    def is_empty(self) -> bool:
        return self.total == 0


# ---------------------------------------------------------------------------
# Remediation
# ---------------------------------------------------------------------------


@dataclass
class FixTarget:
    name: str
    technology: str
    current_version: str
    fix_version: str  # "" = no safe fix available
    is_direct: bool = False
    cves: list[str] = field(default_factory=list)
    # Union of every candidate fix version seen for this component, in first-seen order
    candidate_versions: list[str] = field(default_factory=list)


@dataclass
class FixOutcome:
    target: FixTarget
    status: str  # fixed | no_fix | unsupported | failed
    branch: str = ""
    commit_message: str = ""
    pull_request_title: str = ""
    error: Optional[Exception] = None

    @property
    def message(self) -> str:
        return str(self.error) if self.error is not None else ""
