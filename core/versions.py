"""
core/versions.py -- Version comparison and Maven-style range parsing.

Versions are compared on their dotted numeric core first, with a single
leading "v" ignored and missing trailing segments read as zero
("1.2" == "1.2.0"). Whatever follows the numeric core is a suffix:

  "1.2.3-beta"     pre-release, sorts below the bare release "1.2.3"
  "1.2.3"          release
  "1.2.3.RELEASE"  qualifier, sorts above the bare release

Suffixes of the same rank compare lexicographically. Build metadata after
"+" is ignored. Every comparison goes through version_key(), so the ordering
is total: antisymmetric and transitive by construction.

Range syntax understood by parse_exact_version():

  1.0          -> 1.0   (lower bound, always available)
  [1.0]        -> 1.0   (exact pin)
  [1.0, 2.0]   -> 1.0   (closed interval, lower bound)
  (,1.0] (1.0,) (1.0,2.0) ...  -> not resolvable, any open parenthesis
"""

import re

_CORE_RE = re.compile(r"^(\d+(?:\.\d+)*)(.*)$")

_PRE_RELEASE = 0
_RELEASE = 1
_QUALIFIED = 2


def _strip_prefix(version: str) -> str:
    version = version.strip()
    if version[:1] in ("v", "V"):
        version = version[1:]
    return version.split("+", 1)[0]


def is_comparable(version: str) -> bool:
    """True when the version starts with a numeric segment (after an optional "v")."""
    return _CORE_RE.match(_strip_prefix(version or "")) is not None


def version_key(version: str) -> tuple:
    """Sort key implementing the ordering described in the module docstring."""
    normalized = _strip_prefix(version or "")
    match = _CORE_RE.match(normalized)
    if match:
        numbers = [int(part) for part in match.group(1).split(".")]
        suffix = match.group(2)
    else:
        numbers = []
        suffix = normalized
    while numbers and numbers[-1] == 0:
        numbers.pop()
    if not suffix:
        rank = _RELEASE
    elif suffix.startswith("-"):
        rank = _PRE_RELEASE
    else:
        rank = _QUALIFIED
    return tuple(numbers), rank, suffix


def compare(a: str, b: str) -> int:
    """Return -1, 0 or 1 as a is less than, equal to, or greater than b."""
    key_a, key_b = version_key(a), version_key(b)
    if key_a < key_b:
        return -1
    if key_a > key_b:
        return 1
    return 0


def parse_exact_version(range_expr: str) -> tuple[str, bool]:
    """Return (version, True) when the expression names one guaranteed-available version."""
    expr = (range_expr or "").strip()
    if not expr or "(" in expr or ")" in expr:
        return "", False
    if expr.startswith("[") or expr.endswith("]"):
        if not (expr.startswith("[") and expr.endswith("]")):
            return "", False
        lower = expr[1:-1].split(",", 1)[0].strip()
        if not lower:
            return "", False
        return lower, True
    return expr, True
