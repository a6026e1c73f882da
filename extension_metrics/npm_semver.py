"""
npm semver helpers built on the ``node-semver`` package.

All comparisons run in loose mode, matching how the npm client reads
versions and ranges found in published manifests.
"""

from __future__ import annotations

import re
from functools import cmp_to_key
from typing import Iterable, List, Optional, Tuple

import nodesemver

LOOSE = True

LATEST_TAG = "latest"

_COMPARATOR_RE = re.compile(r"^(<=|>=|<|>|=)?\s*(\S*)$")

# (version, inclusive)
Bound = Optional[Tuple[str, bool]]


def is_valid(version: str) -> bool:
    """True if ``version`` is a parseable semver version."""
    try:
        return nodesemver.valid(version, LOOSE) is not None
    except (ValueError, TypeError):
        return False


def is_prerelease(version: str) -> bool:
    try:
        parsed = nodesemver.make_semver(version, LOOSE)
    except (ValueError, TypeError):
        return False
    return bool(parsed.prerelease)


def compare(a: str, b: str) -> int:
    return nodesemver.compare(a, b, LOOSE)


def npm_semver_key(version: str):
    """Sort key for a version string, or ``None`` when it is not valid semver."""
    if not is_valid(version):
        return None
    return cmp_to_key(compare)(version)


def sort_desc(versions: Iterable[str]) -> List[str]:
    """Sort valid versions newest first."""
    return sorted(versions, key=cmp_to_key(compare), reverse=True)


def lte(a: str, b: str) -> bool:
    return nodesemver.lte(a, b, LOOSE)


def max_version(versions: Iterable[str]) -> Optional[str]:
    """Highest non-prerelease version in ``versions``."""
    candidates = [v for v in versions if is_valid(v)]
    if not candidates:
        return None
    return nodesemver.max_satisfying(candidates, "*", LOOSE)


def caret_range(version: str) -> str:
    return f"^{version}"


def normalize_range(range_: str) -> Optional[str]:
    """Canonical comparator form of ``range_`` (``None`` if it is not a range)."""
    try:
        return nodesemver.valid_range(range_, LOOSE)
    except (ValueError, TypeError):
        return None


def _comparator_sets(range_: str) -> Optional[List[List[Tuple[str, str]]]]:
    normalized = normalize_range(range_)
    if normalized is None:
        return None
    sets = []
    for group in normalized.split("||"):
        comparators = []
        for token in group.split():
            match = _COMPARATOR_RE.match(token)
            if match is None:
                return None
            operator, version = match.group(1) or "=", match.group(2)
            if not version or version == "*":
                continue
            comparators.append((operator, version))
        sets.append(comparators)
    return sets


def _tighter_lower(current: Bound, candidate: Tuple[str, bool]) -> Bound:
    if current is None:
        return candidate
    order = compare(candidate[0], current[0])
    if order > 0 or (order == 0 and not candidate[1]):
        return candidate
    return current


def _tighter_upper(current: Bound, candidate: Tuple[str, bool]) -> Bound:
    if current is None:
        return candidate
    order = compare(candidate[0], current[0])
    if order < 0 or (order == 0 and not candidate[1]):
        return candidate
    return current


def _bounds(comparators: Iterable[Tuple[str, str]]) -> Tuple[Bound, Bound]:
    lower: Bound = None
    upper: Bound = None
    for operator, version in comparators:
        if operator in (">", ">="):
            lower = _tighter_lower(lower, (version, operator == ">="))
        elif operator in ("<", "<="):
            upper = _tighter_upper(upper, (version, operator == "<="))
        else:
            lower = _tighter_lower(lower, (version, True))
            upper = _tighter_upper(upper, (version, True))
    return lower, upper


def _release_tuple(version: str) -> Tuple[int, int, int]:
    parsed = nodesemver.make_semver(version, LOOSE)
    return int(parsed.major), int(parsed.minor), int(parsed.patch)


def _below_upper(version: str, upper: Bound) -> bool:
    if upper is None:
        return True
    order = compare(version, upper[0])
    return order < 0 or (order == 0 and upper[1])


def _smallest_release(lower: Bound) -> str:
    """Lowest non-prerelease version allowed by ``lower``."""
    if lower is None:
        return "0.0.0"
    version, inclusive = lower
    major, minor, patch = _release_tuple(version)
    if is_prerelease(version) or inclusive:
        return f"{major}.{minor}.{patch}"
    return f"{major}.{minor}.{patch + 1}"


def _allows_prerelease_of(comparators: List[Tuple[str, str]], release: Tuple[int, int, int]) -> bool:
    return any(
        is_prerelease(version) and _release_tuple(version) == release
        for _, version in comparators
    )


def _sets_intersect(set_a: List[Tuple[str, str]], set_b: List[Tuple[str, str]]) -> bool:
    lower, upper = _bounds(set_a + set_b)
    if lower is not None and upper is not None:
        order = compare(lower[0], upper[0])
        if order > 0 or (order == 0 and not (lower[1] and upper[1])):
            return False

    release = _smallest_release(lower)
    if _below_upper(release, upper):
        return True

    # Only prereleases of ``release`` are left. npm lets a prerelease match a
    # comparator set only if the set names a prerelease of the same
    # major.minor.patch.
    target = _release_tuple(release)
    return _allows_prerelease_of(set_a, target) and _allows_prerelease_of(set_b, target)


def ranges_intersect(range_a: str, range_b: str) -> bool:
    """True if some version could satisfy both npm ranges.

    Ranges that do not parse (git urls, file paths, dist-tags) never
    intersect anything.
    """
    sets_a = _comparator_sets(range_a)
    sets_b = _comparator_sets(range_b)
    if sets_a is None or sets_b is None:
        return False
    return any(_sets_intersect(a, b) for a in sets_a for b in sets_b)


def satisfies_declaration(declared: str, range_: str) -> bool:
    """Compare a declared dependency against a range; ``latest`` always matches."""
    if declared == LATEST_TAG:
        return True
    return ranges_intersect(range_, declared)
