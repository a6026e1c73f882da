"""
Resolve which version of a package was current at a past date.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .cache import CachedPackageData, CachedPublishTimes
from .exceptions import FetchError
from .npm_semver import LATEST_TAG, caret_range, is_prerelease, is_valid, lte, sort_desc
from .time_utils import published_before
from .version_spec import CANARIES


logger = logging.getLogger(__name__)


def validate_versions(
    name: str,
    versions: Iterable[str],
    package_cache: CachedPackageData,
) -> List[str]:
    """Keep release versions of ``name`` that have manifest data."""
    filtered = []
    for ver in versions:
        if not is_valid(ver) or is_prerelease(ver):
            continue
        try:
            package_cache.get(name, ver)
        except FetchError as e:
            logger.debug("Dropping %s@%s: %s", name, ver, e)
            continue
        filtered.append(ver)
    return filtered


def resolve_version_at_date(
    versions_desc: Sequence[str],
    times: Mapping[str, str],
    at_date: datetime,
    context_version: Optional[str] = None,
) -> Optional[str]:
    """Newest version published strictly before ``at_date``.

    ``versions_desc`` must be sorted newest first. When ``context_version``
    is given, versions above it are ignored. Returns ``None`` if no version
    qualifies, meaning the package did not exist yet at that date.
    """
    if context_version is not None and not is_valid(context_version):
        context_version = None
    for ver in versions_desc:
        if context_version is not None and not lte(ver, context_version):
            continue
        if published_before(times.get(ver), at_date):
            return ver
    return None


class TemporalVersionResolver:
    """Resolve package and canary versions at arbitrary dates using the caches."""

    def __init__(
        self,
        package_cache: CachedPackageData,
        times_cache: CachedPublishTimes,
        canaries: Sequence[str] = CANARIES,
    ) -> None:
        self.package_cache = package_cache
        self.times_cache = times_cache
        self.canaries = tuple(canaries)
        self._canary_timelines: Optional[Dict[str, tuple]] = None

    def release_timeline(self, name: str, reference_version: str):
        """Valid release versions (newest first) and their publish times."""
        times = self.times_cache.get(name, reference_version)
        versions = sort_desc(validate_versions(name, times.keys(), self.package_cache))
        return versions, times

    def version_at_date(
        self, name: str, context_version: str, at_date: datetime
    ) -> Optional[str]:
        versions, times = self.release_timeline(name, context_version)
        return resolve_version_at_date(versions, times, at_date, context_version)

    def canary_ranges_at_date(self, at_date: datetime) -> Dict[str, str]:
        """Caret range of each canary's newest release before ``at_date``.

        Canaries without any release before the date are left out.
        """
        if self._canary_timelines is None:
            timelines = {}
            for canary in self.canaries:
                self.package_cache.get(canary, LATEST_TAG)
                latest = self.package_cache.max_version(canary) or LATEST_TAG
                timelines[canary] = self.release_timeline(canary, latest)
            self._canary_timelines = timelines

        ranges = {}
        for canary, (versions, times) in self._canary_timelines.items():
            ver = resolve_version_at_date(versions, times, at_date)
            if ver is None:
                logger.debug("No release of %s before %s", canary, at_date)
                continue
            ranges[canary] = caret_range(ver)
        return ranges

    def latest_canary_ranges(self) -> Dict[str, str]:
        """Caret range of each canary's ``latest`` dist-tag."""
        ranges = {}
        for canary in self.canaries:
            manifest = self.package_cache.get(canary, LATEST_TAG)
            ranges[canary] = caret_range(manifest["version"])
        return ranges
