"""
Drive extension classification over one date or a range of dates.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from tqdm import tqdm

from .cache import CachedPackageData, CachedPublishTimes, JsonFileBackend
from .classifier import classify, merge_dependencies
from .config import AnalysisConfig
from .exceptions import FetchError
from .interfaces import RegistryClient
from .models import UNCLASSIFIED, Classification, Extension
from .registry import NpmRegistryClient
from .reporting import ReportData
from .resolvers import TemporalVersionResolver
from .time_utils import build_sample_dates, date_string, ensure_utc


logger = logging.getLogger(__name__)

Outcome = Optional[Tuple[Extension, Classification, Dict]]


class ExtensionAnalyzer:
    """Classify registry extensions against known JupyterLab eras."""

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        registry: Optional[RegistryClient] = None,
        package_cache: Optional[CachedPackageData] = None,
        times_cache: Optional[CachedPublishTimes] = None,
    ):
        """Initialize the analyzer.

        Args:
            config: Analysis settings; defaults to :class:`AnalysisConfig`
            registry: Registry client; defaults to the npm registry
            package_cache: Manifest cache; defaults to a JSON file in ``cache_dir``
            times_cache: Publish-time cache; defaults to a JSON file in ``cache_dir``
        """
        self.config = config or AnalysisConfig()
        self.output_dir = Path(self.config.output_dir)
        self.registry = registry or NpmRegistryClient(
            registry_url=self.config.registry_urls["npm"],
            keyword=self.config.keyword,
            page_size=self.config.page_size,
            timeout=self.config.request_timeout,
            use_npm_cli=self.config.use_npm_cli,
        )
        # Empty caches are falsy, so compare against None.
        if package_cache is None:
            package_cache = CachedPackageData(
                self.registry, JsonFileBackend(self.config.package_cache_file)
            )
        if times_cache is None:
            times_cache = CachedPublishTimes(
                self.registry, JsonFileBackend(self.config.times_cache_file)
            )
        self.package_cache = package_cache
        self.times_cache = times_cache
        self.resolver = TemporalVersionResolver(
            self.package_cache, self.times_cache, self.config.canaries
        )

    def iter_extensions(self) -> Iterator[Extension]:
        """Yield search results page by page, requesting the next page ahead."""
        with ThreadPoolExecutor(max_workers=1) as pager:
            page = 0
            pending = pager.submit(self.registry.search_extensions, "", page)
            while True:
                objects = pending.result().get("objects", [])
                if not objects:
                    break
                page += 1
                pending = pager.submit(self.registry.search_extensions, "", page)
                for obj in objects:
                    yield Extension.from_search_object(obj)

    def collect_extensions(self) -> List[Extension]:
        extensions = list(self.iter_extensions())
        logger.info("Found %s extensions", len(extensions))
        return extensions

    def classify_manifest(
        self, manifest: Dict, canary_ranges: Dict[str, str]
    ) -> Classification:
        deps = merge_dependencies(manifest)
        return classify(deps, canary_ranges, self.config.eras)

    def classify_at_date(
        self,
        extension: Extension,
        at_date: datetime,
        canary_ranges: Dict[str, str],
    ) -> Outcome:
        """Classify the version of ``extension`` that was current at ``at_date``.

        Returns ``None`` for deprecated extensions and for extensions that had
        no release before the date.
        """
        if extension.deprecated:
            return None
        version = self.resolver.version_at_date(extension.name, extension.version, at_date)
        if version is None:
            return None
        manifest = self.package_cache.get(extension.name, version)
        dated = Extension(name=extension.name, version=version, keywords=extension.keywords)
        return dated, self.classify_manifest(manifest, canary_ranges), manifest

    def snapshot(self, at_date: datetime, extensions: List[Extension]) -> ReportData:
        """Classify all extensions at one date.

        Any failure aborts the whole date; no partial report is returned.
        """
        at_date = ensure_utc(at_date)
        canary_ranges = self.resolver.canary_ranges_at_date(at_date)
        report = ReportData(date_string(at_date))

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures = {
                executor.submit(self.classify_at_date, ext, at_date, canary_ranges): ext
                for ext in extensions
            }
            for future in as_completed(futures):
                ext = futures[future]
                try:
                    outcome = future.result()
                except FetchError:
                    logger.error("Failed to fetch data for %s@%s", ext.name, ext.version)
                    report.add(ext, UNCLASSIFIED, False)
                    for pending in futures:
                        pending.cancel()
                    raise
                if outcome is None:
                    continue
                dated, classification, manifest = outcome
                report.add(dated, classification.labversion, classification.uptodate, manifest)
        return report

    def backfill(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        sample_rate_days: Optional[int] = None,
    ) -> List[Path]:
        """Write one snapshot per sampled date between ``start_date`` and ``end_date``.

        Stops at the first date that fails; snapshots already written are kept
        and the caches are saved either way.
        """
        start = start_date or self.config.start_date
        stop = end_date or datetime.now(timezone.utc)
        rate = sample_rate_days or self.config.sample_rate_days
        written: List[Path] = []
        try:
            extensions = self.collect_extensions()
            for at_date in tqdm(build_sample_dates(start, stop, rate), desc="Snapshots"):
                logger.info("Processing %s", date_string(at_date))
                report = self.snapshot(at_date, extensions)
                report.report()
                written.append(
                    report.save(self.output_dir / f"{report.date_str}.json", indent=1)
                )
        finally:
            self.save_caches()
        return written

    def profile(self) -> Path:
        """Classify the currently tagged version of every extension."""
        report = ReportData(date_string(datetime.now(timezone.utc)))
        try:
            canary_ranges = self.resolver.latest_canary_ranges()
            for ext in self.iter_extensions():
                if ext.deprecated:
                    continue
                manifest = self.package_cache.get(ext.name, ext.version)
                classification = self.classify_manifest(manifest, canary_ranges)
                if classification.labversion == UNCLASSIFIED:
                    logger.debug(
                        "Could not classify %s: %s", ext.name, merge_dependencies(manifest)
                    )
                report.add(ext, classification.labversion, classification.uptodate, manifest)
            report.report()
            return report.save(self.output_dir / f"{report.date_str}.json")
        finally:
            self.save_caches()

    def save_caches(self) -> None:
        self.package_cache.save()
        self.times_cache.save()
