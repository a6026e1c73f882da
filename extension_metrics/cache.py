"""
Persistent caches for package manifests and publish times.

Both caches keep their whole mapping in memory for the lifetime of a run
and write it back only when :meth:`CachedBase.save` is called.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import CacheMissUnresolvable
from .interfaces import CacheBackend, RegistryClient
from .models import PublishTimeline
from .npm_semver import LATEST_TAG, max_version


logger = logging.getLogger(__name__)


class JsonFileBackend(CacheBackend):
    """Store a cache mapping as a single JSON document."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable cache file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring cache file %s: expected a JSON object", self.path)
            return {}
        return data

    def save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f)


class MemoryBackend(CacheBackend):
    """Keep the persisted mapping in memory (used for dry runs and tests)."""

    def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
        self.data = dict(data or {})

    def load(self) -> Dict[str, Any]:
        return dict(self.data)

    def save(self, data: Dict[str, Any]) -> None:
        self.data = json.loads(json.dumps(data))


class CachedBase:
    """Mapping loaded from a backend at construction and saved on request."""

    def __init__(self, registry: RegistryClient, backend: CacheBackend) -> None:
        self.registry = registry
        self.backend = backend
        self._lock = threading.Lock()
        self._cache: Dict[str, Any] = backend.load()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._cache

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def save(self) -> None:
        with self._lock:
            snapshot = dict(self._cache)
        self.backend.save(snapshot)


class CachedPackageData(CachedBase):
    """Package manifests keyed by package name."""

    def get(self, name: str, version: str) -> Dict[str, Any]:
        with self._lock:
            entry = self._cache.get(name)

        if (
            version == LATEST_TAG
            or entry is None
            or version not in entry.get("versions", {})
        ):
            if entry is not None and version != LATEST_TAG:
                logger.debug("Cache stale: %s has no version %s", name, version)
            entry = self.registry.fetch_package_metadata(name)
            entry["maxVersion"] = max_version(entry.get("versions", {}).keys())
            with self._lock:
                self._cache[name] = entry
        else:
            logger.debug("Cache hit: metadata %s@%s", name, version)

        if version == LATEST_TAG:
            version = entry.get("dist-tags", {}).get(LATEST_TAG)
        manifest = entry.get("versions", {}).get(version)
        if manifest is None:
            raise CacheMissUnresolvable(name, version)
        return manifest

    def max_version(self, name: str) -> Optional[str]:
        with self._lock:
            entry = self._cache.get(name)
        return entry.get("maxVersion") if entry else None


class CachedPublishTimes(CachedBase):
    """Publish times keyed by package name.

    Each entry remembers the reference version it was fetched for. A lookup
    with a reference version the timeline does not know yet refetches the
    package and appends the new versions to the stored timeline.
    """

    def get(self, name: str, reference_version: str) -> Dict[str, str]:
        with self._lock:
            raw_entry = self._cache.get(name)
        timeline = PublishTimeline.from_dict(raw_entry) if isinstance(raw_entry, dict) else None

        if timeline is not None and (
            timeline.reference == reference_version or reference_version in timeline.times
        ):
            logger.debug("Cache hit: publish times %s@%s", name, reference_version)
            return dict(timeline.times)

        logger.info("Getting publish times for %s", name)
        with ThreadPoolExecutor(max_workers=2) as executor:
            versions_future = executor.submit(self.registry.fetch_versions, name)
            times_future = executor.submit(self.registry.fetch_publish_times, name)
            versions = versions_future.result()
            raw_times = times_future.result()

        # "created"/"modified" and unpublished versions are not in the version list
        filtered = {v: raw_times[v] for v in versions if raw_times.get(v)}

        if timeline is None:
            timeline = PublishTimeline(reference=reference_version)
        timeline.times.update(filtered)
        timeline.reference = reference_version
        with self._lock:
            self._cache[name] = timeline.to_dict()
        return dict(timeline.times)
