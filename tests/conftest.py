"""Shared fixtures: an in-memory stand-in for the npm registry."""

from collections import Counter
from typing import Dict, List

import pytest

from extension_metrics.exceptions import TransportError


def make_packument(name: str, releases: Dict[str, tuple], latest: str = None) -> Dict:
    """Build a registry document from ``{version: (timestamp, dependencies)}``."""
    versions = {}
    times = {"created": "2010-01-01T00:00:00.000Z", "modified": "2099-01-01T00:00:00.000Z"}
    for ver, (timestamp, deps) in releases.items():
        manifest = {"name": name, "version": ver}
        manifest.update(deps)
        versions[ver] = manifest
        times[ver] = timestamp
    if latest is None:
        latest = list(releases)[-1]
    return {
        "name": name,
        "dist-tags": {"latest": latest},
        "versions": versions,
        "time": times,
    }


class FakeRegistry:
    """Serves packuments from memory and counts every request."""

    def __init__(self, packuments: Dict[str, Dict], search_pages: List[List[Dict]] = None):
        self.packuments = packuments
        self.search_pages = search_pages or []
        self.failing = set()
        self.calls = Counter()

    def _packument(self, name: str) -> Dict:
        if name in self.failing or name not in self.packuments:
            raise TransportError("Not Found", url=f"https://registry.test/{name}", status_code=404)
        return self.packuments[name]

    def search(self, text, page=0, page_size=250):
        self.calls["search"] += 1
        if page < len(self.search_pages):
            return {"objects": self.search_pages[page]}
        return {"objects": []}

    def search_extensions(self, query="", page=0):
        return self.search(query, page)

    def fetch_package_metadata(self, package_name):
        self.calls[("metadata", package_name)] += 1
        packument = self._packument(package_name)
        return {
            "name": packument["name"],
            "dist-tags": dict(packument["dist-tags"]),
            "versions": {k: dict(v) for k, v in packument["versions"].items()},
        }

    def fetch_package_metadata_for_version(self, package_name, version="latest"):
        packument = self._packument(package_name)
        if version == "latest":
            version = packument["dist-tags"]["latest"]
        return dict(packument["versions"][version])

    def fetch_versions(self, package_name):
        self.calls[("versions", package_name)] += 1
        return list(self._packument(package_name)["versions"])

    def fetch_publish_times(self, package_name):
        self.calls[("times", package_name)] += 1
        return dict(self._packument(package_name)["time"])


def search_object(name: str, version: str, keywords=("jupyterlab-extension",)) -> Dict:
    return {"package": {"name": name, "version": version, "keywords": list(keywords)}}


SERVICES = "@jupyterlab/services"
APPLICATION = "@jupyterlab/application"


@pytest.fixture
def packuments() -> Dict[str, Dict]:
    return {
        SERVICES: make_packument(SERVICES, {
            "3.0.0": ("2018-01-05T00:00:00.000Z", {}),
            "4.0.0": ("2019-06-01T00:00:00.000Z", {}),
            "5.0.0": ("2020-02-01T00:00:00.000Z", {}),
            "6.0.0-alpha.1": ("2020-06-01T00:00:00.000Z", {}),
        }, latest="5.0.0"),
        APPLICATION: make_packument(APPLICATION, {
            "0.16.0": ("2018-01-05T00:00:00.000Z", {}),
            "1.0.0": ("2019-06-01T00:00:00.000Z", {}),
            "2.0.0": ("2020-02-01T00:00:00.000Z", {}),
        }),
        "ext-a": make_packument("ext-a", {
            "1.0.0": ("2019-07-01T00:00:00.000Z", {"dependencies": {SERVICES: "^4.0.0"}}),
            "2.0.0": ("2020-03-01T00:00:00.000Z", {"peerDependencies": {SERVICES: "^5.0.0"}}),
        }),
        "ext-b": make_packument("ext-b", {
            "0.1.0": ("2018-03-01T00:00:00.000Z", {"dependencies": {APPLICATION: "^0.16.0"}}),
        }),
        "ext-plain": make_packument("ext-plain", {
            "1.0.0": ("2019-01-01T00:00:00.000Z", {"dependencies": {"lodash": "^4"}}),
        }),
        "ext-old": make_packument("ext-old", {
            "0.2.0": ("2018-02-01T00:00:00.000Z", {"dependencies": {APPLICATION: "latest"}}),
        }),
    }


@pytest.fixture
def registry(packuments) -> FakeRegistry:
    return FakeRegistry(
        packuments,
        search_pages=[
            [search_object("ext-a", "2.0.0"), search_object("ext-b", "0.1.0")],
            [
                search_object("ext-plain", "1.0.0"),
                search_object("ext-old", "0.2.0", keywords=("jupyterlab-extension", "deprecated")),
            ],
        ],
    )
