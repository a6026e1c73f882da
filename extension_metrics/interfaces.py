"""
Interfaces for the registry client and cache persistence.
"""

from __future__ import annotations

from typing import Any, Dict, List, Protocol


class RegistryClient(Protocol):
    """Read-only access to an npm-style package registry."""

    def search(self, text: str, page: int = 0, page_size: int = 250) -> Dict[str, Any]:
        ...

    def search_extensions(self, query: str = "", page: int = 0) -> Dict[str, Any]:
        ...

    def fetch_package_metadata(self, package_name: str) -> Dict[str, Any]:
        ...

    def fetch_package_metadata_for_version(
        self, package_name: str, version: str = "latest"
    ) -> Dict[str, Any]:
        ...

    def fetch_versions(self, package_name: str) -> List[str]:
        ...

    def fetch_publish_times(self, package_name: str) -> Dict[str, str]:
        ...


class CacheBackend(Protocol):
    """Persistence for a flat JSON-compatible cache mapping."""

    def load(self) -> Dict[str, Any]:
        ...

    def save(self, data: Dict[str, Any]) -> None:
        ...
