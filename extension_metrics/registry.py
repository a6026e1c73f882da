"""
npm registry client.
"""

from __future__ import annotations

import json
import logging
import subprocess
from typing import Any, Dict, List, Optional

import requests

from .exceptions import TransportError
from .interfaces import RegistryClient


logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"

PACKUMENT_ACCEPT = (
    "application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8, */*"
)


class NpmRegistryClient(RegistryClient):
    """Stateless read requests against the npm registry."""

    def __init__(
        self,
        registry_url: str = DEFAULT_REGISTRY_URL,
        keyword: str = "jupyterlab-extension",
        page_size: int = 250,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
        use_npm_cli: bool = True,
    ) -> None:
        self.registry_url = registry_url.rstrip("/")
        self.keyword = keyword
        self.page_size = page_size
        self.timeout = timeout
        self.session = session or requests.Session()
        self.use_npm_cli = use_npm_cli

    def search(self, text: str, page: int = 0, page_size: int = 250) -> Dict[str, Any]:
        url = f"{self.registry_url}/-/v1/search"
        params = {
            "text": text,
            "size": str(page_size),
            "from": str(page_size * page),
        }
        logger.debug("Searching %r (page %s)", text, page)
        try:
            with self.session.get(url, params=params, timeout=self.timeout) as response:
                if not response.ok:
                    logger.warning("Search for %r failed with %s", text, response.status_code)
                    return {"objects": []}
                return response.json()
        except requests.RequestException as e:
            raise TransportError(str(e), url=url) from e

    def search_extensions(self, query: str = "", page: int = 0) -> Dict[str, Any]:
        text = f'{query} keywords:"{self.keyword}"'.strip()
        return self.search(text, page, self.page_size)

    def fetch_package_metadata(self, package_name: str) -> Dict[str, Any]:
        url = f"{self.registry_url}/{package_name}"
        logger.info("Fetching metadata for %s", package_name)
        return self._get_json(url, headers={"Accept": PACKUMENT_ACCEPT})

    def fetch_package_metadata_for_version(
        self, package_name: str, version: str = "latest"
    ) -> Dict[str, Any]:
        url = f"{self.registry_url}/{package_name}/{version or 'latest'}"
        logger.info("Fetching metadata for %s@%s", package_name, version)
        return self._get_json(url, headers={"Accept": PACKUMENT_ACCEPT})

    def fetch_versions(self, package_name: str) -> List[str]:
        """All versions the registry currently lists for ``package_name``."""
        if self.use_npm_cli:
            try:
                data = self._npm_view(package_name, "versions")
                if isinstance(data, str):
                    return [data]
                return list(data)
            except (subprocess.TimeoutExpired, FileNotFoundError) as e:
                logger.warning("npm view versions failed for %s, falling back to metadata: %s", package_name, e)
        metadata = self._get_json(f"{self.registry_url}/{package_name}")
        return list(metadata.get("versions", {}).keys())

    def fetch_publish_times(self, package_name: str) -> Dict[str, str]:
        """Raw publish time record, including ``created``/``modified`` keys."""
        if self.use_npm_cli:
            try:
                return dict(self._npm_view(package_name, "time"))
            except (subprocess.TimeoutExpired, FileNotFoundError) as e:
                logger.warning("npm view time failed for %s, falling back to metadata: %s", package_name, e)
        metadata = self._get_json(f"{self.registry_url}/{package_name}")
        return dict(metadata.get("time", {}))

    def _get_json(self, url: str, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        try:
            with self.session.get(url, headers=headers, timeout=self.timeout) as response:
                if not response.ok:
                    raise TransportError(
                        f"{response.reason}: {response.text}",
                        url=url,
                        status_code=response.status_code,
                    )
                return response.json()
        except requests.RequestException as e:
            raise TransportError(str(e), url=url) from e

    def _npm_view(self, package_name: str, field: str) -> Any:
        cmd = [
            "npm", "view", package_name, field,
            "--json",
            "--registry", self.registry_url,
        ]
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=self.timeout,
        )
        if result.returncode != 0:
            logger.debug(result.stderr)
            raise TransportError(f"Failed to call npm view {field}: {result.stderr.strip()}")
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise TransportError(f"Unexpected npm view output for {package_name}: {e}") from e
