"""
Exceptions raised while fetching and classifying extension data.
"""

from __future__ import annotations

from typing import Optional


class ExtensionMetricsError(Exception):
    """Base exception for the extension metrics tool."""


class FetchError(ExtensionMetricsError):
    """Raised when package data cannot be obtained."""


class TransportError(FetchError):
    """Raised on a failed registry request or npm CLI call."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.url = url
        self.status_code = status_code
        if status_code is not None:
            message = f"{status_code}: {message}"
        if url:
            message = f"{message} ({url})"
        super().__init__(message)


class CacheMissUnresolvable(FetchError):
    """Raised when a version is still unknown after refetching its package."""

    def __init__(self, package: str, version: Optional[str]) -> None:
        self.package = package
        self.version = version
        super().__init__(f"Unable to fetch data for {package}@{version}")


class ConfigurationError(ExtensionMetricsError):
    """Raised when configuration or era data is invalid."""
