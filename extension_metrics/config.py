"""
Runtime configuration.
"""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence, Tuple

from .exceptions import ConfigurationError
from .version_spec import CANARIES, KNOWN_ERAS

VERBOSE_ENV = "EXTENSION_METRICS_VERBOSE"

# Release of JupyterLab 0.31.0
DEFAULT_START_DATE = datetime(2018, 1, 11, tzinfo=timezone.utc)

VERBOSE_FLAGS = ("-v", "--verbose")


@dataclass
class AnalysisConfig:
    """Settings shared by the profile and backfill runs."""

    registry_urls: Dict[str, str] = field(
        default_factory=lambda: {"npm": "https://registry.npmjs.org"}
    )
    keyword: str = "jupyterlab-extension"
    page_size: int = 250
    output_dir: Path = Path("./profile")
    cache_dir: Path = Path(".")
    max_workers: int = 16
    sample_rate_days: int = 7
    start_date: datetime = DEFAULT_START_DATE
    request_timeout: float = 30
    use_npm_cli: bool = True
    canaries: Tuple[str, ...] = CANARIES
    eras: Dict[str, Dict[str, str]] = field(default_factory=lambda: dict(KNOWN_ERAS))

    @property
    def package_cache_file(self) -> Path:
        return Path(self.cache_dir) / "_pkgDataCache.json"

    @property
    def times_cache_file(self) -> Path:
        return Path(self.cache_dir) / "_pkgTimesCache.json"

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")
        if self.sample_rate_days < 1:
            raise ConfigurationError("sample_rate_days must be at least 1")
        if self.page_size < 1:
            raise ConfigurationError("page_size must be at least 1")


def load_eras(path: Path) -> Tuple[Tuple[str, ...], Dict[str, Dict[str, str]]]:
    """Read canaries and eras from a JSON file.

    The file holds ``{"canaries": [...], "eras": {label: {canary: range}}}``.
    ``canaries`` is optional and defaults to every package named by an era.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read eras file {path}: {e}") from e

    eras = data.get("eras") if isinstance(data, dict) else None
    if not isinstance(eras, dict) or not eras:
        raise ConfigurationError(f"{path}: 'eras' must be a non-empty object")
    for label, ranges in eras.items():
        if not isinstance(ranges, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in ranges.items()
        ):
            raise ConfigurationError(f"{path}: era {label!r} must map package names to ranges")

    canaries = data.get("canaries")
    if canaries is None:
        seen: Dict[str, None] = {}
        for ranges in eras.values():
            for name in ranges:
                seen.setdefault(name)
        canaries = list(seen)
    if not isinstance(canaries, list) or not all(isinstance(c, str) for c in canaries):
        raise ConfigurationError(f"{path}: 'canaries' must be a list of package names")
    return tuple(canaries), {str(k): dict(v) for k, v in eras.items()}


def detect_verbose(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> bool:
    """Verbose diagnostics when debugging, asked for by flag, or by environment."""
    argv = sys.argv if argv is None else argv
    environ = os.environ if environ is None else environ
    if sys.gettrace() is not None:
        return True
    if environ.get(VERBOSE_ENV, "").lower() in ("1", "true", "yes", "on"):
        return True
    return any(arg in VERBOSE_FLAGS for arg in argv)
