"""
Classify an extension's declared dependencies against JupyterLab eras.
"""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional

from .models import UNCLASSIFIED, Classification
from .npm_semver import satisfies_declaration
from .version_spec import KNOWN_ERAS, era_keys, min_era


logger = logging.getLogger(__name__)

DEPENDENCY_FIELDS = ("dependencies", "peerDependencies", "devDependencies")


def merge_dependencies(manifest: Mapping) -> Dict[str, str]:
    """Effective dependency view of a manifest.

    Fields are merged in the order ``dependencies``, ``peerDependencies``,
    ``devDependencies``; a later field overrides an earlier one for the
    same dependency name. Fields that are not objects, and entries whose
    range is not a string, are ignored.
    """
    merged: Dict[str, str] = {}
    if not isinstance(manifest, Mapping):
        return merged
    for field in DEPENDENCY_FIELDS:
        dependencies = manifest.get(field)
        if not isinstance(dependencies, Mapping):
            if dependencies:
                logger.debug("Ignoring malformed %s: %r", field, dependencies)
            continue
        for name, range_ in dependencies.items():
            if isinstance(name, str) and isinstance(range_, str):
                merged[name] = range_
    return merged


def first_matching_era(
    canary: str,
    declared: str,
    eras: Mapping[str, Mapping[str, str]],
) -> Optional[str]:
    """Most recent era whose range for ``canary`` intersects ``declared``."""
    for label in era_keys(eras):
        era_range = eras[label].get(canary)
        if era_range is None:
            continue
        if satisfies_declaration(declared, era_range):
            return label
    return None


def classify(
    effective_deps: Mapping[str, str],
    canary_ranges: Mapping[str, str],
    eras: Mapping[str, Mapping[str, str]] = KNOWN_ERAS,
) -> Classification:
    """Era label and up-to-date flag for a set of effective dependencies.

    ``canary_ranges`` maps each canary package to the range of its current
    release (``^<version>``). The extension is up to date only if every
    canary it declares is compatible with the current range. Its era is the
    oldest of the eras matched by each declared canary.
    """
    labversion: Optional[str] = None
    uptodate: Optional[bool] = None
    for canary, current_range in canary_ranges.items():
        declared = effective_deps.get(canary)
        if declared is None:
            continue
        indicated = satisfies_declaration(declared, current_range)
        uptodate = indicated if uptodate is None else uptodate and indicated

        era = first_matching_era(canary, declared, eras)
        if era is not None:
            labversion = era if labversion is None else min_era(era, labversion)

    return Classification(
        labversion=UNCLASSIFIED if labversion is None else labversion,
        uptodate=uptodate is True,
    )
