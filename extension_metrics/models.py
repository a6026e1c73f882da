"""
Core data models for extension metrics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class Extension:
    """An extension package as listed in registry search results."""

    name: str
    version: str
    keywords: Tuple[str, ...] = ()

    @property
    def deprecated(self) -> bool:
        return "deprecated" in self.keywords

    @classmethod
    def from_search_object(cls, obj: Dict[str, Any]) -> "Extension":
        pkg = obj.get("package", obj)
        return cls(
            name=pkg["name"],
            version=pkg["version"],
            keywords=tuple(pkg.get("keywords") or ()),
        )


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one set of effective dependencies."""

    labversion: str
    uptodate: bool


@dataclass(frozen=True)
class ClassificationResult:
    """Per-extension entry of a dated snapshot."""

    name: str
    version: str
    labversion: str
    uptodate: bool
    dependencies: Optional[Dict[str, str]] = None
    devDependencies: Optional[Dict[str, str]] = None
    peerDependencies: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "labversion": self.labversion,
            "uptodate": self.uptodate,
        }
        for key in ("dependencies", "devDependencies", "peerDependencies"):
            value = getattr(self, key)
            if value is not None:
                entry[key] = dict(value)
        return entry

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClassificationResult":
        return cls(
            name=data["name"],
            version=data["version"],
            labversion=data["labversion"],
            uptodate=bool(data["uptodate"]),
            dependencies=data.get("dependencies"),
            devDependencies=data.get("devDependencies"),
            peerDependencies=data.get("peerDependencies"),
        )


@dataclass
class PublishTimeline:
    """Filtered publish times of a package and the reference version they cover."""

    reference: str
    times: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"reference": self.reference, "times": dict(self.times)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PublishTimeline":
        return cls(reference=data.get("reference", ""), times=dict(data.get("times") or {}))
