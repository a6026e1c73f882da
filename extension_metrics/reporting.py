"""
Snapshot aggregation, persistence and timeline export.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from .classifier import DEPENDENCY_FIELDS
from .models import UNCLASSIFIED, ClassificationResult, Extension
from .version_spec import era_keys


logger = logging.getLogger(__name__)

UNKNOWN_ERA = "unknown"


class ReportData:
    """Classification results of all extensions for one date."""

    def __init__(self, date_str: str) -> None:
        self.date_str = date_str
        self._uptodate: List[str] = []
        self._outdated: Dict[str, str] = {}
        self._unclassified: List[str] = []
        self._entries: List[ClassificationResult] = []

    def add(
        self,
        extension: Extension,
        labversion: str,
        uptodate: bool,
        manifest: Optional[Mapping[str, Any]] = None,
    ) -> ClassificationResult:
        deps = {field: None for field in DEPENDENCY_FIELDS}
        if manifest is not None:
            deps = {field: manifest.get(field) for field in DEPENDENCY_FIELDS}
        entry = ClassificationResult(
            name=extension.name,
            version=extension.version,
            labversion=labversion,
            uptodate=uptodate,
            **deps,
        )
        self._entries.append(entry)
        if uptodate:
            self._uptodate.append(entry.name)
        elif labversion == UNCLASSIFIED:
            self._unclassified.append(entry.name)
        else:
            self._outdated[entry.name] = labversion
        return entry

    @property
    def entries(self) -> List[ClassificationResult]:
        return list(self._entries)

    @property
    def outdated_counts(self) -> Dict[str, int]:
        return dict(Counter(self._outdated.values()))

    @property
    def lab_support_counts(self) -> Dict[str, int]:
        return dict(Counter(entry.labversion for entry in self._entries))

    @property
    def total(self) -> int:
        return len(self._uptodate) + len(self._outdated) + len(self._unclassified)

    def summary(self) -> Dict[str, Any]:
        return {
            "uptodateCount": len(self._uptodate),
            "outdatedCount": len(self._outdated),
            "outdatedCountCategorized": self.outdated_counts,
            "unclassified": list(self._unclassified),
            "labSupportCounts": self.lab_support_counts,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date_str,
            "extensions": [entry.to_dict() for entry in self._entries],
            "summary": self.summary(),
        }

    def report(self) -> None:
        outdated_counts = self.outdated_counts
        logger.info("Processed %s extensions:", self.total)
        logger.info("Up to date (%s)", len(self._uptodate))
        logger.info("Outdated (%s):", len(self._outdated))
        for key in era_keys({k: {} for k in outdated_counts if k != UNKNOWN_ERA}):
            logger.info("  Support ends at v%s.x: %s", key, outdated_counts[key])
        if outdated_counts.get(UNKNOWN_ERA):
            logger.info("  Unknown last version supported: %s", outdated_counts[UNKNOWN_ERA])
        logger.info("Unclassified (%s)", len(self._unclassified))

    def save(self, filename: Path, indent: Optional[int] = None) -> Path:
        filename = Path(filename)
        filename.parent.mkdir(parents=True, exist_ok=True)
        with open(filename, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=indent)
        return filename


def summary_from_entries(entries: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Recompute a snapshot summary from its ``extensions`` list."""
    report = ReportData("")
    for data in entries:
        result = ClassificationResult.from_dict(dict(data))
        report.add(
            Extension(name=result.name, version=result.version),
            result.labversion,
            result.uptodate,
        )
    return report.summary()


def load_snapshot(filename: Path) -> Dict[str, Any]:
    with open(filename, "r", encoding="utf-8") as f:
        return json.load(f)


def load_snapshots(directory: Path) -> pd.DataFrame:
    """One row of adoption counts per snapshot file in ``directory``."""
    rows = []
    for snapshot_file in sorted(Path(directory).glob("*.json")):
        try:
            snapshot = load_snapshot(snapshot_file)
        except json.JSONDecodeError as e:
            logger.warning("Skipping unreadable snapshot %s: %s", snapshot_file, e)
            continue
        if "summary" not in snapshot or "date" not in snapshot:
            logger.debug("Skipping %s: not a snapshot", snapshot_file)
            continue
        summary = summary_from_entries(snapshot.get("extensions", []))
        uptodate = summary["uptodateCount"]
        outdated = summary["outdatedCount"]
        unclassified = len(summary["unclassified"])
        total = uptodate + outdated + unclassified
        row = {
            "date": snapshot["date"],
            "total": total,
            "uptodate": uptodate,
            "outdated": outdated,
            "unclassified": unclassified,
            "uptodate_fraction": uptodate / total if total else 0.0,
        }
        for label, count in summary["labSupportCounts"].items():
            row[f"era_{label}"] = count
        rows.append(row)

    df = pd.DataFrame(rows)
    if len(df) == 0:
        return df
    df["date"] = pd.to_datetime(df["date"])
    era_columns = [col for col in df.columns if col.startswith("era_")]
    if era_columns:
        df[era_columns] = df[era_columns].fillna(0).astype(int)
    return df.sort_values("date").reset_index(drop=True)


def export_timeline_csv(timeline: pd.DataFrame, output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    timeline_file = output_dir / "timeline.csv"
    timeline.to_csv(timeline_file, index=False)
    return timeline_file


def export_timeline_worksheets(timeline: pd.DataFrame, output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    excel_file = output_dir / "timeline.xlsx"
    with pd.ExcelWriter(excel_file, engine="openpyxl") as writer:
        timeline.to_excel(writer, sheet_name="timeline", index=False)
        era_columns = [col for col in timeline.columns if col.startswith("era_")]
        if era_columns:
            shares = timeline[["date"] + era_columns].copy()
            totals = timeline["total"].where(timeline["total"] > 0, 1)
            for col in era_columns:
                shares[col] = shares[col] / totals
            shares.to_excel(writer, sheet_name="era_shares", index=False)
    return excel_file
