import json
from pathlib import Path

import pytest

from extension_metrics import cli
from extension_metrics.cache import MemoryBackend
from extension_metrics.models import Extension
from extension_metrics.reporting import ReportData


def test_build_config_from_arguments(tmp_path: Path):
    eras_file = tmp_path / "eras.json"
    eras_file.write_text(json.dumps({"eras": {"3": {"@jupyterlab/services": "^6"}}}), encoding="utf-8")
    args = cli.build_parser().parse_args([
        "backfill",
        "--start-date", "2020-01-01",
        "--sample-rate", "14",
        "--max-workers", "2",
        "--cache-dir", str(tmp_path),
        "--eras-file", str(eras_file),
    ])

    config = cli.build_config(args)

    assert config.sample_rate_days == 14
    assert config.max_workers == 2
    assert config.start_date.isoformat() == "2020-01-01T00:00:00+00:00"
    assert config.canaries == ("@jupyterlab/services",)
    assert config.times_cache_file == tmp_path / "_pkgTimesCache.json"


def test_invalid_date_is_rejected():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["backfill", "--start-date", "01/02/2020"])


def test_timeline_command(tmp_path: Path):
    report = ReportData("2020-01-01")
    report.add(Extension("a", "1.0.0"), "2", True)
    report.add(Extension("b", "1.0.0"), "1", False)
    report.save(tmp_path / "2020-01-01.json")

    exit_code = cli.main(["timeline", "--output-dir", str(tmp_path)])

    assert exit_code == 0
    assert (tmp_path / "timeline.csv").exists()


def test_timeline_without_snapshots_fails(tmp_path: Path):
    assert cli.main(["timeline", "--output-dir", str(tmp_path)]) == 1


def test_profile_command_reports_errors(monkeypatch, tmp_path: Path, registry):
    registry.failing.add("@jupyterlab/services")

    def fake_build_analyzer(config, no_cache=False):
        from extension_metrics.analyzer import ExtensionAnalyzer
        from extension_metrics.cache import CachedPackageData, CachedPublishTimes, MemoryBackend

        return ExtensionAnalyzer(
            config,
            registry=registry,
            package_cache=CachedPackageData(registry, MemoryBackend()),
            times_cache=CachedPublishTimes(registry, MemoryBackend()),
        )

    monkeypatch.setattr(cli, "build_analyzer", fake_build_analyzer)

    exit_code = cli.main(["profile", "--output-dir", str(tmp_path / "out"), "--cache-dir", str(tmp_path)])

    assert exit_code == 1
    assert not (tmp_path / "out").exists()


def test_no_cache_keeps_caches_in_memory(tmp_path: Path):
    args = cli.build_parser().parse_args(["profile", "--no-cache", "--cache-dir", str(tmp_path)])

    analyzer = cli.build_analyzer(cli.build_config(args), no_cache=True)

    assert isinstance(analyzer.package_cache.backend, MemoryBackend)
    assert isinstance(analyzer.times_cache.backend, MemoryBackend)
    analyzer.package_cache.save()
    analyzer.times_cache.save()
    assert list(tmp_path.iterdir()) == []
