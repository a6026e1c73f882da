"""
Command-line interface for the extension metrics tool.
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .analyzer import ExtensionAnalyzer
from .cache import CachedPackageData, CachedPublishTimes, MemoryBackend
from .config import AnalysisConfig, detect_verbose, load_eras
from .exceptions import ExtensionMetricsError
from .registry import NpmRegistryClient
from .reporting import export_timeline_csv, export_timeline_worksheets, load_snapshots


logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s" if verbose else "%(message)s"
    logging.basicConfig(level=level, format=fmt, stream=sys.stdout, force=True)
    # urllib3 connection chatter drowns out the summaries
    logging.getLogger("urllib3").setLevel(logging.INFO if verbose else logging.WARNING)


def _parse_date(value: str) -> datetime:
    try:
        return datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date {value!r}. Use YYYY-MM-DD")


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--output-dir",
        default="./profile",
        help="Directory for snapshot files. Default: ./profile"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )


def _add_run_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--cache-dir",
        default=".",
        help="Directory holding the persistent caches. Default: current directory"
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Do not read or write the persistent caches"
    )
    parser.add_argument(
        "--eras-file",
        default=None,
        help="JSON file overriding the canary packages and known eras"
    )
    parser.add_argument(
        "--keyword",
        default="jupyterlab-extension",
        help="Registry keyword identifying extensions. Default: jupyterlab-extension"
    )
    parser.add_argument(
        "--registry",
        default="https://registry.npmjs.org",
        help="npm registry URL. Default: https://registry.npmjs.org"
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=16,
        help="Extensions classified concurrently per date. Default: 16"
    )
    parser.add_argument(
        "--no-npm-cli",
        action="store_true",
        help="Read versions and publish times from the registry instead of `npm view`"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="extension-metrics",
        description="Track which JupyterLab versions registry extensions support over time"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    profile = subparsers.add_parser(
        "profile",
        help="Classify the current version of every extension"
    )
    _add_common_arguments(profile)
    _add_run_arguments(profile)

    backfill = subparsers.add_parser(
        "backfill",
        help="Write a snapshot for each sampled date in a range"
    )
    _add_common_arguments(backfill)
    _add_run_arguments(backfill)
    backfill.add_argument(
        "--start-date",
        type=_parse_date,
        default=None,
        help="First date to sample (YYYY-MM-DD). Default: 2018-01-11"
    )
    backfill.add_argument(
        "--end-date",
        type=_parse_date,
        default=None,
        help="Last date to sample (YYYY-MM-DD). Default: today"
    )
    backfill.add_argument(
        "--sample-rate",
        type=int,
        default=7,
        help="Days between samples. Default: 7"
    )

    timeline = subparsers.add_parser(
        "timeline",
        help="Summarize existing snapshots as an adoption timeline"
    )
    _add_common_arguments(timeline)
    timeline.add_argument(
        "--get-worksheets",
        action="store_true",
        help="Also export the timeline to an Excel file"
    )
    return parser


def build_config(args: argparse.Namespace) -> AnalysisConfig:
    config = AnalysisConfig(
        registry_urls={"npm": args.registry},
        keyword=args.keyword,
        output_dir=Path(args.output_dir),
        cache_dir=Path(args.cache_dir),
        max_workers=args.max_workers,
        use_npm_cli=not args.no_npm_cli,
    )
    if getattr(args, "sample_rate", None) is not None:
        config.sample_rate_days = args.sample_rate
    if getattr(args, "start_date", None) is not None:
        config.start_date = args.start_date
    if args.eras_file:
        config.canaries, config.eras = load_eras(Path(args.eras_file))
    return config


def build_analyzer(config: AnalysisConfig, no_cache: bool = False) -> ExtensionAnalyzer:
    if not no_cache:
        return ExtensionAnalyzer(config)
    registry = NpmRegistryClient(
        registry_url=config.registry_urls["npm"],
        keyword=config.keyword,
        page_size=config.page_size,
        timeout=config.request_timeout,
        use_npm_cli=config.use_npm_cli,
    )
    return ExtensionAnalyzer(
        config,
        registry=registry,
        package_cache=CachedPackageData(registry, MemoryBackend()),
        times_cache=CachedPublishTimes(registry, MemoryBackend()),
    )


def run_timeline(args: argparse.Namespace) -> int:
    output_dir = Path(args.output_dir)
    timeline = load_snapshots(output_dir)
    if len(timeline) == 0:
        logger.error("No snapshots found in %s", output_dir)
        return 1
    csv_file = export_timeline_csv(timeline, output_dir)
    logger.info("Timeline saved to: %s", csv_file)
    if args.get_worksheets:
        excel_file = export_timeline_worksheets(timeline, output_dir)
        logger.info("Worksheets saved to: %s", excel_file)
    latest = timeline.iloc[-1]
    logger.info(
        "Latest snapshot %s: %.1f%% of %s extensions up to date",
        latest["date"].date(),
        100 * latest["uptodate_fraction"],
        latest["total"],
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose or detect_verbose(argv if argv is not None else sys.argv))

    if args.command == "timeline":
        return run_timeline(args)

    if args.command == "backfill" and args.sample_rate < 1:
        parser.error("--sample-rate must be at least 1")

    try:
        config = build_config(args)
        analyzer = build_analyzer(config, no_cache=args.no_cache)
        if args.command == "profile":
            snapshot_file = analyzer.profile()
            logger.info("Snapshot saved to: %s", snapshot_file)
        else:
            written = analyzer.backfill(
                start_date=args.start_date,
                end_date=args.end_date,
            )
            logger.info("Wrote %s snapshots to %s", len(written), config.output_dir)
    except ExtensionMetricsError as e:
        logger.error("Error during analysis: %s", e)
        logger.debug("Traceback:", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
