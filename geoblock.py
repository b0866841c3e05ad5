#!/usr/bin/env python3
# filename: geoblock.py
# -----------------------------------------------------------------------------
# Project: GeoBlock List Builder
# Version: 1.0.0
# -----------------------------------------------------------------------------
"""
Builds a country denylist from the MaxMind GeoLite2 Country CSV database.

    fetch + verify -> extract -> index geonames -> join blocks -> publish

Each stage finishes before the next starts and any failure aborts the run.
The scratch directory is removed on exit whatever the outcome, and the
destination file is only ever replaced by a single rename.
"""

import argparse
import sys
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

import requests

from archive_extractor import BLOCKS_CSV, LOCATIONS_CSV, extract_members
from config_validator import (
    BlocklistConfig, build_config, load_config_file, merge_config, require_runnable
)
from errors import BlocklistError
from geoip_compiler import (
    REPORT_FILENAME, BlocklistCompiler, CompileStats, GeonameSelector, export_report
)
from geoip_fetcher import GeoIPFetcher
from publisher import publish
from utils import configure_logging, get_logger, parse_log_level

logger = get_logger("GeoBlock")

SUCCESS_MESSAGE = "Processing complete and file generated successfully."


def run_pipeline(config: BlocklistConfig,
                 session: Optional[requests.Session] = None,
                 clock: Callable[[], datetime] = datetime.now) -> CompileStats:
    """
    Run every stage for one configuration.

    Args:
        config: Validated settings
        session: Optional HTTP session for the vendor downloads
        clock: Source of the generation timestamp

    Returns:
        Counters for the run
    """
    require_runnable(config)
    stats = CompileStats()

    scratch_root = str(config.scratch_root) if config.scratch_root else None
    with tempfile.TemporaryDirectory(prefix="geoblock-", dir=scratch_root) as tmp:
        scratch = Path(tmp)
        logger.debug(f"Scratch directory: {scratch}")

        fetcher = GeoIPFetcher(config.account_id, config.license_key, session=session)
        zip_path, digest = fetcher.fetch(scratch)
        stats.archive_sha256 = digest

        members = extract_members(zip_path, scratch)

        selector = GeonameSelector(config.blocked_countries, stats=stats)
        geoname_index = selector.build_index(members[LOCATIONS_CSV])

        scratch_output = scratch / config.output_filename
        compiler = BlocklistCompiler(geoname_index, stats=stats, clock=clock)
        compiler.compile(members[BLOCKS_CSV], scratch_output)

        publish(scratch_output, config.output_path)

        if config.report_path:
            scratch_report = scratch / REPORT_FILENAME
            export_report(stats, config.blocked_countries, config.output_path, scratch_report)
            publish(scratch_report, config.report_path)

    return stats


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Build an IP denylist for blocked countries from GeoLite2 Country CSV")
    parser.add_argument("-c", dest="config_file", help="Config file (YAML)")
    parser.add_argument("-id", dest="account_id", help="Account ID")
    parser.add_argument("-key", dest="license_key", help="License key")
    parser.add_argument("-outpath", dest="output_filepath", help="Output path")
    parser.add_argument("-outname", dest="output_filename",
                        help="Output file (default: BlockedCountriesBlocks.txt)")
    parser.add_argument("-bc", dest="blocked_countries", action="append", default=[],
                        help="ISO country code to block (can be used multiple times)")
    parser.add_argument("--scratch-dir", dest="scratch_dir",
                        help="Parent directory for scratch files (same filesystem as the output avoids cross-device moves)")
    parser.add_argument("--report", dest="report_file", help="Also write a JSON run report to this path")
    parser.add_argument("--log-level", dest="log_level", help="DEBUG, INFO, WARNING or ERROR")
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> BlocklistConfig:
    file_cfg = load_config_file(Path(args.config_file)) if args.config_file else {}
    cli_cfg = {
        'account_id': args.account_id,
        'license_key': args.license_key,
        'output_filepath': args.output_filepath,
        'output_filename': args.output_filename,
        'blocked_countries': args.blocked_countries,
        'scratch_dir': args.scratch_dir,
        'report_file': args.report_file,
    }
    if args.log_level:
        cli_cfg['logging'] = {'level': args.log_level}
    return build_config(merge_config(file_cfg, cli_cfg))


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging()

    try:
        config = load_config(args)
        configure_logging(parse_log_level(config.log_level))
        logger.info(f"Blocking {len(config.blocked_countries)} countries: {', '.join(sorted(config.blocked_countries))}")
        run_pipeline(config)
    except BlocklistError as exc:
        logger.error(f"❌ {exc.stage} failed: {exc}")
        return 1

    print(SUCCESS_MESSAGE)
    return 0


if __name__ == "__main__":
    sys.exit(main())
