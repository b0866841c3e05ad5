#!/usr/bin/env python3
# filename: geoip_compiler.py
# -----------------------------------------------------------------------------
# Project: GeoBlock List Builder
# Version: 1.0.0
# -----------------------------------------------------------------------------
"""
Compiles the GeoLite2 Country CSV tables into a per-country denylist.

Phase 1 indexes the geoname ids that belong to blocked countries.
Phase 2 streams the IPv4 blocks table and emits every network whose geoname
resolves through that index.
"""

import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Iterable, Optional

import orjson as json

from csv_tables import read_table
from errors import TableIOError
from utils import get_logger

logger = get_logger("GeoIPCompiler")

REPORT_FILENAME = "report.json"

LOCATION_COLUMNS = ("geoname_id", "country_iso_code")

# Precedence order: the first column whose id is indexed decides the country
CANDIDATE_COLUMNS = (
    "geoname_id",
    "registered_country_geoname_id",
    "represented_country_geoname_id",
)
BLOCK_COLUMNS = ("network",) + CANDIDATE_COLUMNS

TIMESTAMP_FORMAT = "%Y/%m/%d-%H:%M"
PROGRESS_EVERY = 100000


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(TIMESTAMP_FORMAT)


@dataclass
class CompileStats:
    """Counters collected across both phases"""
    location_rows: int = 0
    geonames_indexed: int = 0
    block_rows: int = 0
    lines_emitted: int = 0
    per_country: Counter = field(default_factory=Counter)
    archive_sha256: Optional[str] = None
    generated: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            'generated': self.generated,
            'archive_sha256': self.archive_sha256,
            'location_rows': self.location_rows,
            'geonames_indexed': self.geonames_indexed,
            'block_rows': self.block_rows,
            'lines_emitted': self.lines_emitted,
            'per_country': dict(sorted(self.per_country.items())),
        }


def _log_progress(label: str, count: int, last_log: float) -> float:
    now = time.time()
    if now - last_log > 1.0:
        logger.debug(f"     {label} {count:,} rows...")
        return now
    return last_log


# ============================================================================
# PHASE 1: Geoname Selector
# ============================================================================

class GeonameSelector:
    """Builds geoname_id -> country code for the blocked countries only."""

    def __init__(self, blocked_countries: FrozenSet[str], stats: Optional[CompileStats] = None):
        self.blocked = frozenset(c.upper() for c in blocked_countries)
        self.stats = stats if stats is not None else CompileStats()

    def build_index(self, locations_path: Path) -> Dict[str, str]:
        logger.info(f"  📋 Indexing blocked geonames from {Path(locations_path).name}...")
        index: Dict[str, str] = {}
        count = 0
        last_log = time.time()

        try:
            with read_table(locations_path, "locations", LOCATION_COLUMNS) as (header, rows):
                if header is None:
                    logger.warning("     Locations table is empty")
                    return index

                geoname_pos = header["geoname_id"]
                country_pos = header["country_iso_code"]

                for row in rows:
                    count += 1
                    country = row[country_pos].strip().upper()
                    if country in self.blocked:
                        geoname_id = row[geoname_pos].strip()
                        if geoname_id:
                            index[geoname_id] = country
                    if count % PROGRESS_EVERY == 0:
                        last_log = _log_progress("Scanned", count, last_log)
        except OSError as exc:
            raise TableIOError(f"locations: failed to read {locations_path}: {exc}") from exc

        self.stats.location_rows = count
        self.stats.geonames_indexed = len(index)
        logger.info(f"     {len(index):,} geonames selected out of {count:,} locations")
        return index


# ============================================================================
# PHASE 2: Block Join & Emitter
# ============================================================================

class BlocklistCompiler:
    """
    Joins the IPv4 blocks table against a geoname index and writes the list.

    Args:
        geoname_index: Output of GeonameSelector.build_index
        clock: Returns the generation time, local time by default
    """

    def __init__(self, geoname_index: Dict[str, str],
                 stats: Optional[CompileStats] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.geoname_index = geoname_index
        self.stats = stats if stats is not None else CompileStats()
        self.clock = clock

    def resolve(self, candidates: Iterable[str]) -> Optional[str]:
        """First candidate id found in the index wins; later ones are never looked at."""
        index = self.geoname_index
        for geoname_id in candidates:
            if geoname_id and geoname_id in index:
                return index[geoname_id]
        return None

    def compile(self, blocks_path: Path, output_path: Path) -> CompileStats:
        logger.info(f"  🔍 Joining {Path(blocks_path).name} against {len(self.geoname_index):,} geonames...")
        generated = format_timestamp(self.clock())
        self.stats.generated = generated
        count = 0
        emitted = 0
        last_log = time.time()

        try:
            with read_table(blocks_path, "blocks", BLOCK_COLUMNS) as (header, rows), \
                    open(output_path, 'w', encoding='utf-8', newline='\n') as out:
                out.write(f"# list generated {generated}\n")

                if header is None:
                    logger.warning("     Blocks table is empty")
                else:
                    network_pos = header["network"]
                    candidate_pos = tuple(header[name] for name in CANDIDATE_COLUMNS)

                    for row in rows:
                        count += 1
                        country = self.resolve(row[pos].strip() for pos in candidate_pos)
                        if country is not None:
                            out.write(f"{row[network_pos].strip()} ; {country}\n")
                            self.stats.per_country[country] += 1
                            emitted += 1
                        if count % PROGRESS_EVERY == 0:
                            last_log = _log_progress("Joined", count, last_log)
        except OSError as exc:
            raise TableIOError(f"blocks: failed to join {blocks_path} into {output_path}: {exc}") from exc

        self.stats.block_rows = count
        self.stats.lines_emitted = emitted
        logger.info(f"  ✓ {emitted:,} networks matched out of {count:,} blocks")
        return self.stats


def export_report(stats: CompileStats, blocked_countries: FrozenSet[str],
                  output_path: Path, report_path: Path):
    """Write a JSON summary of the run next to the list."""
    logger.info(f"📝 Writing run report to {Path(report_path).name}")
    report = stats.as_dict()
    report['blocked_countries'] = sorted(blocked_countries)
    report['output'] = str(output_path)
    with open(report_path, 'wb') as f:
        f.write(json.dumps(report, option=json.OPT_INDENT_2))
        f.write(b"\n")
