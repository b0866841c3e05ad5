#!/usr/bin/env python3
# filename: archive_extractor.py
# -----------------------------------------------------------------------------
# Project: GeoBlock List Builder
# Version: 1.0.0
# -----------------------------------------------------------------------------
"""
Pulls the two CSV members needed by the compiler out of the verified archive.
"""

import posixpath
import shutil
import zipfile
import zlib
from pathlib import Path
from typing import Dict, Iterable

from errors import ExtractionIOError, MissingMemberError
from utils import get_logger

logger = get_logger("ArchiveExtractor")

LOCATIONS_CSV = "GeoLite2-Country-Locations-en.csv"
BLOCKS_CSV = "GeoLite2-Country-Blocks-IPv4.csv"
REQUIRED_MEMBERS = (LOCATIONS_CSV, BLOCKS_CSV)

COPY_BUFFER = 1024 * 1024


def member_basename(name: str) -> str:
    # zip names use '/', some Windows tools write '\'
    return posixpath.basename(name.replace('\\', '/'))


def extract_members(zip_path: Path, dest_dir: Path,
                    required: Iterable[str] = REQUIRED_MEMBERS) -> Dict[str, Path]:
    """
    Extract members whose base name is in ``required`` into ``dest_dir``.

    Scanning stops as soon as every required name has been written. Members
    are matched by base name only, so the archive's top-level folder (which
    carries the release date) does not matter.

    Returns:
        {base_name: extracted_path}
    """
    wanted = set(required)
    found: Dict[str, Path] = {}
    dest_dir = Path(dest_dir)

    try:
        with zipfile.ZipFile(zip_path) as archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                name = member_basename(info.filename)
                if name not in wanted or name in found:
                    continue

                target = dest_dir / name
                logger.info(f"  📦 Extracting {name} ({info.file_size / (1024 * 1024):.1f} MB)")
                with archive.open(info) as src, open(target, 'wb') as dst:
                    shutil.copyfileobj(src, dst, COPY_BUFFER)
                found[name] = target

                if len(found) == len(wanted):
                    break
    except (OSError, zipfile.BadZipFile, zlib.error, EOFError) as exc:
        raise ExtractionIOError(f"failed to extract from {zip_path}: {exc}") from exc

    if len(found) < len(wanted):
        raise MissingMemberError(wanted - set(found))

    return found
