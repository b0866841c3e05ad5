#!/usr/bin/env python3
# filename: publisher.py
# -----------------------------------------------------------------------------
# Project: GeoBlock List Builder
# Version: 1.0.0
# -----------------------------------------------------------------------------
"""
Moves finished output from scratch space onto its destination in one rename.
"""

import os
from pathlib import Path

from errors import PublishError
from utils import get_logger

logger = get_logger("Publisher")


def publish(source: Path, destination: Path) -> Path:
    """
    Atomically replace ``destination`` with ``source``.

    The destination holds either its previous content or the complete new
    file. Source and destination must be on the same filesystem; a
    cross-device move is reported as a failure rather than copied.
    """
    source = Path(source)
    destination = Path(destination)
    try:
        os.replace(source, destination)
    except OSError as exc:
        raise PublishError(f"failed to move {source.name} to {destination}: {exc}") from exc
    logger.info(f"  ✓ Published {destination}")
    return destination
