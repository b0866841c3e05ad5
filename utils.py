#!/usr/bin/env python3
# filename: utils.py
# -----------------------------------------------------------------------------
# Project: GeoBlock List Builder
# Version: 1.0.0
# -----------------------------------------------------------------------------
"""
Shared logging helpers.
"""

import logging
import sys
from typing import Optional

_CONFIGURED = False
_LOG_FORMAT = '[%(asctime)s] %(message)s'
_DATE_FORMAT = '%H:%M:%S'


def configure_logging(level: int = logging.INFO) -> None:
    """Configure root logging once for CLI usage."""
    global _CONFIGURED
    if _CONFIGURED:
        logging.getLogger().setLevel(level)
        return
    logging.basicConfig(
        level=level,
        format=_LOG_FORMAT,
        datefmt=_DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    _CONFIGURED = True


def parse_log_level(name: str) -> int:
    level = logging.getLevelName(str(name).upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level '{name}'")
    return level


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """Return a named logger with optional level override."""
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger
