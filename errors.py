#!/usr/bin/env python3
# filename: errors.py
# -----------------------------------------------------------------------------
# Project: GeoBlock List Builder
# Version: 1.0.0
# -----------------------------------------------------------------------------
"""
Error taxonomy for the blocklist pipeline.

Every error is fatal for a run. Each carries the name of the stage that failed
so the entry point can print a single diagnostic line.
"""

from typing import Iterable, Optional


class BlocklistError(Exception):
    """Base class for all pipeline failures"""
    stage = "pipeline"


class ConfigValidationError(BlocklistError):
    """Raised when configuration validation fails"""
    stage = "config"


class RemoteFetchError(BlocklistError):
    """Network or HTTP failure while fetching a vendor resource"""
    stage = "fetch"

    def __init__(self, message: str, url: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status = status


class IntegrityFormatError(BlocklistError):
    """Checksum payload is empty or unparsable"""
    stage = "verify"


class ChecksumMismatchError(BlocklistError):
    stage = "verify"

    def __init__(self, expected: str, actual: str):
        super().__init__(f"sha256 mismatch: got {actual}, expected {expected}")
        self.expected = expected
        self.actual = actual


class MissingMemberError(BlocklistError):
    stage = "extract"

    def __init__(self, missing: Iterable[str]):
        self.missing = sorted(missing)
        super().__init__(f"missing required files in zip archive: {', '.join(self.missing)}")


class ExtractionIOError(BlocklistError):
    stage = "extract"


class SchemaError(BlocklistError):
    """A required column is absent from a table header"""

    def __init__(self, table: str, missing: Iterable[str]):
        self.table = table
        self.stage = table
        self.missing = list(missing)
        super().__init__(f"{table}: missing needed column(s): {', '.join(self.missing)}")


class RowFormatError(BlocklistError):
    """A data row could not be parsed or has the wrong number of fields"""

    def __init__(self, table: str, row_index: int, reason: str):
        self.table = table
        self.stage = table
        self.row_index = row_index
        super().__init__(f"{table}: malformed row {row_index}: {reason}")


class PublishError(BlocklistError):
    stage = "publish"


class TableIOError(BlocklistError):
    """A table or the scratch output could not be opened, read or written"""
    stage = "compile"
