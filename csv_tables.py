#!/usr/bin/env python3
# filename: csv_tables.py
# -----------------------------------------------------------------------------
# Project: GeoBlock List Builder
# Version: 1.0.0
# -----------------------------------------------------------------------------
"""
Schema-by-name access to the vendor CSV tables.

Column order is not stable across vendor releases, so both readers resolve the
columns they need from the header row and enforce the same contract: every
required column must be present before a single data row is looked at.
"""

import csv
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from errors import RowFormatError, SchemaError


@dataclass(frozen=True)
class HeaderIndex:
    """Column name -> position for one table"""
    table: str
    width: int
    positions: Dict[str, int]

    @classmethod
    def from_header(cls, table: str, header: Sequence[str], required: Sequence[str]) -> "HeaderIndex":
        columns = {name.strip(): i for i, name in enumerate(header)}
        missing = [name for name in required if name not in columns]
        if missing:
            raise SchemaError(table, missing)
        return cls(table=table, width=len(header), positions={name: columns[name] for name in required})

    def __getitem__(self, name: str) -> int:
        return self.positions[name]


def _rows(reader, table: str, width: int) -> Iterator[List[str]]:
    index = 0
    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except (csv.Error, UnicodeDecodeError) as exc:
            raise RowFormatError(table, index + 1, str(exc)) from exc

        if not row:
            continue
        index += 1
        if len(row) != width:
            raise RowFormatError(table, index, f"expected {width} fields, got {len(row)}")
        yield row


@contextmanager
def read_table(path: Path, table: str, required: Sequence[str]) -> Iterator[Tuple[Optional[HeaderIndex], Iterator[List[str]]]]:
    """
    Open a CSV table for a single forward pass.

    Yields ``(header_index, rows)``. A file without a header row yields
    ``(None, iter(()))``.
    """
    # utf-8-sig drops a BOM if the vendor ever ships one
    with open(path, 'r', encoding='utf-8-sig', newline='') as f:
        reader = csv.reader(f, strict=True)
        header: List[str] = []
        try:
            while not header:
                header = next(reader)
        except StopIteration:
            yield None, iter(())
            return
        except (csv.Error, UnicodeDecodeError) as exc:
            raise RowFormatError(table, 0, f"unreadable header: {exc}") from exc

        index = HeaderIndex.from_header(table, header, required)
        yield index, _rows(reader, table, index.width)
