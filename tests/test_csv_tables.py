from __future__ import annotations

import pytest

from conftest import write_lines
from csv_tables import HeaderIndex, read_table
from errors import RowFormatError, SchemaError


def test_header_index_resolves_by_name_in_any_order() -> None:
    index = HeaderIndex.from_header("blocks", ["b", "network", "a"], ["a", "network"])
    assert index["network"] == 1
    assert index["a"] == 2
    assert index.width == 3


def test_header_index_reports_every_missing_column() -> None:
    with pytest.raises(SchemaError) as excinfo:
        HeaderIndex.from_header("locations", ["x"], ["geoname_id", "country_iso_code"])
    assert excinfo.value.missing == ["geoname_id", "country_iso_code"]
    assert excinfo.value.stage == "locations"


def test_read_table_streams_rows(tmp_path) -> None:
    path = write_lines(tmp_path / "t.csv", ["id,cc", "1,US", "", "2,DE"])
    with read_table(path, "locations", ["cc", "id"]) as (header, rows):
        assert header["cc"] == 1
        assert list(rows) == [["1", "US"], ["2", "DE"]]


def test_empty_file_has_no_header_and_no_rows(tmp_path) -> None:
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")
    with read_table(path, "locations", ["id"]) as (header, rows):
        assert header is None
        assert list(rows) == []


def test_bom_is_tolerated(tmp_path) -> None:
    path = tmp_path / "bom.csv"
    path.write_bytes("\ufeffid,cc\n1,US\n".encode("utf-8"))
    with read_table(path, "locations", ["id", "cc"]) as (header, rows):
        assert header["id"] == 0
        assert list(rows) == [["1", "US"]]


def test_wrong_field_count_names_the_row(tmp_path) -> None:
    path = write_lines(tmp_path / "t.csv", ["id,cc", "1,US", "2,DE,extra"])
    with pytest.raises(RowFormatError) as excinfo:
        with read_table(path, "locations", ["id", "cc"]) as (_, rows):
            list(rows)
    assert excinfo.value.row_index == 2
    assert excinfo.value.table == "locations"


def test_unbalanced_quote_is_a_row_format_error(tmp_path) -> None:
    path = write_lines(tmp_path / "t.csv", ["id,cc", '1,"U"S'])
    with pytest.raises(RowFormatError):
        with read_table(path, "blocks", ["id", "cc"]) as (_, rows):
            list(rows)


def test_invalid_utf8_in_small_file_is_a_row_format_error(tmp_path) -> None:
    path = tmp_path / "t.csv"
    path.write_bytes(b"id,cc\n1,US\n2,\xff\xfe\n")
    with pytest.raises(RowFormatError) as excinfo:
        with read_table(path, "locations", ["id", "cc"]) as (_, rows):
            list(rows)
    assert excinfo.value.table == "locations"
    assert isinstance(excinfo.value.__cause__, UnicodeDecodeError)


def test_invalid_utf8_deep_in_file_names_a_data_row(tmp_path) -> None:
    lines = b"".join(b"%d,US\n" % i for i in range(50000))
    path = tmp_path / "t.csv"
    path.write_bytes(b"id,cc\n" + lines + b"50000,\xff\xfe\n")
    with pytest.raises(RowFormatError) as excinfo:
        with read_table(path, "blocks", ["id", "cc"]) as (_, rows):
            list(rows)
    assert excinfo.value.row_index > 0
    assert isinstance(excinfo.value.__cause__, UnicodeDecodeError)
