from __future__ import annotations

import hashlib
import io
import zipfile
from pathlib import Path

import pytest
import requests

from archive_extractor import BLOCKS_CSV, LOCATIONS_CSV
from geoip_fetcher import DB_URL, SHA_URL

LOCATIONS_HEADER = "geoname_id,locale_code,continent_code,continent_name,country_iso_code,country_name,is_in_european_union"
BLOCKS_HEADER = "network,geoname_id,registered_country_geoname_id,represented_country_geoname_id,is_anonymous_proxy,is_satellite_provider,is_anycast"


def location_row(geoname_id: str, country: str) -> str:
    return f"{geoname_id},en,XX,Somewhere,{country},Name,0"


def block_row(network: str, geoname_id: str = "", registered: str = "", represented: str = "") -> str:
    return f"{network},{geoname_id},{registered},{represented},0,0,"


def write_lines(path: Path, lines: list[str]) -> Path:
    path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
    return path


def build_zip(members: dict[str, str]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, content in members.items():
            zf.writestr(name, content)
    return buf.getvalue()


def geolite_zip(locations: list[str], blocks: list[str], folder: str = "GeoLite2-Country-CSV_20240101") -> bytes:
    return build_zip({
        f"{folder}/COPYRIGHT.txt": "copyright\n",
        f"{folder}/{LOCATIONS_CSV}": "\n".join([LOCATIONS_HEADER, *locations]) + "\n",
        f"{folder}/{BLOCKS_CSV}": "\n".join([BLOCKS_HEADER, *blocks]) + "\n",
        f"{folder}/GeoLite2-Country-Blocks-IPv6.csv": "network,geoname_id\n",
    })


def sha_payload(data: bytes, upper: bool = False) -> bytes:
    digest = hashlib.sha256(data).hexdigest()
    if upper:
        digest = digest.upper()
    return f"{digest}  GeoLite2-Country-CSV_20240101.zip\n".encode()


class FakeResponse:
    def __init__(self, body: bytes = b"", status_code: int = 200, reason: str = "OK"):
        self.body = body
        self.status_code = status_code
        self.reason = reason
        self.closed = False
        self.bytes_served = 0

    def iter_content(self, chunk_size: int = 1):
        for start in range(0, len(self.body), chunk_size):
            chunk = self.body[start:start + chunk_size]
            self.bytes_served += len(chunk)
            yield chunk

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Serves canned responses keyed by URL and records every call."""

    def __init__(self, responses: dict[str, object]):
        self.responses = responses
        self.calls: list[dict] = []

    def get(self, url, auth=None, stream=False, timeout=None):
        self.calls.append({"url": url, "auth": auth, "stream": stream, "timeout": timeout})
        result = self.responses[url]
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def vendor_session():
    def _make(archive: bytes, checksum: bytes | None = None, **overrides) -> FakeSession:
        responses: dict[str, object] = {
            DB_URL: FakeResponse(archive),
            SHA_URL: FakeResponse(sha_payload(archive) if checksum is None else checksum),
        }
        responses.update(overrides)
        return FakeSession(responses)

    return _make


@pytest.fixture
def connection_error():
    return requests.ConnectionError("connection refused")
