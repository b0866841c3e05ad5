#!/usr/bin/env python3
# filename: geoip_fetcher.py
# -----------------------------------------------------------------------------
# Project: GeoBlock List Builder
# Version: 1.0.0
# -----------------------------------------------------------------------------
"""
Authenticated download of the GeoLite2 Country CSV archive with SHA-256
verification against the vendor's published checksum.
"""

import hashlib
import os
import re
import time
from pathlib import Path
from typing import Iterator, Optional, Tuple

import requests

from errors import ChecksumMismatchError, IntegrityFormatError, RemoteFetchError
from utils import get_logger

logger = get_logger("GeoIPFetcher")

DB_URL = "https://download.maxmind.com/geoip/databases/GeoLite2-Country-CSV/download?suffix=zip"
SHA_URL = "https://download.maxmind.com/geoip/databases/GeoLite2-Country-CSV/download?suffix=zip.sha256"

REQUEST_TIMEOUT = 30
CHUNK_SIZE = 64 * 1024
MAX_CHECKSUM_BYTES = 1024
ZIP_FILENAME = "db.zip"

_SHA256_RE = re.compile(r'^[0-9a-fA-F]{64}$')


def file_sha256(path: Path, chunk_size: int = CHUNK_SIZE) -> str:
    """Streaming SHA-256 of a file, returned as lowercase hex."""
    digest = hashlib.sha256()
    with open(path, 'rb') as f:
        for block in iter(lambda: f.read(chunk_size), b""):
            digest.update(block)
    return digest.hexdigest()


def parse_checksum(payload: bytes) -> str:
    """
    Extract the expected digest from a checksum file body.

    The body is whitespace-delimited text ("<digest>  <filename>"); the digest
    is the first token.
    """
    try:
        text = payload.decode('ascii')
    except UnicodeDecodeError as exc:
        raise IntegrityFormatError("invalid sha file: not ASCII text") from exc

    parts = text.split()
    if not parts:
        raise IntegrityFormatError("invalid sha file: empty payload")

    expected = parts[0]
    if not _SHA256_RE.match(expected):
        raise IntegrityFormatError(f"invalid sha file: '{expected[:80]}' is not a SHA-256 hex digest")
    return expected.lower()


def verify_digest(path: Path, expected: str) -> str:
    """Compare the file digest to ``expected`` (case-insensitive hex)."""
    actual = file_sha256(path)
    if actual != expected.lower():
        raise ChecksumMismatchError(expected=expected, actual=actual)
    return actual


class GeoIPFetcher:
    """
    Downloads the archive and its checksum using one credential pair.

    Args:
        account_id: Vendor account identifier (Basic auth user)
        license_key: Vendor license key (Basic auth password)
        session: Optional requests session, created on demand
    """

    def __init__(self, account_id: str, license_key: str,
                 session: Optional[requests.Session] = None,
                 db_url: str = DB_URL, sha_url: str = SHA_URL,
                 timeout: float = REQUEST_TIMEOUT):
        self.auth = (account_id, license_key)
        self.session = session or requests.Session()
        self.db_url = db_url
        self.sha_url = sha_url
        self.timeout = timeout

    def _get(self, url: str, what: str) -> requests.Response:
        try:
            response = self.session.get(url, auth=self.auth, stream=True, timeout=self.timeout)
        except requests.RequestException as exc:
            raise RemoteFetchError(f"{what} fetch failed: {exc}", url=url) from exc

        if response.status_code != 200:
            status = response.status_code
            reason = getattr(response, 'reason', '') or ''
            response.close()
            raise RemoteFetchError(f"{what} bad status: {status} {reason}".rstrip(), url=url, status=status)
        return response

    def _iter_body(self, response: requests.Response, url: str, what: str,
                   chunk_size: int, deadline: float) -> Iterator[bytes]:
        # whole-transfer limit; the requests timeout applies per socket read
        for chunk in response.iter_content(chunk_size=chunk_size):
            if time.monotonic() > deadline:
                raise RemoteFetchError(f"{what} fetch timed out after {self.timeout}s", url=url)
            yield chunk

    def download_archive(self, scratch_dir: Path) -> Path:
        """Stream the archive to a temp file, then rename it into place."""
        tmp_path = scratch_dir / (ZIP_FILENAME + ".tmp")
        zip_path = scratch_dir / ZIP_FILENAME

        logger.info("  ⬇ Downloading GeoLite2 Country CSV archive...")
        deadline = time.monotonic() + self.timeout
        response = self._get(self.db_url, "zip")
        size = 0
        try:
            with open(tmp_path, 'wb') as f:
                for chunk in self._iter_body(response, self.db_url, "zip", CHUNK_SIZE, deadline):
                    if chunk:
                        f.write(chunk)
                        size += len(chunk)
        except requests.RequestException as exc:
            raise RemoteFetchError(f"zip fetch failed: {exc}", url=self.db_url) from exc
        except OSError as exc:
            raise RemoteFetchError(f"failed to write {tmp_path}: {exc}", url=self.db_url) from exc
        finally:
            response.close()

        try:
            os.replace(tmp_path, zip_path)
        except OSError as exc:
            raise RemoteFetchError(f"failed to rename temp file: {exc}", url=self.db_url) from exc

        logger.info(f"     Received {size / (1024 * 1024):.2f} MB")
        return zip_path

    def fetch_expected_digest(self) -> str:
        deadline = time.monotonic() + self.timeout
        response = self._get(self.sha_url, "sha")
        payload = bytearray()
        try:
            for chunk in self._iter_body(response, self.sha_url, "sha", MAX_CHECKSUM_BYTES, deadline):
                payload.extend(chunk)
                if len(payload) >= MAX_CHECKSUM_BYTES:
                    break
        except requests.RequestException as exc:
            raise RemoteFetchError(f"sha fetch failed: {exc}", url=self.sha_url) from exc
        finally:
            response.close()
        return parse_checksum(bytes(payload[:MAX_CHECKSUM_BYTES]))

    def fetch(self, scratch_dir: Path) -> Tuple[Path, str]:
        """
        Download and verify the archive.

        Returns:
            (archive_path, sha256_hex)
        """
        zip_path = self.download_archive(Path(scratch_dir))
        expected = self.fetch_expected_digest()
        actual = verify_digest(zip_path, expected)
        logger.info(f"  ✓ SHA-256 verified: {actual[:16]}...")
        return zip_path, actual
