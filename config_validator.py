#!/usr/bin/env python3
# filename: config_validator.py
# -----------------------------------------------------------------------------
# Project: GeoBlock List Builder
# Version: 1.0.0
# -----------------------------------------------------------------------------
"""
Configuration loading and validation.

Settings come from an optional YAML file and from command-line flags; flags
win field by field. The merged dictionary is validated and frozen into a
BlocklistConfig, which is the only thing the pipeline ever sees.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

import yaml

from archive_extractor import REQUIRED_MEMBERS
from errors import ConfigValidationError
from geoip_compiler import REPORT_FILENAME
from geoip_fetcher import ZIP_FILENAME
from utils import get_logger

logger = get_logger("ConfigValidator")

DEFAULT_OUTPUT_FILENAME = "BlockedCountriesBlocks.txt"

KNOWN_KEYS = {
    'account_id', 'license_key', 'blocked_countries', 'output_filepath',
    'output_filename', 'scratch_dir', 'report_file', 'logging',
}

_COUNTRY_RE = re.compile(r'^[A-Z]{2}$')

# Names the pipeline itself creates in the scratch directory
RESERVED_FILENAMES = frozenset(
    name.lower() for name in (ZIP_FILENAME, ZIP_FILENAME + ".tmp", REPORT_FILENAME) + REQUIRED_MEMBERS
)


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader that reads YAML 1.1 yes/no/on/off as plain strings (NO is Norway)"""


ConfigLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != 'tag:yaml.org,2002:bool']
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
ConfigLoader.add_implicit_resolver(
    'tag:yaml.org,2002:bool',
    re.compile(r'^(?:true|True|TRUE|false|False|FALSE)$'),
    list('tTfF'),
)


@dataclass(frozen=True)
class BlocklistConfig:
    """Validated, immutable settings for one run"""
    account_id: str
    license_key: str
    blocked_countries: FrozenSet[str]
    output_filename: str = DEFAULT_OUTPUT_FILENAME
    output_dir: Path = Path('.')
    scratch_root: Optional[Path] = None
    report_path: Optional[Path] = None
    log_level: str = "INFO"

    @property
    def output_path(self) -> Path:
        return self.output_dir / self.output_filename

    def __repr__(self) -> str:
        # keep the license key out of logs and tracebacks
        return (f"BlocklistConfig(account_id={self.account_id!r}, license_key='***', "
                f"blocked_countries={sorted(self.blocked_countries)!r}, "
                f"output_path={str(self.output_path)!r})")


def normalize_countries(codes: Iterable[Any]) -> FrozenSet[str]:
    return frozenset(str(code).strip().upper() for code in codes if str(code).strip())


class ConfigValidator:
    """Validates blocklist configuration for common errors and inconsistencies"""

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate(self, config: Dict[str, Any]) -> Tuple[bool, List[str], List[str]]:
        """
        Validate entire configuration.

        Returns:
            (is_valid, errors, warnings)
        """
        self.errors = []
        self.warnings = []

        if not isinstance(config, dict):
            self.errors.append("Configuration must be a dictionary")
            return False, self.errors, self.warnings

        self._validate_credentials(config)
        self._validate_countries(config.get('blocked_countries'))
        self._validate_output(config)
        self._validate_optional_paths(config)
        self._validate_logging(config.get('logging', {}))
        self._validate_top_level_options(config)

        is_valid = len(self.errors) == 0

        for err in self.errors:
            logger.error(f"  ❌ {err}")
        for warn in self.warnings:
            logger.warning(f"  ⚠️  {warn}")

        if is_valid:
            logger.debug("Configuration validation PASSED")
        else:
            logger.error(f"Configuration validation FAILED with {len(self.errors)} error(s)")

        return is_valid, self.errors, self.warnings

    # =========================================================================
    # CREDENTIALS
    # =========================================================================
    def _validate_credentials(self, config: Dict[str, Any]):
        for key in ('account_id', 'license_key'):
            val = config.get(key)
            if val is None or (isinstance(val, str) and not val.strip()):
                self.errors.append(f"{key}: Required (set it with the CLI or in the config file)")
            elif not isinstance(val, (str, int)):
                self.errors.append(f"{key}: Must be a string, got {type(val).__name__}")

    # =========================================================================
    # BLOCKED COUNTRIES
    # =========================================================================
    def _validate_countries(self, countries: Any):
        if countries is None:
            self.errors.append("blocked_countries: At least one country code is required")
            return
        if isinstance(countries, str):
            countries = [countries]
        if not isinstance(countries, (list, tuple, set, frozenset)):
            self.errors.append(f"blocked_countries: Must be a list, got {type(countries).__name__}")
            return

        normalized = normalize_countries(countries)
        if not normalized:
            self.errors.append("blocked_countries: At least one country code is required")
            return

        for code in sorted(normalized):
            if not _COUNTRY_RE.match(code):
                self.errors.append(f"blocked_countries: Invalid ISO 3166-1 alpha-2 code '{code}'")

    # =========================================================================
    # OUTPUT
    # =========================================================================
    def _validate_output(self, config: Dict[str, Any]):
        filename = config.get('output_filename', DEFAULT_OUTPUT_FILENAME)
        if not isinstance(filename, str) or not filename.strip():
            self.errors.append("output_filename: Must be a non-empty string")
        elif '/' in filename or '\\' in filename or filename in ('.', '..'):
            self.errors.append(f"output_filename: Must be a bare file name, got '{filename}' (use output_filepath for the directory)")
        elif filename.strip().lower() in RESERVED_FILENAMES:
            self.errors.append(f"output_filename: '{filename}' is used for scratch files, choose another name")

        out_dir = config.get('output_filepath')
        if out_dir is not None:
            if not isinstance(out_dir, (str, os.PathLike)):
                self.errors.append("output_filepath: Must be string")
            elif str(out_dir) and not os.path.isdir(out_dir):
                self.warnings.append(f"output_filepath: Directory '{out_dir}' does not exist")

    def _validate_optional_paths(self, config: Dict[str, Any]):
        scratch = config.get('scratch_dir')
        if scratch is not None:
            if not isinstance(scratch, (str, os.PathLike)):
                self.errors.append("scratch_dir: Must be string")
            elif not os.path.isdir(scratch):
                self.errors.append(f"scratch_dir: Directory '{scratch}' does not exist")

        report = config.get('report_file')
        if report is not None and not isinstance(report, (str, os.PathLike)):
            self.errors.append("report_file: Must be string")

    # =========================================================================
    # LOGGING SECTION
    # =========================================================================
    def _validate_logging(self, log_cfg: Dict[str, Any]):
        """Validate logging configuration"""
        if not isinstance(log_cfg, dict):
            if log_cfg is not None:
                self.errors.append("logging: Must be a dictionary")
            return

        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        level = log_cfg.get('level', 'INFO')
        if isinstance(level, str):
            if level.upper() not in valid_levels:
                self.errors.append(f"logging.level: Invalid level '{level}', must be one of {valid_levels}")
        else:
            self.errors.append(f"logging.level: Must be a string, got {type(level).__name__}")

    def _validate_top_level_options(self, config: Dict[str, Any]):
        for key in sorted(set(config) - KNOWN_KEYS):
            self.warnings.append(f"{key}: Unknown option, ignored")


def validate_config(config: Dict[str, Any]) -> Tuple[bool, List[str], List[str]]:
    """
    Convenience function to validate configuration.

    Returns:
        (is_valid, errors, warnings)
    """
    validator = ConfigValidator()
    return validator.validate(config)


# =============================================================================
# LOADING & MERGING
# =============================================================================

def load_config_file(path: Path) -> Dict[str, Any]:
    """Read a YAML config file. An empty file is an empty config."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.load(f, Loader=ConfigLoader)
    except OSError as exc:
        raise ConfigValidationError(f"Error opening config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Error parsing config file {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return data


def merge_config(file_cfg: Dict[str, Any], cli_cfg: Dict[str, Any]) -> Dict[str, Any]:
    """
    Overlay command-line values on file values.

    A CLI value counts as set when it is not None and not empty. CLI country
    codes replace the file's list rather than extending it.
    """
    merged = dict(file_cfg)
    for key, val in cli_cfg.items():
        if val is None or val == '' or val == [] or val == ():
            continue
        merged[key] = val
    return merged


def build_config(raw: Dict[str, Any]) -> BlocklistConfig:
    """Validate a merged config dictionary and freeze it."""
    is_valid, errors, _ = validate_config(raw)
    if not is_valid:
        raise ConfigValidationError("; ".join(errors))

    countries = raw['blocked_countries']
    if isinstance(countries, str):
        countries = [countries]

    scratch = raw.get('scratch_dir')
    report = raw.get('report_file')
    return BlocklistConfig(
        account_id=str(raw['account_id']).strip(),
        license_key=str(raw['license_key']).strip(),
        blocked_countries=normalize_countries(countries),
        output_filename=raw.get('output_filename') or DEFAULT_OUTPUT_FILENAME,
        output_dir=Path(raw.get('output_filepath') or '.'),
        scratch_root=Path(scratch) if scratch else None,
        report_path=Path(report) if report else None,
        log_level=str((raw.get('logging') or {}).get('level', 'INFO')).upper(),
    )


def require_runnable(config: BlocklistConfig):
    """Fail fast on a config the pipeline cannot run with."""
    if not config.account_id or not config.license_key:
        raise ConfigValidationError("Account ID and License Key must be provided via CLI or config file")
    if not config.blocked_countries:
        raise ConfigValidationError("At least one blocked country code must be provided")
    if config.output_filename.lower() in RESERVED_FILENAMES:
        raise ConfigValidationError(f"Output file name '{config.output_filename}' is used for scratch files")
