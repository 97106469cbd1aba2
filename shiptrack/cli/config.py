"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. --config <path> CLI flag
2. ./shiptrack.yaml (working directory)
3. ~/.shiptrack/config.yaml (user home)

Environment variables override YAML: SHIPTRACK_<SECTION>_<KEY>.
${VAR} references in YAML values resolve from environment at load time.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, field_validator

from shiptrack.services.import_service import ImportOptions
from shiptrack.services.reconciler import DEFAULT_DETAILS, MergeMode

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

_LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class DatabaseConfig(BaseModel):
    """Database location. Empty url falls back to DATABASE_URL / defaults."""

    url: str | None = None


class LoggingConfig(BaseModel):
    """Root logger settings applied by the CLI."""

    level: str = "error"
    format: str = "%(levelname)s:%(name)s:%(message)s"
    file: str | None = None

    @field_validator("level")
    @classmethod
    def _check_level(cls, v: str) -> str:
        if v.lower() not in _LOG_LEVELS:
            raise ValueError(f"level must be one of {', '.join(_LOG_LEVELS)}")
        return v.lower()


class ImportConfig(BaseModel):
    """Defaults for import commands."""

    csv_merge_mode: MergeMode = MergeMode.replace_all
    status_merge_mode: MergeMode = MergeMode.append
    dayfirst: bool = True
    default_details: str = DEFAULT_DETAILS
    suffix_legacy_tracking_ids: bool = True

    def to_options(self) -> ImportOptions:
        return ImportOptions(
            csv_merge_mode=self.csv_merge_mode,
            status_merge_mode=self.status_merge_mode,
            dayfirst=self.dayfirst,
            default_details=self.default_details,
            suffix_legacy_tracking_ids=self.suffix_legacy_tracking_ids,
        )


class ShipTrackConfig(BaseModel):
    """Top-level configuration for the shiptrack CLI."""

    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()
    imports: ImportConfig = ImportConfig()


def _find_config_file() -> Path | None:
    """Search for config file in standard locations."""
    candidates = [
        Path.cwd() / "shiptrack.yaml",
        Path.cwd() / "shiptrack.yml",
        Path.home() / ".shiptrack" / "config.yaml",
        Path.home() / ".shiptrack" / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply SHIPTRACK_<SECTION>_<KEY> env var overrides to config data.

    For example, ``SHIPTRACK_IMPORTS_DAYFIRST=false`` maps to section
    ``imports``, field ``dayfirst``. Variables that name no known section
    (such as SHIPTRACK_DB_PATH) are ignored here.
    """
    prefix = "SHIPTRACK_"
    known_sections = sorted(
        ShipTrackConfig.model_fields.keys(), key=len, reverse=True
    )
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        suffix = key[len(prefix):].lower()
        matched_section = None
        matched_field = None
        for section in known_sections:
            section_prefix = section + "_"
            if suffix.startswith(section_prefix):
                matched_section = section
                matched_field = suffix[len(section_prefix):]
                break
        if matched_section is None or not matched_field:
            continue
        if data.get(matched_section) is None:
            data[matched_section] = {}
        if isinstance(data[matched_section], dict):
            if value.lower() in ("true", "false"):
                data[matched_section][matched_field] = value.lower() == "true"
            else:
                data[matched_section][matched_field] = value
    return data


def load_config(config_path: str | None = None) -> ShipTrackConfig | None:
    """Load shiptrack configuration from YAML file with env var resolution.

    Args:
        config_path: Explicit path to config file. If None, searches
            standard locations (cwd, then ~/.shiptrack/).

    Returns:
        Parsed and validated ShipTrackConfig, or None if no config found.

    Raises:
        FileNotFoundError: If config_path is given but does not exist.
    """
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        path = _find_config_file()
        if path is None:
            return None

    logger.info("Loading config from %s", path)

    with open(path) as f:
        raw_data = yaml.safe_load(f) or {}

    data = _resolve_env_vars_recursive(raw_data)
    data = _apply_env_overrides(data)
    return ShipTrackConfig(**data)


def load_config_or_default(config_path: str | None = None) -> ShipTrackConfig:
    """Like load_config(), but fall back to defaults (plus env overrides)."""
    cfg = load_config(config_path)
    if cfg is not None:
        return cfg
    return ShipTrackConfig(**_apply_env_overrides({}))
