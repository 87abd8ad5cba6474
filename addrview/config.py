"""
Config loading for addrview.

Sources (in precedence order, highest first):
  1. Environment variables (ADDRVIEW_*)
  2. ~/.addrview/config.toml
  3. Built-in defaults

Usage:
    from addrview.config import load_config
    config = load_config()
    print(config.backend.base_url)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import toml

from addrview.exceptions import ConfigInvalidError
from addrview.models import (
    ALLOWED_PAGE_SIZES,
    COL_TIMESTAMP,
    DEFAULT_PAGE_SIZE,
    HIDDEN_COLUMNS,
    ROW_WIDTH,
    SORT_DIRECTIONS,
    UNORDERABLE_COLUMNS,
)

# Default config directory and file
DEFAULT_CONFIG_DIR = Path.home() / ".addrview"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.toml"

# Environment variable → config key mapping
# Format: (env_var_name, dotted_config_path, type_converter)
_ENV_OVERRIDES: list[tuple[str, str, type]] = [
    ("ADDRVIEW_BASE_URL", "backend.base_url", str),
    ("ADDRVIEW_TIMEOUT", "backend.timeout_seconds", float),
    ("ADDRVIEW_PAGE_LENGTH", "table.page_length", int),
    ("ADDRVIEW_OUTPUT_FORMAT", "output.default_format", str),
    ("ADDRVIEW_LOG_LEVEL", "logging.level", str),
]

VALID_FORMATS = {"json", "table"}
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class BackendConfig:
    """Explorer backend location and per-service paths."""

    base_url: str = "http://localhost:3000"
    timeout_seconds: float = 30.0
    summary_path: str = "/web3relay"
    signed_path: str = "/signed"
    transactions_path: str = "/addr"
    trace_path: str = "/web3relay"
    contract_path: str = "/compile"


@dataclass
class TableConfig:
    """Transaction table defaults."""

    page_length: int = DEFAULT_PAGE_SIZE
    sort_column: int = COL_TIMESTAMP
    sort_direction: str = "desc"


@dataclass
class OutputConfig:
    """Output formatting defaults."""

    default_format: str = "table"       # json | table
    color: bool = True


@dataclass
class LoggingConfig:
    level: str = "WARNING"


@dataclass
class AddrviewConfig:
    """Full configuration object. Passed via Click context to all commands."""

    backend: BackendConfig = field(default_factory=BackendConfig)
    table: TableConfig = field(default_factory=TableConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: str | None = None) -> AddrviewConfig:
    """
    Load configuration from TOML file + environment variable overrides.

    Args:
        path: Override config file path. If None, uses ADDRVIEW_CONFIG_PATH
              env var or default (~/.addrview/config.toml).

    Returns:
        AddrviewConfig with all values resolved.

    Raises:
        ConfigInvalidError: Config file exists but is invalid TOML or values.
    """
    config_path = _resolve_config_path(path)

    raw: dict = {}
    if config_path.exists():
        try:
            raw = toml.load(str(config_path))
        except toml.TomlDecodeError as e:
            raise ConfigInvalidError(f"Invalid TOML in {config_path}: {e}") from e

    try:
        config = _dict_to_config(raw)
    except (ValueError, TypeError) as e:
        raise ConfigInvalidError(f"Invalid value in {config_path}: {e}") from e
    _apply_env_overrides(config)
    _validate_config(config)

    return config


def save_config(config: AddrviewConfig, path: str | None = None) -> Path:
    """
    Serialize AddrviewConfig to TOML and write to disk.

    Returns the path where config was written.
    """
    config_path = _resolve_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "backend": {
            "base_url": config.backend.base_url,
            "timeout_seconds": config.backend.timeout_seconds,
            "summary_path": config.backend.summary_path,
            "signed_path": config.backend.signed_path,
            "transactions_path": config.backend.transactions_path,
            "trace_path": config.backend.trace_path,
            "contract_path": config.backend.contract_path,
        },
        "table": {
            "page_length": config.table.page_length,
            "sort_column": config.table.sort_column,
            "sort_direction": config.table.sort_direction,
        },
        "output": {
            "default_format": config.output.default_format,
            "color": config.output.color,
        },
        "logging": {
            "level": config.logging.level,
        },
    }

    with open(config_path, "w") as f:
        toml.dump(data, f)

    return config_path


def get_default_config_path() -> Path:
    """Return the default config file path."""
    return DEFAULT_CONFIG_PATH


# ──────────────────────────────────────────────────────────────
# Private helpers
# ──────────────────────────────────────────────────────────────


def _resolve_config_path(path: str | None) -> Path:
    if path:
        return Path(path).expanduser()
    env_path = os.environ.get("ADDRVIEW_CONFIG_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH


def _dict_to_config(raw: dict) -> AddrviewConfig:
    """Build AddrviewConfig from raw TOML dict, applying defaults for missing keys."""
    config = AddrviewConfig()
    defaults = BackendConfig()

    backend = raw.get("backend", {})
    config.backend.base_url = backend.get("base_url", defaults.base_url)
    config.backend.timeout_seconds = float(
        backend.get("timeout_seconds", defaults.timeout_seconds)
    )
    config.backend.summary_path = backend.get("summary_path", defaults.summary_path)
    config.backend.signed_path = backend.get("signed_path", defaults.signed_path)
    config.backend.transactions_path = backend.get(
        "transactions_path", defaults.transactions_path
    )
    config.backend.trace_path = backend.get("trace_path", defaults.trace_path)
    config.backend.contract_path = backend.get("contract_path", defaults.contract_path)

    table = raw.get("table", {})
    config.table.page_length = int(table.get("page_length", DEFAULT_PAGE_SIZE))
    config.table.sort_column = int(table.get("sort_column", COL_TIMESTAMP))
    config.table.sort_direction = table.get("sort_direction", "desc")

    output = raw.get("output", {})
    config.output.default_format = output.get("default_format", "table")
    config.output.color = bool(output.get("color", True))

    logging_section = raw.get("logging", {})
    config.logging.level = str(logging_section.get("level", "WARNING")).upper()

    return config


def _apply_env_overrides(config: AddrviewConfig) -> None:
    """Apply environment variable overrides to a loaded config."""
    if os.environ.get("ADDRVIEW_NO_COLOR"):
        config.output.color = False

    for env_var, dotted_key, converter in _ENV_OVERRIDES:
        val = os.environ.get(env_var)
        if val is None:
            continue
        section, key = dotted_key.split(".", 1)
        section_obj = getattr(config, section)
        try:
            setattr(section_obj, key, converter(val))
        except (ValueError, TypeError) as e:
            raise ConfigInvalidError(
                f"Invalid value for {env_var}={val!r}: {e}"
            ) from e

    config.logging.level = config.logging.level.upper()


def _validate_config(config: AddrviewConfig) -> None:
    """Validate config values. Raises ConfigInvalidError on invalid values."""
    if not config.backend.base_url.startswith(("http://", "https://")):
        raise ConfigInvalidError(
            f"backend.base_url must be an http(s) URL, got {config.backend.base_url!r}"
        )
    if config.backend.timeout_seconds <= 0:
        raise ConfigInvalidError(
            f"backend.timeout_seconds must be positive, got {config.backend.timeout_seconds}"
        )
    if config.table.page_length not in ALLOWED_PAGE_SIZES:
        raise ConfigInvalidError(
            f"table.page_length must be one of {list(ALLOWED_PAGE_SIZES)}, "
            f"got {config.table.page_length}"
        )
    sort_column = config.table.sort_column
    if (
        sort_column in UNORDERABLE_COLUMNS
        or sort_column in HIDDEN_COLUMNS
        or not 0 <= sort_column < ROW_WIDTH
    ):
        raise ConfigInvalidError(f"table.sort_column {sort_column} is not orderable")
    if config.table.sort_direction not in SORT_DIRECTIONS:
        raise ConfigInvalidError(
            f"table.sort_direction must be 'asc' or 'desc', "
            f"got {config.table.sort_direction!r}"
        )
    if config.output.default_format not in VALID_FORMATS:
        raise ConfigInvalidError(
            f"output.default_format must be one of {VALID_FORMATS}, "
            f"got {config.output.default_format!r}"
        )
    if config.logging.level not in VALID_LOG_LEVELS:
        raise ConfigInvalidError(
            f"logging.level must be one of {sorted(VALID_LOG_LEVELS)}, "
            f"got {config.logging.level!r}"
        )
