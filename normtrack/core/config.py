"""
normtrack: Configuration Management

This module provides centralised configuration management for normtrack.
Every setting has a compiled-in default so the updater runs with no
flags and no environment at all; environment variables (optionally via a
.env file) may override them, with strongly typed access via Pydantic
BaseSettings.

Key responsibilities:
- Hold the base date, instrument table, source URL and output path
- Validate configuration values up front
- Expose a cached global configuration accessor for convenience

External dependencies:
- pydantic: Data validation and settings management
- pydantic-settings: Environment variable integration for settings
- python-dotenv: Optional .env loading for local development

Thread safety: Thread-safe (configuration is immutable after initial load)
"""

# ============================================================================
# Imports
# ============================================================================

from __future__ import annotations

from datetime import date
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ============================================================================
# Defaults
# ============================================================================

DEFAULT_BASE_DATE = "2025-10-15"
DEFAULT_OUTPUT_PATH = "data/series.json"
DEFAULT_SOURCE_URL = "https://stooq.com/q/d/l/?s={symbol}&i=d"
DEFAULT_USER_AGENT = "Mozilla/5.0"

# Instrument name -> Stooq symbol. The name prefixes the per-instrument
# keys of the persisted document (``vooBaseClose``, ``vooClose``, ``vooN``).
DEFAULT_INSTRUMENTS: Dict[str, str] = {
    "voo": "voo.us",
    "qqq": "qqq.us",
}

# ============================================================================
# Data Models
# ============================================================================


class LastDatePolicy(str, Enum):
    """How the merger resumes when the last stored date is gone upstream.

    ``RESUME`` starts at the first candidate date strictly after the last
    stored date. ``STRICT`` raises :class:`HistoryMismatchError` when the
    last stored date is missing from the refreshed candidate set.
    """

    RESUME = "resume"
    STRICT = "strict"


class TrackerConfig(BaseSettings):
    """Main normtrack configuration.

    Environment variables use the following mapping:

    - NORMTRACK_BASE_DATE, NORMTRACK_OUTPUT_PATH, NORMTRACK_INSTRUMENTS
      (JSON object), NORMTRACK_SOURCE_URL, NORMTRACK_USER_AGENT,
      NORMTRACK_REQUEST_TIMEOUT, NORMTRACK_NULL_SENTINEL,
      NORMTRACK_LAST_DATE_POLICY for the updater
    - LOG_LEVEL / LOG_FILE for logging

    Fields may also be passed by name, which is how tests and the
    pipeline inject paths and dates.
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Series
    base_date: str = Field(default=DEFAULT_BASE_DATE, alias="NORMTRACK_BASE_DATE")
    output_path: Path = Field(default=Path(DEFAULT_OUTPUT_PATH), alias="NORMTRACK_OUTPUT_PATH")
    instruments: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_INSTRUMENTS),
        alias="NORMTRACK_INSTRUMENTS",
    )
    last_date_policy: LastDatePolicy = Field(
        default=LastDatePolicy.RESUME, alias="NORMTRACK_LAST_DATE_POLICY"
    )

    # Source
    source_url: str = Field(default=DEFAULT_SOURCE_URL, alias="NORMTRACK_SOURCE_URL")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, alias="NORMTRACK_USER_AGENT")
    request_timeout: float = Field(default=30.0, alias="NORMTRACK_REQUEST_TIMEOUT")
    null_sentinel: str = Field(default="NULL", alias="NORMTRACK_NULL_SENTINEL")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: Optional[str] = Field(default=None, alias="LOG_FILE")

    @field_validator("base_date")
    @classmethod
    def _check_base_date(cls, value: str) -> str:
        try:
            return date.fromisoformat(value).isoformat()
        except ValueError as exc:
            raise ValueError(f"base date must be YYYY-MM-DD, got {value!r}") from exc

    @field_validator("instruments")
    @classmethod
    def _check_instruments(cls, value: Dict[str, str]) -> Dict[str, str]:
        if not value:
            raise ValueError("at least one instrument must be configured")
        for name, symbol in value.items():
            if not name or not symbol:
                raise ValueError(f"invalid instrument entry {name!r} -> {symbol!r}")
        return value

    @field_validator("source_url")
    @classmethod
    def _check_source_url(cls, value: str) -> str:
        if "{symbol}" not in value:
            raise ValueError("source URL template must contain '{symbol}'")
        return value

    @field_validator("request_timeout")
    @classmethod
    def _check_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("request timeout must be positive")
        return value


# ============================================================================
# Public API
# ============================================================================


def load_config(env_file: Optional[Path] = None) -> TrackerConfig:
    """Load normtrack configuration.

    For local development this function will attempt to load a `.env` file
    from the current working directory if one is present. Environment
    variables always take precedence over values from `.env`.

    Args:
        env_file: Optional explicit path to a `.env` file. If omitted,
            the function will look for `.env` in the current working
            directory.

    Returns:
        A fully populated :class:`TrackerConfig` instance.

    Raises:
        FileNotFoundError: If an explicit ``env_file`` is provided but
            does not exist.
    """

    if env_file is not None:
        if not env_file.exists():
            msg = f"Environment file not found: {env_file}"
            raise FileNotFoundError(msg)
        # An explicit file overrides the current environment so that tests
        # and local runs can control configuration reliably.
        load_dotenv(env_file, override=True)
    else:
        default_env = Path(".env")
        if default_env.exists():
            load_dotenv(default_env)

    return TrackerConfig()  # type: ignore[call-arg]


_global_config: Optional[TrackerConfig] = None


def get_config() -> TrackerConfig:
    """Return the global configuration singleton.

    The configuration is loaded on first access and cached for subsequent
    calls.
    """

    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config
