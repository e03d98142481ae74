"""Configuration for the candle input pipeline.

Options live in the ``[pipeline]`` table of
``~/.config/candleguard/config.toml``; every option has a default, so the
file is optional.
"""

import logging
from pathlib import Path
from typing import Optional

import toml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "candleguard"


def default_config_path() -> Path:
    """Path of the user configuration file."""
    return CONFIG_DIR / "config.toml"


def default_db_path() -> Path:
    """Path of the default SQLite database."""
    return CONFIG_DIR / "candleguard.db"


class PipelineConfig(BaseModel):
    """Tunable limits and thresholds of the pipeline."""

    # Threat screening
    rate_limit_window_seconds: float = Field(default=60.0, gt=0)
    rate_limit_max_requests: int = Field(default=100, ge=1)
    rate_limit_cleanup_seconds: float = Field(default=300.0, gt=0)

    # Validation cache
    cache_ttl_seconds: float = Field(default=300.0, gt=0)
    cache_max_size: int = Field(default=100, ge=1)

    # Undo/redo
    history_max_depth: int = Field(default=50, ge=1)

    # Structural rules
    max_price: float = Field(default=1_000_000, gt=0)
    max_volume: float = Field(default=999_999_999, gt=0)
    spread_error_percent: float = Field(default=10.0, gt=0)
    spread_warning_percent: float = Field(default=5.0, gt=0)
    min_spread_percent: float = Field(default=0.01, ge=0)
    low_volume_threshold: float = Field(default=1000, ge=0)

    # Business rules
    gap_warning_percent: float = Field(default=1.0, ge=0)
    gap_error_percent: float = Field(default=3.0, ge=0)
    volatility_multiplier: float = Field(default=3.0, gt=0)
    volume_high_multiplier: float = Field(default=5.0, gt=0)
    volume_low_multiplier: float = Field(default=0.1, ge=0)
    analysis_window: int = Field(default=20, ge=1)

    model_config = {"frozen": True, "extra": "forbid"}


def load_config(path: Optional[Path] = None) -> PipelineConfig:
    """Load pipeline configuration from a TOML file.

    Args:
        path: Config file path. Uses the default location if not provided.

    Returns:
        The loaded configuration, or defaults if the file does not exist.

    Raises:
        ValueError: If the file cannot be parsed or holds invalid options.
    """
    config_path = path or default_config_path()
    if not config_path.exists():
        return PipelineConfig()

    try:
        data = toml.load(config_path)
    except toml.TomlDecodeError as e:
        raise ValueError(f"Invalid config file {config_path}: {e}") from e

    try:
        config = PipelineConfig(**data.get("pipeline", {}))
    except ValidationError as e:
        raise ValueError(f"Invalid [pipeline] options in {config_path}: {e}") from e

    logger.debug("Loaded pipeline config from %s", config_path)
    return config
