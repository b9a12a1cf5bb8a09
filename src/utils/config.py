"""Configuration management for the cruise contract parser.

Loads and validates YAML configuration with sensible defaults
for parsing thresholds, import guards, validation, and billing.
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class ParserConfig(BaseModel):
    """Thresholds and weights for the contract text parser.

    Instances are frozen so a shared default can be exported safely.
    """

    model_config = ConfigDict(frozen=True)

    currency_confidence_threshold: int = 30
    table_parse_rate_threshold: int = 80
    dates_required_for_complete: int = 1
    min_cabin_price_cents: int = 10000
    explicit_weight: int = 15
    priced_weight: int = 10
    hint_bonus: int = 20
    ambiguity_ratio: float = 0.5
    price_window_lines: int = 2


class ImportConfig(BaseModel):
    """Configuration for the contract import workflow."""

    min_text_length: int = 50
    feature_key: str = "ocr_parsing"


class ValidationConfig(BaseModel):
    """Configuration for validation rules engine."""

    rules_path: str = "configs/validation_rules.yaml"


class BillingConfig(BaseModel):
    """Configuration for subscription feature gating."""

    features_path: str = "configs/features.yaml"


class ServerConfig(BaseModel):
    """Bind address for the HTTP API."""

    host: str = "127.0.0.1"
    port: int = 8000


class AppConfig(BaseModel):
    """Top-level application configuration."""

    parser: ParserConfig = Field(default_factory=ParserConfig)
    importing: ImportConfig = Field(default_factory=ImportConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    billing: BillingConfig = Field(default_factory=BillingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration.
    """
    if path is None:
        path = Path("configs/config.yaml")

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        return AppConfig(**raw)

    logger.info("No config file found at %s, using defaults", path)
    return AppConfig()
