"""
Environment configuration loader with validation for the flight surety ledger.
"""

import logging
import os
from decimal import Decimal
from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class SuretyConfig(BaseModel):
    """Configuration model for the flight surety ledger with validation."""
    model_config = ConfigDict(frozen=True)

    # Airline consensus
    airline_funding_minimum: Decimal = Field(
        default=Decimal("10"), gt=0, description="Stake an airline pays to become funded"
    )
    consensus_airline_threshold: int = Field(
        default=4, ge=1, description="Registered airlines before registration needs votes"
    )

    # Insurance
    insurance_premium_cap: Decimal = Field(
        default=Decimal("1"), gt=0, description="Maximum premium per policy"
    )
    payout_multiplier: Decimal = Field(
        default=Decimal("1.5"), gt=0, description="Payout as a multiple of the premium"
    )

    # Oracles
    oracle_registration_fee: Decimal = Field(
        default=Decimal("1"), gt=0, description="Fee an oracle pays to register"
    )
    oracle_quorum: int = Field(
        default=3, ge=1, description="Matching responses needed to accept a status"
    )
    oracle_index_count: int = Field(
        default=3, ge=1, description="Indexes assigned to every oracle"
    )
    oracle_index_range: int = Field(
        default=10, ge=2, description="Indexes are drawn from [0, range)"
    )
    index_seed: str = Field(
        default="flight-surety", min_length=1, description="Seed for index assignment"
    )

    # Concurrency
    lock_timeout_seconds: float = Field(
        default=5.0, gt=0, description="Maximum wait for entity locks"
    )

    # Observability
    log_level: str = Field(default="INFO", description="Logging level")
    publish_events: bool = Field(
        default=False, description="Publish ledger facts to Valkey"
    )
    event_channel_prefix: str = Field(
        default="flight_surety:events", min_length=1, description="Valkey channel prefix"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @model_validator(mode="after")
    def validate_index_range(self) -> "SuretyConfig":
        """Ensure every oracle can be given distinct indexes."""
        if self.oracle_index_range <= self.oracle_index_count:
            raise ValueError(
                "oracle_index_range must be greater than oracle_index_count"
            )
        return self


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes", "on")


def load_config(env_file: Optional[str] = None) -> SuretyConfig:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Optional path to .env file. If None, looks for .env in current directory.

    Returns:
        SuretyConfig: Validated configuration object

    Raises:
        ValueError: If configuration is invalid
    """
    if env_file is None:
        env_file = ".env"

    if os.path.exists(env_file):
        load_dotenv(env_file)

    config_data: Dict[str, Any] = {
        "airline_funding_minimum": os.getenv("SURETY_AIRLINE_FUNDING_MINIMUM", "10"),
        "consensus_airline_threshold": os.getenv("SURETY_CONSENSUS_AIRLINE_THRESHOLD", "4"),
        "insurance_premium_cap": os.getenv("SURETY_INSURANCE_PREMIUM_CAP", "1"),
        "payout_multiplier": os.getenv("SURETY_PAYOUT_MULTIPLIER", "1.5"),
        "oracle_registration_fee": os.getenv("SURETY_ORACLE_REGISTRATION_FEE", "1"),
        "oracle_quorum": os.getenv("SURETY_ORACLE_QUORUM", "3"),
        "oracle_index_count": os.getenv("SURETY_ORACLE_INDEX_COUNT", "3"),
        "oracle_index_range": os.getenv("SURETY_ORACLE_INDEX_RANGE", "10"),
        "index_seed": os.getenv("SURETY_INDEX_SEED", "flight-surety"),
        "lock_timeout_seconds": os.getenv("SURETY_LOCK_TIMEOUT_SECONDS", "5.0"),
        "log_level": os.getenv("SURETY_LOG_LEVEL", "INFO"),
        "publish_events": _env_flag("SURETY_PUBLISH_EVENTS", "false"),
        "event_channel_prefix": os.getenv("SURETY_EVENT_CHANNEL_PREFIX", "flight_surety:events"),
    }

    try:
        return SuretyConfig(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}") from e


# Global configuration instance
_config: Optional[SuretyConfig] = None


def get_config() -> SuretyConfig:
    """
    Get the global configuration instance, loading it if necessary.

    Returns:
        SuretyConfig: The global configuration object
    """
    global _config
    if _config is None:
        _config = load_config()
        logger.debug(f"Configuration loaded: {_config.model_dump()}")
    return _config


def reset_config() -> None:
    """Forget the cached configuration so the next get_config() reloads it."""
    global _config
    _config = None
