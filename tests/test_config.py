"""
Tests for the ledger configuration loader and the Valkey connection settings.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from flight_surety.events.config import ValkeyConfig
from flight_surety.utils.config import SuretyConfig, get_config, load_config, reset_config


SURETY_VARS = [
    "SURETY_AIRLINE_FUNDING_MINIMUM",
    "SURETY_CONSENSUS_AIRLINE_THRESHOLD",
    "SURETY_INSURANCE_PREMIUM_CAP",
    "SURETY_PAYOUT_MULTIPLIER",
    "SURETY_ORACLE_REGISTRATION_FEE",
    "SURETY_ORACLE_QUORUM",
    "SURETY_ORACLE_INDEX_COUNT",
    "SURETY_ORACLE_INDEX_RANGE",
    "SURETY_INDEX_SEED",
    "SURETY_LOCK_TIMEOUT_SECONDS",
    "SURETY_LOG_LEVEL",
    "SURETY_PUBLISH_EVENTS",
    "SURETY_EVENT_CHANNEL_PREFIX",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Clear ledger variables and point .env lookups at an empty directory."""
    for name in SURETY_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield monkeypatch
    reset_config()


class TestSuretyConfig:
    """Test configuration model validation."""

    def test_defaults(self):
        config = SuretyConfig()
        assert config.airline_funding_minimum == Decimal("10")
        assert config.consensus_airline_threshold == 4
        assert config.insurance_premium_cap == Decimal("1")
        assert config.payout_multiplier == Decimal("1.5")
        assert config.oracle_registration_fee == Decimal("1")
        assert config.oracle_quorum == 3
        assert config.oracle_index_count == 3
        assert config.oracle_index_range == 10
        assert config.log_level == "INFO"
        assert config.publish_events is False

    def test_log_level_is_uppercased(self):
        assert SuretyConfig(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            SuretyConfig(log_level="LOUD")

    def test_index_range_must_exceed_index_count(self):
        with pytest.raises(ValidationError):
            SuretyConfig(oracle_index_count=3, oracle_index_range=3)

    def test_positive_amounts(self):
        with pytest.raises(ValidationError):
            SuretyConfig(airline_funding_minimum=Decimal("0"))
        with pytest.raises(ValidationError):
            SuretyConfig(oracle_quorum=0)

    def test_config_is_frozen(self):
        config = SuretyConfig()
        with pytest.raises(ValidationError):
            config.oracle_quorum = 5


class TestLoadConfig:
    """Test environment loading."""

    def test_load_defaults(self, clean_env):
        config = load_config()
        assert config == SuretyConfig()

    def test_load_from_environment(self, clean_env):
        clean_env.setenv("SURETY_ORACLE_QUORUM", "5")
        clean_env.setenv("SURETY_INSURANCE_PREMIUM_CAP", "2.5")
        clean_env.setenv("SURETY_PUBLISH_EVENTS", "yes")
        config = load_config()
        assert config.oracle_quorum == 5
        assert config.insurance_premium_cap == Decimal("2.5")
        assert config.publish_events is True

    def test_load_from_env_file(self, clean_env, tmp_path):
        # load_dotenv writes os.environ directly; register the variable so it is removed afterwards
        clean_env.setenv("SURETY_INDEX_SEED", "placeholder")
        clean_env.delenv("SURETY_INDEX_SEED")

        env_file = tmp_path / "surety.env"
        env_file.write_text("SURETY_INDEX_SEED=from-file\n")
        config = load_config(str(env_file))
        assert config.index_seed == "from-file"

    def test_invalid_environment_raises_value_error(self, clean_env):
        clean_env.setenv("SURETY_LOG_LEVEL", "LOUD")
        with pytest.raises(ValueError, match="Configuration validation failed"):
            load_config()

    def test_get_config_is_cached(self, clean_env):
        first = get_config()
        clean_env.setenv("SURETY_ORACLE_QUORUM", "7")
        assert get_config() is first

        reset_config()
        assert get_config().oracle_quorum == 7


class TestValkeyConfig:
    """Test Valkey connection settings."""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("VALKEY_HOST", "cache.internal")
        monkeypatch.setenv("VALKEY_PORT", "6380")
        monkeypatch.setenv("VALKEY_PASSWORD", "secret")
        config = ValkeyConfig.from_env()
        assert config.host == "cache.internal"
        assert config.port == 6380
        assert config.password == "secret"

    def test_str_hides_password(self):
        config = ValkeyConfig(password="secret")
        assert "secret" not in str(config)
        assert "***" in str(config)

    def test_pool_kwargs(self):
        kwargs = ValkeyConfig(database=2).to_connection_pool_kwargs()
        assert kwargs["db"] == 2
        assert kwargs["decode_responses"] is True
        assert "password" not in kwargs
        assert ValkeyConfig(password="secret").to_connection_pool_kwargs()["password"] == "secret"
