"""Unit tests for configuration management."""

import tempfile
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from p2p_scanner.models.config import ConfigManager, ScannerConfig
from p2p_scanner.models.data_models import SourceMode


def test_scanner_config_defaults():
    """Test that ScannerConfig has correct default values."""
    config = ScannerConfig()

    assert config.okx_base_urls == ["https://www.okx.com", "https://okx.com"]
    assert config.p2parmy_base_url == "https://p2p.army/v1/api"
    assert config.p2parmy_api_key is None
    assert config.source_mode is SourceMode.AUTO

    # Cache and rate limiting
    assert config.cache_ttl == 10.0
    assert config.stale_cache_multiplier == 3.0
    assert config.min_fetch_interval == 3.0

    # Circuit breaker
    assert config.breaker_failure_threshold == 5
    assert config.breaker_cooldown == 60.0

    # Request defaults
    assert config.default_fiat == "UAH"
    assert config.default_crypto == "USDT"
    assert config.default_limit == 10
    assert config.max_limit == 100


def test_base_urls_accept_comma_separated_string():
    """Test mirror list parsing from a single string."""
    config = ScannerConfig(okx_base_urls="https://a.test/, https://b.test,,")
    assert config.okx_base_urls == ["https://a.test", "https://b.test"]


def test_url_validation():
    """Test that base URLs must be http(s)."""
    with pytest.raises(ValidationError, match="must start with http"):
        ScannerConfig(okx_base_urls=["ftp://invalid.test"])

    with pytest.raises(ValidationError, match="must start with http"):
        ScannerConfig(p2parmy_base_url="p2p.army")

    with pytest.raises(ValidationError, match="at least one"):
        ScannerConfig(okx_base_urls="")


def test_positive_value_validators():
    """Test validators reject non-positive timing values."""
    with pytest.raises(ValidationError, match="must be positive"):
        ScannerConfig(cache_ttl=0)

    with pytest.raises(ValidationError, match="must be positive"):
        ScannerConfig(breaker_failure_threshold=0)

    with pytest.raises(ValidationError, match="must be positive"):
        ScannerConfig(request_timeout=-1.0)


@pytest.mark.parametrize("raw, expected", [
    ("auto", SourceMode.AUTO),
    ("primary-only", SourceMode.PRIMARY_ONLY),
    ("secondary-only", SourceMode.SECONDARY_ONLY),
    ("okx", SourceMode.PRIMARY_ONLY),
    ("P2PARMY", SourceMode.SECONDARY_ONLY),
])
def test_source_mode_aliases(raw, expected):
    assert ScannerConfig(source_mode=raw).source_mode is expected


def test_unknown_source_mode_rejected():
    with pytest.raises(ValidationError):
        ScannerConfig(source_mode="binance")


def test_blank_api_key_means_not_configured():
    assert ScannerConfig(p2parmy_api_key="   ").secondary_configured is False
    assert ScannerConfig(p2parmy_api_key="k").secondary_configured is True


def test_config_from_env():
    """Test loading configuration from environment variables."""
    environ = {
        "OKX_BASE_URLS": "https://m1.test,https://m2.test",
        "P2P_ARMY_API_KEY": "secret",
        "P2P_SOURCE": "okx",
        "SCANNER_LOG_LEVEL": "DEBUG",
        "SCANNER_CACHE_TTL": "20",
        "SCANNER_MIN_FETCH_INTERVAL": "5",
        "SCANNER_BREAKER_THRESHOLD": "3",
        "SCANNER_BREAKER_COOLDOWN": "30",
        "UNRELATED": "ignored",
    }

    config = ScannerConfig.from_env(environ)

    assert config.okx_base_urls == ["https://m1.test", "https://m2.test"]
    assert config.p2parmy_api_key == "secret"
    assert config.source_mode is SourceMode.PRIMARY_ONLY
    assert config.log_level == "DEBUG"
    assert config.cache_ttl == 20.0
    assert config.min_fetch_interval == 5.0
    assert config.breaker_failure_threshold == 3
    assert config.breaker_cooldown == 30.0


def test_config_manager_loads_yaml():
    """Test ConfigManager loads configuration from YAML file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_file = Path(tmpdir) / "test_config.yaml"

        with open(config_file, 'w') as f:
            yaml.dump({
                "okx_base_urls": ["https://yaml.test"],
                "cache_ttl": 15.0,
                "default_fiat": "EUR",
            }, f)

        config = ConfigManager(config_file).load_config(environ={})

        assert config.okx_base_urls == ["https://yaml.test"]
        assert config.cache_ttl == 15.0
        assert config.default_fiat == "EUR"


def test_config_manager_precedence():
    """Test CLI > ENV > YAML precedence."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_file = Path(tmpdir) / "test_config.yaml"

        with open(config_file, 'w') as f:
            yaml.dump({"cache_ttl": 15.0, "min_fetch_interval": 4.0, "log_level": "WARNING"}, f)

        environ = {"SCANNER_CACHE_TTL": "25", "SCANNER_LOG_LEVEL": "DEBUG"}
        cli_overrides = {"log_level": "ERROR", "source_mode": None}

        config = ConfigManager(config_file).load_config(cli_overrides, environ=environ)

        # CLI overrides everything; None means "flag not given"
        assert config.log_level == "ERROR"
        assert config.source_mode is SourceMode.AUTO
        # ENV overrides YAML
        assert config.cache_ttl == 25.0
        # YAML value preserved
        assert config.min_fetch_interval == 4.0


def test_config_manager_missing_yaml_uses_defaults():
    """Test that missing YAML file uses default configuration."""
    with tempfile.TemporaryDirectory() as tmpdir:
        manager = ConfigManager(Path(tmpdir) / "nonexistent.yaml")
        config = manager.load_config(environ={})

        assert config.cache_ttl == 10.0
        assert config.breaker_failure_threshold == 5


def test_config_manager_property_caches_config():
    """Test that config property returns the loaded configuration."""
    with tempfile.TemporaryDirectory() as tmpdir:
        manager = ConfigManager(Path(tmpdir) / "nonexistent.yaml")
        loaded = manager.load_config(environ={})

        assert manager.config is loaded


def test_shipped_config_file_is_valid():
    """Test that the repository's config/config.yaml loads."""
    config_file = Path(__file__).resolve().parents[2] / "config" / "config.yaml"
    config = ConfigManager(config_file).load_config(environ={})

    assert config.p2parmy_api_key is None
    assert config.default_limit == 10
