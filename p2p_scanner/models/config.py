"""Configuration management for the P2P quote scanner."""

import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from p2p_scanner.models.data_models import SourceMode


# Legacy P2P_SOURCE values map onto the pinned modes
_SOURCE_MODE_ALIASES = {
    "okx": SourceMode.PRIMARY_ONLY,
    "p2parmy": SourceMode.SECONDARY_ONLY,
}


def _validate_base_url(v: str) -> str:
    if not v.startswith(('http://', 'https://')):
        raise ValueError(f"URL must start with http:// or https://, got: {v}")
    return v.rstrip('/')


class ScannerConfig(BaseModel):
    """Scanner configuration. Static for the process lifetime."""

    # Upstream providers
    okx_base_urls: List[str] = Field(
        default=["https://www.okx.com", "https://okx.com"],
        description="Primary provider mirrors, tried in order"
    )
    p2parmy_base_url: str = Field(
        default="https://p2p.army/v1/api",
        description="Secondary provider base URL"
    )
    p2parmy_api_key: Optional[str] = Field(
        default=None,
        description="Secondary provider credential; absence disables the source"
    )
    source_mode: SourceMode = Field(default=SourceMode.AUTO, description="Provider priority mode")
    okx_amount: str = Field(default="1000", description="Fiat amount sent to the primary provider")

    # Cache and rate limiting
    cache_ttl: float = Field(default=10.0, description="Fresh cache window in seconds")
    stale_cache_multiplier: float = Field(
        default=3.0,
        description="Rate-limited requests may be served cache up to ttl * multiplier old"
    )
    min_fetch_interval: float = Field(default=3.0, description="Minimum seconds between network fetches per key")

    # Circuit breaker
    breaker_failure_threshold: int = Field(default=5, description="Consecutive failures before opening circuit")
    breaker_cooldown: float = Field(default=60.0, description="Seconds the circuit stays open")

    # HTTP
    request_timeout: float = Field(default=10.0, description="Bound on one upstream attempt in seconds")
    connect_timeout: float = Field(default=3.0, description="HTTP connect timeout in seconds")

    # Request defaults
    default_fiat: str = Field(default="UAH")
    default_crypto: str = Field(default="USDT")
    default_limit: int = Field(default=10)
    max_limit: int = Field(default=100)

    # HTTP server
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)

    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator('okx_base_urls', mode='before')
    @classmethod
    def split_base_urls(cls, v):
        """Accept a comma-separated string as well as a list."""
        if isinstance(v, str):
            v = [part.strip() for part in v.split(',')]
        return [part for part in v if part]

    @field_validator('okx_base_urls')
    @classmethod
    def validate_base_urls(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("at least one primary provider URL is required")
        return [_validate_base_url(url) for url in v]

    @field_validator('p2parmy_base_url')
    @classmethod
    def validate_p2parmy_url(cls, v: str) -> str:
        return _validate_base_url(v)

    @field_validator('p2parmy_api_key', mode='before')
    @classmethod
    def blank_key_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('source_mode', mode='before')
    @classmethod
    def parse_source_mode(cls, v):
        if isinstance(v, str):
            lowered = v.strip().lower()
            return _SOURCE_MODE_ALIASES.get(lowered, lowered)
        return v

    @field_validator('cache_ttl', 'min_fetch_interval', 'breaker_cooldown', 'request_timeout')
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"value must be positive, got: {v}")
        return v

    @field_validator('breaker_failure_threshold', 'default_limit', 'max_limit')
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"value must be positive, got: {v}")
        return v

    @property
    def secondary_configured(self) -> bool:
        return self.p2parmy_api_key is not None

    @classmethod
    def env_overrides(cls, environ: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Collect raw field values from environment variables."""
        environ = os.environ if environ is None else environ

        env_mappings = {
            "OKX_BASE_URLS": "okx_base_urls",
            "P2P_ARMY_BASE_URL": "p2parmy_base_url",
            "P2P_ARMY_API_KEY": "p2parmy_api_key",
            "P2P_SOURCE": "source_mode",
            "SCANNER_LOG_LEVEL": "log_level",
            "SCANNER_CACHE_TTL": "cache_ttl",
            "SCANNER_MIN_FETCH_INTERVAL": "min_fetch_interval",
            "SCANNER_REQUEST_TIMEOUT": "request_timeout",
            "SCANNER_BREAKER_THRESHOLD": "breaker_failure_threshold",
            "SCANNER_BREAKER_COOLDOWN": "breaker_cooldown",
        }

        return {
            field_name: environ[env_var]
            for env_var, field_name in env_mappings.items()
            if env_var in environ
        }

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "ScannerConfig":
        """Create configuration from defaults plus environment variables."""
        return cls(**cls.env_overrides(environ))


class ConfigManager:
    """Manages configuration loading with override precedence."""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = config_file or Path("config/config.yaml")
        self._config: Optional[ScannerConfig] = None

    def load_config(
        self,
        cli_overrides: Optional[Dict] = None,
        environ: Optional[Dict[str, str]] = None
    ) -> ScannerConfig:
        """
        Load configuration with override precedence: CLI > ENV > YAML > defaults.

        Args:
            cli_overrides: Optional dictionary of CLI flag overrides
            environ: Environment mapping (defaults to os.environ)

        Returns:
            Fully merged ScannerConfig instance

        Raises:
            pydantic.ValidationError: If configuration validation fails
        """
        config_dict: Dict = {}

        if self.config_file.exists():
            with open(self.config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
                if yaml_config:
                    config_dict.update(yaml_config)

        config_dict.update(ScannerConfig.env_overrides(environ))

        if cli_overrides:
            config_dict.update({k: v for k, v in cli_overrides.items() if v is not None})

        self._config = ScannerConfig(**config_dict)
        return self._config

    @property
    def config(self) -> ScannerConfig:
        """Get the loaded configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config
