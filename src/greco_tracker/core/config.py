"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from greco_tracker.core.exceptions import ConfigError
from greco_tracker.core.models import QualityPolicyName

ENV_PREFIX = "GRECO_"


class DataConfig(BaseModel):
    """Locations of the offline-built data files.

    Relative paths are resolved under `data_dir`.
    """

    model_config = ConfigDict(frozen=True)

    data_dir: str = "./data"
    index_file: str = "indexes/date-range-index.json"
    prices_dir: str = "prices"
    basket_file: str = "metadata/basket-weights.json"
    exchange_rates_file: str = "exchange-rates.json"

    def resolve(self, name: str) -> Path:
        p = Path(name)
        if p.is_absolute():
            return p
        return Path(self.data_dir) / p

    @property
    def index_path(self) -> Path:
        return self.resolve(self.index_file)

    @property
    def prices_path(self) -> Path:
        return self.resolve(self.prices_dir)

    @property
    def basket_path(self) -> Path:
        return self.resolve(self.basket_file)

    @property
    def exchange_rates_path(self) -> Path:
        return self.resolve(self.exchange_rates_file)


class IndexConfig(BaseModel):
    """Date-range index cache configuration."""

    model_config = ConfigDict(frozen=True)

    cache_ttl_seconds: float = 60.0

    @field_validator("cache_ttl_seconds")
    @classmethod
    def ttl_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("cache_ttl_seconds must be > 0")
        return v


class QueryConfig(BaseModel):
    """Query service defaults."""

    model_config = ConfigDict(frozen=True)

    default_lookback_years: int = 5
    recent_count: int = 12

    @field_validator("default_lookback_years", "recent_count")
    @classmethod
    def positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v


class ValuationConfig(BaseModel):
    """Basket valuation thresholds and the nearest-price buffer window."""

    model_config = ConfigDict(frozen=True)

    reject_threshold: float = 0.80
    low_quality_threshold: float = 0.90
    high_quality_threshold: float = 0.95
    buffer_before_days: int = 90
    buffer_after_days: int = 30
    quality_policy: QualityPolicyName = QualityPolicyName.COMPLETENESS

    @field_validator("reject_threshold", "low_quality_threshold", "high_quality_threshold")
    @classmethod
    def fraction(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("thresholds are fractions and must be within [0, 1]")
        return v

    @field_validator("buffer_before_days", "buffer_after_days")
    @classmethod
    def buffer_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("buffer days must be >= 0")
        return v

    @model_validator(mode="after")
    def thresholds_ordered(self) -> ValuationConfig:
        if self.reject_threshold > self.high_quality_threshold:
            raise ValueError("reject_threshold must be <= high_quality_threshold")
        return self


class UpstreamSourceConfig(BaseModel):
    """Connection and rate-limit settings for one upstream price API."""

    model_config = ConfigDict(frozen=True)

    name: str
    base_url: str
    max_requests_per_minute: int = 60
    timeout_seconds: float = 10.0
    api_key: str | None = None

    @field_validator("max_requests_per_minute")
    @classmethod
    def rate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_requests_per_minute must be >= 1")
        return v

    @field_validator("base_url")
    @classmethod
    def url_must_be_http(cls, v: str) -> str:
        if not v.startswith(("https://", "http://")):
            raise ValueError("base_url must be an http(s) URL")
        return v.rstrip("/")


class RetryPolicy(BaseModel):
    """Exponential backoff settings for upstream calls."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    multiplier: float = 2.0
    attempt_timeout: float | None = None

    @field_validator("max_retries")
    @classmethod
    def retries_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_retries must be >= 0")
        return v

    @model_validator(mode="after")
    def delays_consistent(self) -> RetryPolicy:
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        return self


def _default_sources() -> dict[str, UpstreamSourceConfig]:
    return {
        "fred": UpstreamSourceConfig(
            name="fred",
            base_url="https://api.stlouisfed.org/fred",
            max_requests_per_minute=120,
            timeout_seconds=10.0,
        ),
        "worldbank": UpstreamSourceConfig(
            name="worldbank",
            base_url="https://api.worldbank.org/v2",
            max_requests_per_minute=300,
            timeout_seconds=10.0,
        ),
    }


class GrecoConfig(BaseModel):
    """Root configuration for the entire greco-tracker system."""

    model_config = ConfigDict(frozen=True)

    data: DataConfig = DataConfig()
    index: IndexConfig = IndexConfig()
    query: QueryConfig = QueryConfig()
    valuation: ValuationConfig = ValuationConfig()
    sources: dict[str, UpstreamSourceConfig] = _default_sources()
    retry: RetryPolicy = RetryPolicy()

    @field_validator("sources", mode="before")
    @classmethod
    def source_names_from_keys(cls, v: object) -> object:
        """Allow `sources: {fred: {base_url: ...}}` without repeating the name."""
        if isinstance(v, dict):
            defaults = _default_sources()
            out = {}
            for key, value in v.items():
                if isinstance(value, dict):
                    base = (
                        defaults[key].model_dump() if key in defaults else {}
                    )
                    value = {**base, "name": key, **value}
                out[key] = value
            return out
        return v


def load_config(config_path: str | None = None) -> GrecoConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (GRECO_DATA__DATA_DIR, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        GRECO_INDEX__CACHE_TTL_SECONDS=30  ->  index.cache_ttl_seconds = 30
    """
    try:
        yaml_path = _resolve_config_path(config_path)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_env_vars(base)
        return GrecoConfig.model_validate(merged)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_var = f"{ENV_PREFIX}CONFIG"
    env_path = os.environ.get(env_var)
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from {env_var} not found: {env_path}",
                context={"field": env_var, "value": env_path},
            )
        return p

    default = Path("greco.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _merge_env_vars(base: dict) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels.
    Values are auto-cast: "true"/"false" -> bool, numeric strings -> int/float.
    """
    result = dict(base)

    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        remainder = key[len(ENV_PREFIX) :]
        parts = [p.lower() for p in remainder.split("__")]

        # Skip the CONFIG env var itself
        if parts == ["config"]:
            continue

        cast_value = _auto_cast(value)

        target = result
        for part in parts[:-1]:
            existing = target.get(part)
            if not isinstance(existing, dict):
                target[part] = {}
            else:
                target[part] = dict(existing)
            target = target[part]
        target[parts[-1]] = cast_value

    return result


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
