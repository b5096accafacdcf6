"""Tests for greco_tracker.core.config."""

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from greco_tracker.core.config import (
    DataConfig,
    GrecoConfig,
    IndexConfig,
    RetryPolicy,
    UpstreamSourceConfig,
    ValuationConfig,
    _auto_cast,
    _merge_env_vars,
    load_config,
)
from greco_tracker.core.exceptions import ConfigError
from greco_tracker.core.models import QualityPolicyName


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No GRECO_* variables and no ./greco.yml in the working directory."""
    for key in list(os.environ):
        if key.startswith("GRECO_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


class TestDataConfig:
    def test_relative_paths_resolve_under_data_dir(self):
        c = DataConfig(data_dir="/srv/greco")
        assert c.index_path == Path("/srv/greco/indexes/date-range-index.json")
        assert c.prices_path == Path("/srv/greco/prices")
        assert c.basket_path == Path("/srv/greco/metadata/basket-weights.json")

    def test_absolute_path_kept(self):
        c = DataConfig(data_dir="/srv/greco", exchange_rates_file="/etc/rates.json")
        assert c.exchange_rates_path == Path("/etc/rates.json")


class TestValuationConfig:
    def test_defaults(self):
        c = ValuationConfig()
        assert c.reject_threshold == 0.80
        assert c.high_quality_threshold == 0.95
        assert c.buffer_before_days == 90
        assert c.buffer_after_days == 30
        assert c.quality_policy == QualityPolicyName.COMPLETENESS

    def test_threshold_out_of_range(self):
        with pytest.raises(ValidationError, match="within"):
            ValuationConfig(reject_threshold=1.5)

    def test_reject_above_high_rejected(self):
        with pytest.raises(ValidationError, match="reject_threshold"):
            ValuationConfig(reject_threshold=0.99, high_quality_threshold=0.9)

    def test_negative_buffer_rejected(self):
        with pytest.raises(ValidationError):
            ValuationConfig(buffer_before_days=-1)


class TestIndexConfig:
    def test_ttl_must_be_positive(self):
        with pytest.raises(ValidationError):
            IndexConfig(cache_ttl_seconds=0)


class TestUpstreamSourceConfig:
    def test_trailing_slash_stripped(self):
        c = UpstreamSourceConfig(name="fred", base_url="https://api.example.com/fred/")
        assert c.base_url == "https://api.example.com/fred"

    def test_non_http_url_rejected(self):
        with pytest.raises(ValidationError, match="http"):
            UpstreamSourceConfig(name="x", base_url="ftp://example.com")

    def test_rate_must_be_positive(self):
        with pytest.raises(ValidationError):
            UpstreamSourceConfig(name="x", base_url="https://x", max_requests_per_minute=0)


class TestRetryPolicy:
    def test_defaults(self):
        p = RetryPolicy()
        assert (p.max_retries, p.initial_delay, p.max_delay, p.multiplier) == (3, 1.0, 10.0, 2.0)
        assert p.attempt_timeout is None

    def test_multiplier_below_one_rejected(self):
        with pytest.raises(ValidationError, match="multiplier"):
            RetryPolicy(multiplier=0.5)


class TestGrecoConfig:
    def test_default_sources(self):
        c = GrecoConfig()
        assert c.sources["fred"].max_requests_per_minute == 120
        assert c.sources["worldbank"].max_requests_per_minute == 300

    def test_source_name_taken_from_key(self):
        c = GrecoConfig.model_validate(
            {"sources": {"custom": {"base_url": "https://prices.example.com"}}}
        )
        assert c.sources["custom"].name == "custom"

    def test_partial_override_keeps_source_defaults(self):
        c = GrecoConfig.model_validate({"sources": {"fred": {"api_key": "secret"}}})
        assert c.sources["fred"].api_key == "secret"
        assert c.sources["fred"].base_url == "https://api.stlouisfed.org/fred"

    def test_frozen(self):
        c = GrecoConfig()
        with pytest.raises(ValidationError):
            c.index = IndexConfig(cache_ttl_seconds=5)


class TestLoadConfig:
    def test_defaults_without_file(self, clean_env):
        config = load_config()
        assert config.data.data_dir == "./data"
        assert config.index.cache_ttl_seconds == 60.0

    def test_yaml_loading(self, clean_env, tmp_path):
        cfg = tmp_path / "custom.yml"
        cfg.write_text("data:\n  data_dir: /srv/greco\nquery:\n  recent_count: 24\n")
        config = load_config(config_path=str(cfg))
        assert config.data.data_dir == "/srv/greco"
        assert config.query.recent_count == 24

    def test_default_file_in_cwd(self, clean_env, tmp_path):
        (tmp_path / "greco.yml").write_text("index:\n  cache_ttl_seconds: 15\n")
        assert load_config().index.cache_ttl_seconds == 15

    def test_config_env_var(self, clean_env, tmp_path, monkeypatch):
        cfg = tmp_path / "from-env.yml"
        cfg.write_text("query:\n  default_lookback_years: 10\n")
        monkeypatch.setenv("GRECO_CONFIG", str(cfg))
        assert load_config().query.default_lookback_years == 10

    def test_env_overrides_yaml(self, clean_env, tmp_path, monkeypatch):
        cfg = tmp_path / "custom.yml"
        cfg.write_text("valuation:\n  buffer_before_days: 60\n")
        monkeypatch.setenv("GRECO_VALUATION__BUFFER_BEFORE_DAYS", "45")
        config = load_config(config_path=str(cfg))
        assert config.valuation.buffer_before_days == 45

    def test_nested_env_vars(self, clean_env, monkeypatch):
        monkeypatch.setenv("GRECO_SOURCES__FRED__API_KEY", "abc123")
        monkeypatch.setenv("GRECO_VALUATION__QUALITY_POLICY", "constituent")
        config = load_config()
        assert config.sources["fred"].api_key == "abc123"
        assert config.valuation.quality_policy == QualityPolicyName.CONSTITUENT

    def test_missing_config_file_raises(self, clean_env):
        with pytest.raises(ConfigError, match="not found"):
            load_config(config_path="/nonexistent/greco.yml")

    def test_missing_env_config_file_raises(self, clean_env, monkeypatch):
        monkeypatch.setenv("GRECO_CONFIG", "/nonexistent/greco.yml")
        with pytest.raises(ConfigError, match="GRECO_CONFIG"):
            load_config()

    def test_non_mapping_yaml_raises(self, clean_env, tmp_path):
        cfg = tmp_path / "list.yml"
        cfg.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(config_path=str(cfg))

    def test_invalid_value_wrapped_in_config_error(self, clean_env, monkeypatch):
        monkeypatch.setenv("GRECO_INDEX__CACHE_TTL_SECONDS", "-5")
        with pytest.raises(ConfigError):
            load_config()


class TestAutoCast:
    def test_true(self):
        assert _auto_cast("true") is True
        assert _auto_cast("TRUE") is True

    def test_false(self):
        assert _auto_cast("false") is False

    def test_int(self):
        assert _auto_cast("42") == 42

    def test_float(self):
        assert _auto_cast("0.85") == 0.85

    def test_string(self):
        assert _auto_cast("hello") == "hello"


class TestMergeEnvVars:
    def test_simple_override(self, clean_env, monkeypatch):
        monkeypatch.setenv("GRECO_QUERY__RECENT_COUNT", "6")
        result = _merge_env_vars({"query": {"recent_count": 12}})
        assert result["query"]["recent_count"] == 6

    def test_creates_nested_structure(self, clean_env, monkeypatch):
        monkeypatch.setenv("GRECO_SOURCES__FRED__TIMEOUT_SECONDS", "3")
        result = _merge_env_vars({})
        assert result["sources"]["fred"]["timeout_seconds"] == 3

    def test_skips_config_key(self, clean_env, monkeypatch):
        monkeypatch.setenv("GRECO_CONFIG", "/some/path")
        result = _merge_env_vars({})
        assert "config" not in result

    def test_does_not_mutate_base(self, clean_env, monkeypatch):
        monkeypatch.setenv("GRECO_QUERY__RECENT_COUNT", "6")
        base = {"query": {"recent_count": 12}}
        _merge_env_vars(base)
        assert base["query"]["recent_count"] == 12
