"""Tests for QueryConfig, QueryPresets, normalize_pagination and JwtConfig."""

from datetime import timedelta

import pytest
from school_query.config import (
    JwtConfig,
    MixedCombinatorPolicy,
    QueryConfig,
    QueryPresets,
    normalize_pagination,
)

SECRET = "s" * 32


class TestNormalizePagination:
    """Tests for the pagination normalizer."""

    @pytest.mark.parametrize("page", [0, -1, -100])
    def test_non_positive_page_becomes_one(self, page):
        assert normalize_pagination(page, 20) == (1, 20)

    @pytest.mark.parametrize("page_size", [0, -5])
    def test_non_positive_page_size_clamps_to_one(self, page_size):
        assert normalize_pagination(1, page_size, max_page_size=100) == (1, 1)

    def test_page_size_above_max_clamps_to_max(self):
        assert normalize_pagination(1, 500, max_page_size=100) == (1, 100)

    def test_values_in_range_untouched(self):
        assert normalize_pagination(3, 25, max_page_size=100) == (3, 25)

    def test_numeric_strings(self):
        assert normalize_pagination("2", "15") == (2, 15)

    def test_non_numeric_input_is_clamped_not_rejected(self):
        assert normalize_pagination("abc", "xyz") == (1, 20)

    def test_none_uses_defaults(self):
        assert normalize_pagination(None, None, default_page_size=10) == (1, 10)

    def test_float_strings_truncate(self):
        assert normalize_pagination("2.9", "10.5") == (2, 10)

    def test_bad_max_page_size_falls_back_to_one(self):
        assert normalize_pagination(1, 50, max_page_size=0) == (1, 1)


class TestQueryConfig:
    """Tests for QueryConfig class."""

    def test_default_config(self):
        config = QueryConfig()

        assert config.max_page_size == 100
        assert config.default_page_size == 20
        assert config.default_page == 1
        assert config.min_page_size == 1
        assert config.strict_mode is True
        assert config.mixed_combinators is MixedCombinatorPolicy.REJECT
        assert config.compose_simple_filter is False

    def test_policy_accepts_plain_string(self):
        config = QueryConfig(mixed_combinators="grouped")
        assert config.mixed_combinators is MixedCombinatorPolicy.GROUPED

    def test_invalid_policy(self):
        with pytest.raises(ValueError):
            QueryConfig(mixed_combinators="sometimes")

    def test_invalid_max_page_size(self):
        with pytest.raises(ValueError, match="max_page_size must be >= 1"):
            QueryConfig(max_page_size=0)

    def test_invalid_default_page_size(self):
        with pytest.raises(ValueError, match="default_page_size must be >= 1"):
            QueryConfig(default_page_size=0)

    def test_default_exceeds_max(self):
        with pytest.raises(ValueError, match="default_page_size cannot exceed max_page_size"):
            QueryConfig(max_page_size=10, default_page_size=20)

    def test_invalid_min_page_size(self):
        with pytest.raises(ValueError, match="min_page_size must be >= 1"):
            QueryConfig(min_page_size=0)

    def test_min_exceeds_max(self):
        with pytest.raises(ValueError, match="min_page_size cannot exceed max_page_size"):
            QueryConfig(max_page_size=10, default_page_size=5, min_page_size=20)

    def test_invalid_default_page(self):
        with pytest.raises(ValueError, match="default_page must be >= 1"):
            QueryConfig(default_page=0)

    def test_normalize_uses_config_bounds(self):
        config = QueryConfig(max_page_size=50, default_page_size=10, min_page_size=5)
        assert config.normalize(1, 200) == (1, 50)
        assert config.normalize(1, 2) == (1, 5)
        assert config.normalize(1, None) == (1, 10)

    def test_normalize_non_numeric_page_uses_default_page(self):
        config = QueryConfig(default_page=3)
        assert config.normalize("first", 10) == (3, 10)


class TestQueryPresets:
    """Tests for QueryPresets class."""

    def test_default_preset(self):
        config = QueryPresets.default()
        assert config.strict_mode is True
        assert config.default_page_size == 20

    def test_lenient_preset(self):
        assert QueryPresets.lenient().strict_mode is False

    def test_legacy_preset(self):
        config = QueryPresets.legacy()
        assert config.strict_mode is False
        assert config.mixed_combinators is MixedCombinatorPolicy.GROUPED

    def test_high_volume_preset(self):
        config = QueryPresets.high_volume(max_page_size=1000, default_page_size=200)
        assert config.max_page_size == 1000
        assert config.default_page_size == 200

    def test_high_volume_preset_defaults(self):
        config = QueryPresets.high_volume()
        assert config.max_page_size == 500
        assert config.default_page_size == 100


class TestJwtConfig:
    """Tests for eager JWT settings validation."""

    def test_valid_config(self):
        config = JwtConfig(secret_key=SECRET, issuer="AudiSoft", audience="school-app")
        assert config.expiry == timedelta(minutes=60)
        assert config.refresh_token_expiry == timedelta(days=7)
        assert config.clock_skew == timedelta(minutes=5)

    def test_missing_secret(self):
        with pytest.raises(ValueError, match="secret_key is required"):
            JwtConfig(secret_key="  ", issuer="i", audience="a")

    def test_short_secret(self):
        with pytest.raises(ValueError, match="at least 32 characters"):
            JwtConfig(secret_key="s" * 31, issuer="i", audience="a")

    def test_missing_issuer(self):
        with pytest.raises(ValueError, match="issuer is required"):
            JwtConfig(secret_key=SECRET, issuer="", audience="a")

    def test_missing_audience(self):
        with pytest.raises(ValueError, match="audience is required"):
            JwtConfig(secret_key=SECRET, issuer="i", audience="")

    def test_non_positive_expiry(self):
        with pytest.raises(ValueError, match="expiry_minutes must be greater than 0"):
            JwtConfig(secret_key=SECRET, issuer="i", audience="a", expiry_minutes=0)

    def test_non_positive_refresh_expiry(self):
        with pytest.raises(ValueError, match="refresh_token_expiry_days must be greater than 0"):
            JwtConfig(secret_key=SECRET, issuer="i", audience="a", refresh_token_expiry_days=0)

    def test_negative_clock_skew(self):
        with pytest.raises(ValueError, match="clock_skew_minutes"):
            JwtConfig(secret_key=SECRET, issuer="i", audience="a", clock_skew_minutes=-1)

    def test_zero_clock_skew_allowed(self):
        config = JwtConfig(secret_key=SECRET, issuer="i", audience="a", clock_skew_minutes=0)
        assert config.clock_skew == timedelta(0)

    def test_from_env(self):
        env = {
            "JWT_SECRET_KEY": SECRET,
            "JWT_ISSUER": "AudiSoft",
            "JWT_AUDIENCE": "school-app",
            "JWT_EXPIRY_MINUTES": "30",
        }
        config = JwtConfig.from_env(environ=env)
        assert config.issuer == "AudiSoft"
        assert config.expiry_minutes == 30
        assert config.refresh_token_expiry_days == 7

    def test_from_env_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("AUTH_SECRET_KEY", SECRET)
        monkeypatch.setenv("AUTH_ISSUER", "iss")
        monkeypatch.setenv("AUTH_AUDIENCE", "aud")
        config = JwtConfig.from_env(prefix="AUTH_")
        assert config.audience == "aud"

    def test_from_env_non_integer(self):
        env = {
            "JWT_SECRET_KEY": SECRET,
            "JWT_ISSUER": "i",
            "JWT_AUDIENCE": "a",
            "JWT_EXPIRY_MINUTES": "soon",
        }
        with pytest.raises(ValueError, match="JWT_EXPIRY_MINUTES must be an integer"):
            JwtConfig.from_env(environ=env)

    def test_from_env_missing_secret(self):
        with pytest.raises(ValueError, match="secret_key is required"):
            JwtConfig.from_env(environ={})
