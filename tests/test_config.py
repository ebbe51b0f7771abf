import importlib

import pytest


config = importlib.import_module("src.indicators.config")
errors = importlib.import_module("src.indicators.errors")


def test_settings_defaults_without_environment():
    settings = config.Settings.from_env({})

    assert settings.fred_api_key == ""
    assert settings.provider_timeout_seconds == 10.0
    assert settings.cache_ttl_minutes is None
    assert settings.http_max_retries == 2
    assert settings.http_rate_limit_per_second == 5.0
    assert settings.log_level == "INFO"


def test_settings_read_credentials_and_tuning():
    settings = config.Settings.from_env(
        {
            "FRED_API_KEY": "fred",
            "TWELVE_KEY": "twelve",
            "FMP_KEY": "fmp",
            "PROVIDER_TIMEOUT_SECONDS": "4.5",
            "CACHE_TTL_MINUTES": "90",
            "HTTP_MAX_RETRIES": "0",
            "LOG_LEVEL": "debug",
        }
    )

    assert settings.fred_api_key == "fred"
    assert settings.twelve_data_api_key == "twelve"
    assert settings.fmp_api_key == "fmp"
    assert settings.provider_timeout_seconds == 4.5
    assert settings.cache_ttl_minutes == 90.0
    assert settings.http_max_retries == 0
    assert settings.log_level == "DEBUG"


def test_fred_key_takes_precedence_over_fred_api_key():
    settings = config.Settings.from_env({"FRED_KEY": "primary", "FRED_API_KEY": "secondary"})

    assert settings.fred_api_key == "primary"


def test_settings_reject_non_numeric_timeout():
    with pytest.raises(ValueError, match="PROVIDER_TIMEOUT_SECONDS"):
        config.Settings.from_env({"PROVIDER_TIMEOUT_SECONDS": "soon"})


def test_require_credential_raises_configuration_error():
    with pytest.raises(errors.ConfigurationError, match="FMP_KEY missing"):
        config.require_credential("", "FMP_KEY")

    assert config.require_credential("abc", "FMP_KEY") == "abc"
