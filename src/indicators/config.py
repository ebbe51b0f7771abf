import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigurationError


def _float_env(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _int_env(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    fred_api_key: str = ""
    twelve_data_api_key: str = ""
    fmp_api_key: str = ""
    provider_timeout_seconds: float = 10.0
    cache_ttl_minutes: Optional[float] = None
    http_max_retries: int = 2
    http_rate_limit_per_second: float = 5.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        ttl_raw = env.get("CACHE_TTL_MINUTES", "").strip()
        return cls(
            fred_api_key=env.get("FRED_KEY") or env.get("FRED_API_KEY", ""),
            twelve_data_api_key=env.get("TWELVE_KEY", ""),
            fmp_api_key=env.get("FMP_KEY", ""),
            provider_timeout_seconds=_float_env(env, "PROVIDER_TIMEOUT_SECONDS", 10.0),
            cache_ttl_minutes=_float_env(env, "CACHE_TTL_MINUTES", 0.0) if ttl_raw else None,
            http_max_retries=_int_env(env, "HTTP_MAX_RETRIES", 2),
            http_rate_limit_per_second=_float_env(env, "HTTP_RATE_LIMIT_PER_SECOND", 5.0),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )


def require_credential(value: str, name: str) -> str:
    if not value:
        raise ConfigurationError(f"{name} missing")
    return value
