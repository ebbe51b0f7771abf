"""Metric catalog for the dashboard.

Each metric key maps to its fallback chain(s), most authoritative source
first: statistical-agency series from FRED, then market-data vendors, then
scraped delimited-text histories.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from .aggregator import Aggregator
from .cache import StalenessBoundedCache
from .cache_policy import MetricTier, resolve_ttl
from .config import Settings
from .fallback import FallbackResolver
from .http_client import AsyncHttpClient, Transport, requests_transport
from .providers.base import ApiClient, SeriesQuery
from .providers.csv_history import CboeVixHistoryProvider, StooqDailyProvider
from .providers.fred import FredSeriesProvider
from .providers.market_cap import FmpConstituentsMarketCapProvider, SpyImpliedMarketCapProvider
from .providers.quotes import FmpQuoteProvider, TwelveDataQuoteProvider
from .resolver import (
    MetricDefinition,
    MetricLeg,
    MetricResolver,
    ratio_metric,
    single_metric,
    spread_metric,
)


RECENT_DAILY = SeriesQuery(descending=True, limit=20)
LONG_HISTORY = SeriesQuery(observation_start=date(1980, 1, 1))

QUOTE_SYMBOLS: dict[str, str] = {
    "spy": "SPY",
    "vixy": "VIXY",
    "tsla": "TSLA",
    "lit": "LIT",
}


def build_metric_definitions(settings: Settings, client: ApiClient) -> dict[str, MetricDefinition]:
    def fred(series_id: str, **kwargs: Any) -> FredSeriesProvider:
        return FredSeriesProvider(series_id, client=client, api_key=settings.fred_api_key, **kwargs)

    def twelve(symbol: str, unit: str = "USD") -> TwelveDataQuoteProvider:
        return TwelveDataQuoteProvider(
            symbol, client=client, api_key=settings.twelve_data_api_key, unit=unit
        )

    def fmp(symbol: str, unit: str = "USD") -> FmpQuoteProvider:
        return FmpQuoteProvider(symbol, client=client, api_key=settings.fmp_api_key, unit=unit)

    # NCBEILQ027S is published in millions, GDP and the Wilshire full-cap index in billions
    market_cap_leg = MetricLeg(
        "market_cap_usd",
        (
            fred("NCBEILQ027S", unit="USD", scale=1e6, frequency="Q"),
            fred("WILL5000INDFC", unit="USD", scale=1e9, frequency="Q"),
        ),
        LONG_HISTORY,
    )
    gdp_leg = MetricLeg(
        "gdp_usd",
        (
            fred("GDP", unit="USD", scale=1e9, frequency="A", provider_id="fred:GDP:annual"),
            fred("GDP", unit="USD", scale=1e9, frequency="Q", provider_id="fred:GDP:quarterly"),
        ),
        LONG_HISTORY,
    )
    estimated_market_cap_leg = MetricLeg(
        "estimated_market_cap_usd",
        (
            FmpConstituentsMarketCapProvider(client=client, api_key=settings.fmp_api_key),
            SpyImpliedMarketCapProvider(twelve("SPY")),
        ),
    )
    recent_gdp_leg = MetricLeg(
        "gdp_usd",
        (fred("GDP", unit="USD", scale=1e9, frequency="Q", provider_id="fred:GDP:quarterly"),),
        SeriesQuery(descending=True, limit=8),
    )

    definitions = [
        ratio_metric(
            "buffett",
            market_cap_leg,
            gdp_leg,
            label="Buffett Indicator",
        ),
        ratio_metric(
            "estimated_buffett",
            estimated_market_cap_leg,
            recent_gdp_leg,
            tier=MetricTier.DAILY,
            label="Estimated Buffett Indicator",
        ),
        single_metric(
            "gold",
            (
                fred("GOLDPMGBD228NLBM", unit="USD"),
                fred("GOLDAMGBD228NLBM", unit="USD"),
                twelve("XAU/USD"),
                fmp("GCUSD"),
            ),
            unit="USD/oz",
            query=RECENT_DAILY,
            label="Gold",
        ),
        single_metric(
            "vix",
            (
                fred("VIXCLS", unit="index"),
                fmp("^VIX", unit="index"),
                CboeVixHistoryProvider(client=client),
                StooqDailyProvider("^vix", client=client),
            ),
            unit="index",
            query=RECENT_DAILY,
            label="VIX",
        ),
        spread_metric(
            "yield_spread",
            MetricLeg("ten_year", (fred("DGS10", unit="%"),), RECENT_DAILY),
            MetricLeg("two_year", (fred("DGS2", unit="%"),), RECENT_DAILY),
            label="10Y-2Y yield spread",
        ),
        single_metric(
            "dxy",
            (fred("DTWEXBGS", unit="index"),),
            unit="index",
            query=RECENT_DAILY,
            label="Broad USD index",
        ),
    ]
    for key, symbol in QUOTE_SYMBOLS.items():
        definitions.append(
            single_metric(
                key,
                (twelve(symbol), fmp(symbol)),
                unit="USD",
                tier=MetricTier.QUOTE,
                label=symbol,
            )
        )
    return {definition.key: definition for definition in definitions}


def build_aggregator(
    settings: Optional[Settings] = None,
    transport: Transport = requests_transport,
    cache: Optional[StalenessBoundedCache] = None,
) -> Aggregator:
    """Wire one process-wide cache, HTTP client and resolver."""
    settings = settings or Settings.from_env()
    client = AsyncHttpClient(
        transport=transport,
        rate_limit_per_second=settings.http_rate_limit_per_second,
        max_retries=settings.http_max_retries,
    )
    if cache is None:
        cache = StalenessBoundedCache(
            default_ttl=resolve_ttl(MetricTier.DAILY, settings.cache_ttl_minutes)
        )
    resolver = MetricResolver(
        build_metric_definitions(settings, client),
        cache=cache,
        fallback=FallbackResolver(timeout_seconds=settings.provider_timeout_seconds),
        ttl_override_minutes=settings.cache_ttl_minutes,
    )
    return Aggregator(resolver)
