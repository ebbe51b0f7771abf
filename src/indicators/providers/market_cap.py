import logging
from collections.abc import Mapping, Sequence
from datetime import date
from typing import Callable, Optional
from urllib.parse import quote, urlencode

from ..config import require_credential
from ..errors import ConfigurationError, MalformedPayloadError, NoValidObservationError
from ..models import MISSING, Observation, PeriodKey, Series
from ..normalization import parse_value, utc_today
from ..throttle import gather_throttled
from .base import ApiClient, Provider, SeriesQuery
from .quotes import TwelveDataQuoteProvider


LOGGER = logging.getLogger(__name__)

FMP_PROFILE_URL = "https://financialmodelingprep.com/api/v3/profile"

# S&P 500 cap scaled up to an estimate of the total US equity market
SP500_TO_TOTAL_MULTIPLIER = 1.30
SPY_SHARES_OUTSTANDING = 1_024_000_000

TOP_CONSTITUENTS: tuple[str, ...] = (
    "AAPL",
    "MSFT",
    "NVDA",
    "GOOGL",
    "AMZN",
    "BRK-B",
    "META",
    "TSLA",
    "UNH",
    "JNJ",
    "V",
    "PG",
    "MA",
    "XOM",
    "JPM",
)


class FmpConstituentsMarketCapProvider(Provider):
    """Estimated total market cap from the largest S&P 500 constituents.

    Profiles are fetched through a throttle to stay under the FMP free tier;
    symbols that fail are skipped. Values are reported in billions of USD.
    """

    provider_id = "fmp:constituents"
    unit = "USD"
    scale = 1e9

    def __init__(
        self,
        client: Optional[ApiClient] = None,
        api_key: str = "",
        tickers: Sequence[str] = TOP_CONSTITUENTS,
        multiplier: float = SP500_TO_TOTAL_MULTIPLIER,
        max_concurrency: int = 1,
        min_interval_seconds: float = 0.1,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self.client = client
        self.api_key = api_key
        self.tickers = tuple(tickers)
        self.multiplier = multiplier
        self.max_concurrency = max_concurrency
        self.min_interval_seconds = min_interval_seconds
        self.today = today

    async def _fetch_profile(self, symbol: str) -> object:
        if self.client is None:
            raise ConfigurationError("client is required for fetch operations")
        url = f"{FMP_PROFILE_URL}/{quote(symbol, safe='')}?{urlencode({'apikey': self.api_key})}"
        return await self.client.request_json(url)

    async def fetch(self, query: SeriesQuery) -> object:
        require_credential(self.api_key, "FMP_KEY")
        if self.client is None:
            raise ConfigurationError("client is required for fetch operations")
        results = await gather_throttled(
            self.tickers,
            self._fetch_profile,
            max_concurrency=self.max_concurrency,
            min_interval_seconds=self.min_interval_seconds,
        )
        profiles: dict[str, object] = {}
        for result in results:
            if result.ok:
                profiles[result.item] = result.value
            else:
                LOGGER.debug("constituent %s skipped: %s", result.item, result.error)
        return profiles

    def parse(self, payload: object) -> Series:
        if not isinstance(payload, Mapping):
            raise MalformedPayloadError("constituent profiles must be keyed by symbol")

        total_cap = 0.0
        for profile in payload.values():
            if not isinstance(profile, list) or not profile or not isinstance(profile[0], Mapping):
                continue
            market_cap = parse_value(profile[0].get("mktCap", profile[0].get("marketCap")))
            if market_cap is MISSING or market_cap <= 0:
                continue
            total_cap += market_cap

        if total_cap == 0:
            raise NoValidObservationError("Failed to aggregate any constituent market caps")

        estimated_billions = round(total_cap * self.multiplier / 1e9, 2)
        observation = Observation(PeriodKey.daily(self.today()), estimated_billions, self.provider_id)
        return Series.from_observations(self.provider_id, [observation], self.unit, self.scale)


class SpyImpliedMarketCapProvider(Provider):
    """SPY price times shares outstanding, scaled to the total market."""

    unit = "USD"
    scale = 1e9

    def __init__(
        self,
        quote_provider: TwelveDataQuoteProvider,
        shares_outstanding: int = SPY_SHARES_OUTSTANDING,
        multiplier: float = SP500_TO_TOTAL_MULTIPLIER,
    ) -> None:
        self.quote_provider = quote_provider
        self.shares_outstanding = shares_outstanding
        self.multiplier = multiplier
        self.provider_id = f"spy-implied:{quote_provider.provider_id}"

    async def fetch(self, query: SeriesQuery) -> object:
        return await self.quote_provider.fetch(query)

    def parse(self, payload: object) -> Series:
        quote_series = self.quote_provider.parse(payload)
        latest = quote_series.latest_valid()
        if latest is None:
            raise NoValidObservationError("Invalid SPY price")
        estimated_billions = round(
            latest.value * self.shares_outstanding * self.multiplier / 1e9, 2
        )
        observation = Observation(latest.period, estimated_billions, self.provider_id)
        return Series.from_observations(self.provider_id, [observation], self.unit, self.scale)
