from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Callable, Optional
from urllib.parse import quote, urlencode

from ..config import require_credential
from ..errors import (
    ConfigurationError,
    MalformedPayloadError,
    NoValidObservationError,
    TransportError,
)
from ..models import MISSING, Observation, PeriodKey, Series
from ..normalization import parse_period, parse_value, utc_today
from .base import ApiClient, Provider, SeriesQuery


TWELVE_DATA_QUOTE_URL = "https://api.twelvedata.com/quote"
FMP_QUOTE_URL = "https://financialmodelingprep.com/api/v3/quote"


def _optional_number(value: object) -> Optional[float]:
    parsed = parse_value(value)
    return None if parsed is MISSING else float(parsed)


class TwelveDataQuoteProvider(Provider):
    def __init__(
        self,
        symbol: str,
        client: Optional[ApiClient] = None,
        api_key: str = "",
        unit: str = "USD",
        today: Callable[[], date] = utc_today,
    ) -> None:
        self.symbol = symbol
        self.client = client
        self.api_key = api_key
        self.unit = unit
        self.today = today
        self.provider_id = f"twelvedata:{symbol}"

    async def fetch(self, query: SeriesQuery) -> object:
        require_credential(self.api_key, "TWELVE_KEY")
        if self.client is None:
            raise ConfigurationError("client is required for fetch operations")
        url = f"{TWELVE_DATA_QUOTE_URL}?{urlencode({'symbol': self.symbol, 'apikey': self.api_key})}"
        payload = await self.client.request_json(url)
        # TwelveData reports quota and symbol errors in a 200 body
        if isinstance(payload, Mapping) and payload.get("status") == "error":
            raise TransportError(str(payload.get("message") or "TwelveData error"))
        return payload

    def parse(self, payload: object) -> Series:
        if not isinstance(payload, Mapping) or "close" not in payload:
            raise MalformedPayloadError(f"Bad TwelveData data for {self.symbol}")
        price = parse_value(payload.get("close"))
        if price is MISSING:
            raise NoValidObservationError(f"Invalid {self.symbol} price")
        period = parse_period(payload.get("datetime"), "D") or PeriodKey.daily(self.today())
        return Series.from_observations(
            self.provider_id,
            [Observation(period, price, self.provider_id)],
            unit=self.unit,
            reported_change_percent=_optional_number(payload.get("percent_change")),
        )


class FmpQuoteProvider(Provider):
    def __init__(
        self,
        symbol: str,
        client: Optional[ApiClient] = None,
        api_key: str = "",
        unit: str = "USD",
        today: Callable[[], date] = utc_today,
    ) -> None:
        self.symbol = symbol
        self.client = client
        self.api_key = api_key
        self.unit = unit
        self.today = today
        self.provider_id = f"fmp:{symbol}"

    async def fetch(self, query: SeriesQuery) -> object:
        require_credential(self.api_key, "FMP_KEY")
        if self.client is None:
            raise ConfigurationError("client is required for fetch operations")
        url = f"{FMP_QUOTE_URL}/{quote(self.symbol, safe='')}?{urlencode({'apikey': self.api_key})}"
        return await self.client.request_json(url)

    def parse(self, payload: object) -> Series:
        if not isinstance(payload, list) or not payload or not isinstance(payload[0], Mapping):
            raise MalformedPayloadError(f"Bad FMP data for {self.symbol}")
        row = payload[0]
        price = parse_value(row.get("price"))
        if price is MISSING:
            raise NoValidObservationError(f"FMP: bad price for {self.symbol}")

        timestamp = row.get("timestamp")
        if isinstance(timestamp, (int, float)) and not isinstance(timestamp, bool):
            period = PeriodKey.daily(datetime.fromtimestamp(timestamp, tz=timezone.utc).date())
        else:
            period = PeriodKey.daily(self.today())
        return Series.from_observations(
            self.provider_id,
            [Observation(period, price, self.provider_id)],
            unit=self.unit,
            reported_change_percent=_optional_number(row.get("changesPercentage")),
        )
