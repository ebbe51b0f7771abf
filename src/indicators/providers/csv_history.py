import csv
import io
from typing import Optional

from ..errors import ConfigurationError, MalformedPayloadError, NoValidObservationError
from ..models import Observation, Series
from ..normalization import parse_period, parse_value
from .base import ApiClient, Provider, SeriesQuery


CBOE_VIX_HISTORY_URL = "https://cdn.cboe.com/api/global/us_indices/daily_prices/VIX_History.csv"
STOOQ_DAILY_URL = "https://stooq.com/q/d/l/"
BROWSER_HEADERS = {"User-Agent": "Mozilla/5.0 (compatible)"}


class DailyCsvProvider(Provider):
    """Daily history published as delimited text with a header row."""

    url: str = ""
    close_column: int = -1
    no_data_marker: Optional[str] = None

    def __init__(self, client: Optional[ApiClient] = None, unit: str = "index") -> None:
        self.client = client
        self.unit = unit

    async def fetch(self, query: SeriesQuery) -> object:
        if self.client is None:
            raise ConfigurationError("client is required for fetch operations")
        return await self.client.request_text(self.url, headers=BROWSER_HEADERS)

    def parse(self, payload: object) -> Series:
        if not isinstance(payload, str):
            raise MalformedPayloadError(f"{self.provider_id}: expected delimited text")
        text = payload.strip()
        if self.no_data_marker is not None and text == self.no_data_marker:
            raise NoValidObservationError(f"{self.provider_id}: no usable data")

        rows = [row for row in csv.reader(io.StringIO(text)) if row]
        if len(rows) < 2:
            raise MalformedPayloadError(f"{self.provider_id}: no data rows")

        observations: list[Observation] = []
        for row in rows[1:]:
            period = parse_period(row[0], "D")
            if period is None:
                continue
            try:
                raw_close = row[self.close_column]
            except IndexError:
                continue
            observations.append(Observation(period, parse_value(raw_close), self.provider_id))

        series = Series.from_observations(self.provider_id, observations, unit=self.unit)
        if not series.valid():
            raise NoValidObservationError(f"{self.provider_id}: no usable close")
        return series


class CboeVixHistoryProvider(DailyCsvProvider):
    provider_id = "cboe:VIX"
    url = CBOE_VIX_HISTORY_URL
    close_column = -1


class StooqDailyProvider(DailyCsvProvider):
    close_column = 4
    no_data_marker = "NO DATA"

    def __init__(self, symbol: str, client: Optional[ApiClient] = None, unit: str = "index") -> None:
        super().__init__(client=client, unit=unit)
        self.symbol = symbol
        self.provider_id = f"stooq:{symbol}"
        self.url = f"{STOOQ_DAILY_URL}?s={symbol.replace('^', '%5E')}&i=d"
