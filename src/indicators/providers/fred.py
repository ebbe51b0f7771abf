from collections.abc import Mapping
from typing import Optional
from urllib.parse import urlencode

from ..config import require_credential
from ..errors import ConfigurationError, MalformedPayloadError, NoValidObservationError
from ..models import Observation, Series
from ..normalization import parse_period, parse_value
from .base import ApiClient, Provider, SeriesQuery


FRED_OBSERVATIONS_URL = "https://api.stlouisfed.org/fred/series/observations"


class FredSeriesProvider(Provider):
    def __init__(
        self,
        series_id: str,
        client: Optional[ApiClient] = None,
        api_key: str = "",
        unit: str = "",
        scale: float = 1.0,
        frequency: Optional[str] = None,
        provider_id: Optional[str] = None,
    ) -> None:
        self.series_id = series_id
        self.client = client
        self.api_key = api_key
        self.unit = unit
        self.scale = scale
        self.frequency = frequency
        self.provider_id = provider_id or f"fred:{series_id}"

    def build_url(self, query: SeriesQuery) -> str:
        params: dict[str, object] = {
            "series_id": self.series_id,
            "api_key": self.api_key,
            "file_type": "json",
        }
        if self.frequency:
            params["frequency"] = self.frequency.lower()
        if query.observation_start:
            params["observation_start"] = query.observation_start.isoformat()
        if query.descending:
            params["sort_order"] = "desc"
        if query.limit:
            params["limit"] = query.limit
        return f"{FRED_OBSERVATIONS_URL}?{urlencode(params)}"

    async def fetch(self, query: SeriesQuery) -> object:
        require_credential(self.api_key, "FRED_KEY")
        if self.client is None:
            raise ConfigurationError("client is required for fetch operations")
        return await self.client.request_json(self.build_url(query))

    def parse(self, payload: object) -> Series:
        if not isinstance(payload, Mapping):
            raise MalformedPayloadError(f"Bad FRED payload ({self.series_id})")
        observations = payload.get("observations")
        if not isinstance(observations, list):
            raise MalformedPayloadError(f"Bad FRED payload ({self.series_id})")

        parsed: list[Observation] = []
        for row in observations:
            if not isinstance(row, Mapping):
                continue
            period = parse_period(row.get("date"), self.frequency)
            if period is None:
                continue
            parsed.append(Observation(period, parse_value(row.get("value")), self.provider_id))

        series = Series.from_observations(self.provider_id, parsed, self.unit, self.scale)
        if not series.valid():
            raise NoValidObservationError(f"No valid observation for {self.series_id}")
        return series
