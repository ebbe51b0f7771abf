from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Optional, Protocol

from ..models import Series


class ApiClient(Protocol):
    async def request_json(
        self, url: str, headers: Optional[Mapping[str, str]] = None
    ) -> object: ...

    async def request_text(
        self, url: str, headers: Optional[Mapping[str, str]] = None
    ) -> str: ...


@dataclass(frozen=True)
class SeriesQuery:
    observation_start: Optional[date] = None
    limit: Optional[int] = None
    descending: bool = False


DEFAULT_QUERY = SeriesQuery()


class Provider:
    """One upstream source for one metric leg.

    Subclasses implement ``fetch`` (network, may raise TransportError or
    ConfigurationError) and ``parse`` (pure, may raise MalformedPayloadError
    or NoValidObservationError).
    """

    provider_id: str = "provider"
    unit: str = ""
    scale: float = 1.0

    async def fetch(self, query: SeriesQuery) -> object:
        raise NotImplementedError

    def parse(self, payload: object) -> Series:
        raise NotImplementedError

    async def load(self, query: SeriesQuery = DEFAULT_QUERY) -> Series:
        payload = await self.fetch(query)
        return self.parse(payload)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.provider_id!r})"
