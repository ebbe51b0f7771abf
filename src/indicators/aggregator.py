import asyncio
import logging
from collections.abc import Iterable

from .errors import ErrorKind
from .models import ErrorPayload, MetricResult
from .resolver import MetricResolver, Resolution


LOGGER = logging.getLogger(__name__)


class Aggregator:
    def __init__(self, resolver: MetricResolver) -> None:
        self.resolver = resolver

    @property
    def metric_keys(self) -> list[str]:
        return list(self.resolver.definitions)

    async def _resolve_isolated(self, key: str) -> Resolution:
        try:
            return await self.resolver.resolve(key)
        except Exception as error:
            LOGGER.exception("metric %s raised during resolution", key)
            return ErrorPayload(key, ErrorKind.INTERNAL.value, str(error) or type(error).__name__)

    async def resolve_all(self, keys: Iterable[str]) -> dict[str, Resolution]:
        """Resolve every key concurrently; a failing key never affects its siblings."""
        unique_keys = list(dict.fromkeys(keys))
        resolutions = await asyncio.gather(*(self._resolve_isolated(key) for key in unique_keys))
        results = dict(zip(unique_keys, resolutions))
        failed = [key for key, value in results.items() if isinstance(value, ErrorPayload)]
        LOGGER.info(
            "aggregated %d metrics (%d failed%s)",
            len(results),
            len(failed),
            f": {', '.join(failed)}" if failed else "",
        )
        return results


def to_response(results: dict[str, Resolution]) -> dict[str, object]:
    body: dict[str, object] = {}
    for key, value in results.items():
        body[key] = value.to_dict()
    return {
        "status": "ok",
        "resolved": sum(1 for v in results.values() if isinstance(v, MetricResult)),
        "failed": sum(1 for v in results.values() if isinstance(v, ErrorPayload)),
        "metrics": body,
    }
