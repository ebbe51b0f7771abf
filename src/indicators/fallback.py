import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional

from .errors import ErrorKind, error_kind_of
from .models import OUTCOME_FAILURE, OUTCOME_SUCCESS, ProviderAttempt, Series
from .providers.base import DEFAULT_QUERY, Provider, SeriesQuery


LOGGER = logging.getLogger(__name__)

FallbackChain = tuple[Provider, ...]


@dataclass(frozen=True)
class FallbackOutcome:
    series: Optional[Series]
    attempts: tuple[ProviderAttempt, ...]

    @property
    def ok(self) -> bool:
        return self.series is not None

    @property
    def used_fallback(self) -> bool:
        # the winner was not first in its chain
        return self.ok and any(not a.succeeded for a in self.attempts)

    @property
    def provider_id(self) -> Optional[str]:
        return self.series.provider_id if self.series is not None else None

    def summary(self) -> str:
        failures = [f"{a.provider_id}: {a.error}" for a in self.attempts if not a.succeeded]
        return "; ".join(failures)


class FallbackResolver:
    """Tries providers strictly in chain order and stops at the first success.

    Attempt ``i + 1`` starts only after attempt ``i`` has finished. Provider
    errors, including timeouts, are recorded as attempts and never raised.
    """

    def __init__(self, timeout_seconds: Optional[float] = 10.0) -> None:
        self.timeout_seconds = timeout_seconds

    async def _attempt(self, provider: Provider, query: SeriesQuery) -> Series:
        if self.timeout_seconds is None:
            return await provider.load(query)
        return await asyncio.wait_for(provider.load(query), timeout=self.timeout_seconds)

    async def resolve(
        self,
        chain: Sequence[Provider],
        query: SeriesQuery = DEFAULT_QUERY,
        leg: Optional[str] = None,
    ) -> FallbackOutcome:
        attempts: list[ProviderAttempt] = []
        for provider in chain:
            LOGGER.debug("trying provider %s", provider.provider_id)
            try:
                series = await self._attempt(provider, query)
            except asyncio.TimeoutError:
                message = f"timed out after {self.timeout_seconds}s"
                attempts.append(
                    ProviderAttempt(
                        provider.provider_id,
                        OUTCOME_FAILURE,
                        ErrorKind.TRANSPORT.value,
                        message,
                        leg,
                    )
                )
                LOGGER.warning("provider %s %s", provider.provider_id, message)
                continue
            except Exception as error:
                kind = error_kind_of(error)
                attempts.append(
                    ProviderAttempt(
                        provider.provider_id,
                        OUTCOME_FAILURE,
                        kind.value,
                        str(error) or type(error).__name__,
                        leg,
                    )
                )
                LOGGER.warning("provider %s failed (%s): %s", provider.provider_id, kind.value, error)
                continue

            attempts.append(ProviderAttempt(provider.provider_id, OUTCOME_SUCCESS, leg=leg))
            return FallbackOutcome(series=series, attempts=tuple(attempts))

        return FallbackOutcome(series=None, attempts=tuple(attempts))
