import asyncio
import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Union

from .alignment import TimeSeriesAligner
from .cache import StalenessBoundedCache
from .cache_policy import MetricTier, resolve_ttl
from .errors import ErrorKind, ResolutionError
from .fallback import FallbackChain, FallbackOutcome, FallbackResolver
from .models import ErrorPayload, MetricResult
from .normalization import utc_now
from .providers.base import DEFAULT_QUERY, SeriesQuery


LOGGER = logging.getLogger(__name__)

KIND_SINGLE = "single"
KIND_RATIO = "ratio"
KIND_SPREAD = "spread"

OVERVALUED_RATIO_THRESHOLD = 120.0

Resolution = Union[MetricResult, ErrorPayload]


@dataclass(frozen=True)
class MetricLeg:
    name: str
    chain: FallbackChain
    query: SeriesQuery = DEFAULT_QUERY


@dataclass(frozen=True)
class MetricDefinition:
    key: str
    kind: str
    unit: str
    legs: tuple[MetricLeg, ...]
    tier: MetricTier = MetricTier.DAILY
    alignment_frequency: Optional[str] = "A"
    label: str = ""


def single_metric(
    key: str,
    chain: FallbackChain,
    unit: str,
    query: SeriesQuery = DEFAULT_QUERY,
    tier: MetricTier = MetricTier.DAILY,
    label: str = "",
) -> MetricDefinition:
    return MetricDefinition(
        key=key,
        kind=KIND_SINGLE,
        unit=unit,
        legs=(MetricLeg("value", tuple(chain), query),),
        tier=tier,
        label=label or key,
    )


def ratio_metric(
    key: str,
    numerator: MetricLeg,
    denominator: MetricLeg,
    tier: MetricTier = MetricTier.ANNUAL,
    label: str = "",
) -> MetricDefinition:
    return MetricDefinition(
        key=key,
        kind=KIND_RATIO,
        unit="%",
        legs=(numerator, denominator),
        tier=tier,
        alignment_frequency="A",
        label=label or key,
    )


def spread_metric(
    key: str,
    minuend: MetricLeg,
    subtrahend: MetricLeg,
    unit: str = "percentage points",
    tier: MetricTier = MetricTier.DAILY,
    label: str = "",
) -> MetricDefinition:
    return MetricDefinition(
        key=key,
        kind=KIND_SPREAD,
        unit=unit,
        legs=(minuend, subtrahend),
        tier=tier,
        alignment_frequency=None,
        label=label or key,
    )


def _percent_change(latest: float, prior: Optional[float]) -> Optional[float]:
    if prior is None or prior == 0:
        return None
    return round((latest - prior) / prior * 100, 2)


class MetricResolver:
    """Resolves one metric key: live chains first, then a fresh cache entry.

    Live successes overwrite the cache entry for the key. A live value from a
    provider other than the first in its chain is marked ``degraded``. A
    failure at any stage (all providers down, no overlapping period) serves
    the cached result marked ``degraded`` and ``cached`` when it is still
    within its TTL, otherwise an ``ErrorPayload`` with the full attempt trail.
    """

    def __init__(
        self,
        definitions: Mapping[str, MetricDefinition],
        cache: StalenessBoundedCache,
        fallback: Optional[FallbackResolver] = None,
        ttl_override_minutes: Optional[float] = None,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.definitions = dict(definitions)
        self.cache = cache
        self.fallback = fallback or FallbackResolver()
        self.ttl_override_minutes = ttl_override_minutes
        self.now = now

    async def resolve(self, key: str) -> Resolution:
        definition = self.definitions.get(key)
        if definition is None:
            return ErrorPayload(key, ErrorKind.UNKNOWN_METRIC.value, f"unknown metric: {key}")

        if definition.kind == KIND_SINGLE:
            leg = definition.legs[0]
            outcome = await self.fallback.resolve(leg.chain, leg.query)
            resolution = self._single_result(definition, outcome)
        else:
            outcomes = await asyncio.gather(
                *(
                    self.fallback.resolve(leg.chain, leg.query, leg=leg.name)
                    for leg in definition.legs
                )
            )
            resolution = self._two_leg_result(definition, outcomes[0], outcomes[1])

        if isinstance(resolution, ErrorPayload):
            return self._fall_back_to_cache(definition, resolution)

        self.cache.put(key, resolution, resolve_ttl(definition.tier, self.ttl_override_minutes))
        LOGGER.info("metric %s resolved via %s", key, resolution.source)
        return resolution

    def _single_result(
        self, definition: MetricDefinition, outcome: FallbackOutcome
    ) -> Resolution:
        series = outcome.series
        latest = series.latest_valid() if series is not None else None
        if series is None or latest is None:
            return ErrorPayload(
                definition.key,
                ErrorKind.ALL_SOURCES_EXHAUSTED.value,
                f"All {definition.label} sources failed",
                outcome.attempts,
            )

        prior = series.prior_valid()
        change = series.reported_change_percent
        if change is None:
            change = _percent_change(
                float(latest.value), float(prior.value) if prior is not None else None
            )
        return MetricResult(
            metric_key=definition.key,
            value=float(latest.value) * series.scale,
            unit=definition.unit,
            as_of_period=latest.period,
            source=series.provider_id,
            computed_at=self.now(),
            degraded=outcome.used_fallback,
            change_percent=change,
        )

    def _two_leg_result(
        self,
        definition: MetricDefinition,
        first: FallbackOutcome,
        second: FallbackOutcome,
    ) -> Resolution:
        first_leg, second_leg = definition.legs[0], definition.legs[1]
        attempts = first.attempts + second.attempts

        failed = [leg.name for leg, o in ((first_leg, first), (second_leg, second)) if not o.ok]
        if first.series is None or second.series is None:
            return ErrorPayload(
                definition.key,
                ErrorKind.ALL_SOURCES_EXHAUSTED.value,
                f"All {' and '.join(failed)} sources failed for {definition.label}",
                attempts,
            )

        try:
            pair = TimeSeriesAligner(definition.alignment_frequency).align(
                first.series, second.series
            )
        except ResolutionError as error:
            return ErrorPayload(definition.key, error.kind.value, str(error), attempts)

        details: dict[str, object] = {
            first_leg.name: pair.numerator_value,
            second_leg.name: pair.denominator_value,
            "sources": {
                first_leg.name: first.series.provider_id,
                second_leg.name: second.series.provider_id,
            },
        }
        if definition.kind == KIND_RATIO:
            if pair.denominator_value == 0:
                return ErrorPayload(
                    definition.key,
                    ErrorKind.NO_VALID_OBSERVATION.value,
                    f"{second_leg.name} returned zero for {pair.period}",
                    attempts,
                )
            value = round(pair.numerator_value / pair.denominator_value * 100, 2)
            details["overvalued"] = value > OVERVALUED_RATIO_THRESHOLD
        else:
            value = round(pair.numerator_value - pair.denominator_value, 2)
            details["inverted"] = value < 0

        return MetricResult(
            metric_key=definition.key,
            value=value,
            unit=definition.unit,
            as_of_period=pair.period,
            source=f"{first.series.provider_id} / {second.series.provider_id}",
            computed_at=self.now(),
            degraded=first.used_fallback or second.used_fallback,
            details=details,
        )

    def _fall_back_to_cache(self, definition: MetricDefinition, failure: ErrorPayload) -> Resolution:
        entry = self.cache.get(definition.key)
        now = self.now()
        if entry is not None and entry.is_fresh(now):
            LOGGER.warning(
                "metric %s live resolution failed (%s); serving cached result from %s",
                definition.key,
                failure.kind,
                entry.stored_at.isoformat(),
            )
            return dataclasses.replace(
                entry.result, degraded=True, cached=True, details=dict(entry.result.details)
            )

        if entry is not None:
            LOGGER.warning(
                "metric %s cache entry is stale (age %s, ttl %s)",
                definition.key,
                entry.age(now),
                entry.ttl,
            )
        LOGGER.error("metric %s failed: %s", definition.key, failure.message)
        return failure
