from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigurationError, NoOverlapPeriodError
from .models import FREQUENCY_ANNUAL, PeriodKey, Series


@dataclass(frozen=True)
class AlignedPair:
    period: PeriodKey
    numerator_value: float
    denominator_value: float


def reduce_to_annual(series: Series) -> dict[PeriodKey, float]:
    """One value per calendar year: the mean of that year's non-Missing values.

    A year whose sub-periods are all Missing is dropped, not averaged to zero.
    Annual series pass through with Missing years removed.
    """
    buckets: dict[int, list[float]] = defaultdict(list)
    for observation in series.valid():
        buckets[observation.period.year].append(float(observation.value))
    return {
        PeriodKey.annual(year): sum(values) / len(values)
        for year, values in buckets.items()
    }


def native_periods(series: Series) -> dict[PeriodKey, float]:
    return {o.period: float(o.value) for o in series.valid()}


class TimeSeriesAligner:
    """Finds the latest period for which both series report a value.

    With ``frequency="A"`` both series are first reduced to calendar years;
    with ``frequency=None`` periods must match exactly as reported. Values
    come back in base units (each series' ``scale`` applied). Nothing is
    interpolated.
    """

    def __init__(self, frequency: Optional[str] = FREQUENCY_ANNUAL) -> None:
        self.frequency = frequency

    def _values(self, series: Series) -> dict[PeriodKey, float]:
        if self.frequency == FREQUENCY_ANNUAL:
            return reduce_to_annual(series)
        return native_periods(series)

    def align(self, numerator: Series, denominator: Series) -> AlignedPair:
        if numerator.unit and denominator.unit and numerator.unit != denominator.unit:
            raise ConfigurationError(
                f"unit mismatch: {numerator.provider_id} reports {numerator.unit}, "
                f"{denominator.provider_id} reports {denominator.unit}"
            )

        numerator_values = self._values(numerator)
        denominator_values = self._values(denominator)

        for period in sorted(numerator_values, reverse=True):
            if period in denominator_values:
                return AlignedPair(
                    period=period,
                    numerator_value=numerator_values[period] * numerator.scale,
                    denominator_value=denominator_values[period] * denominator.scale,
                )

        raise NoOverlapPeriodError(
            f"No overlapping period between {numerator.provider_id} and {denominator.provider_id}"
        )
