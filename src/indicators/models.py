from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional, Union


FREQUENCY_ANNUAL = "A"
FREQUENCY_QUARTERLY = "Q"
FREQUENCY_MONTHLY = "M"
FREQUENCY_DAILY = "D"


class _Missing:
    """Upstream "no data for this period" marker. Never a number."""

    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

ObservationValue = Union[float, _Missing]


@dataclass(frozen=True, order=True)
class PeriodKey:
    start: date
    frequency: str = FREQUENCY_DAILY

    @classmethod
    def annual(cls, year: int) -> PeriodKey:
        return cls(date(year, 1, 1), FREQUENCY_ANNUAL)

    @classmethod
    def quarterly(cls, year: int, quarter: int) -> PeriodKey:
        if quarter not in (1, 2, 3, 4):
            raise ValueError(f"quarter must be 1-4, got {quarter}")
        return cls(date(year, (quarter - 1) * 3 + 1, 1), FREQUENCY_QUARTERLY)

    @classmethod
    def monthly(cls, year: int, month: int) -> PeriodKey:
        return cls(date(year, month, 1), FREQUENCY_MONTHLY)

    @classmethod
    def daily(cls, day: date) -> PeriodKey:
        return cls(day, FREQUENCY_DAILY)

    @property
    def year(self) -> int:
        return self.start.year

    @property
    def quarter(self) -> int:
        return (self.start.month - 1) // 3 + 1

    def label(self) -> str:
        if self.frequency == FREQUENCY_ANNUAL:
            return f"{self.year}"
        if self.frequency == FREQUENCY_QUARTERLY:
            return f"{self.year}-Q{self.quarter}"
        if self.frequency == FREQUENCY_MONTHLY:
            return self.start.strftime("%Y-%m")
        return self.start.isoformat()

    def __str__(self) -> str:
        return self.label()


@dataclass(frozen=True)
class Observation:
    period: PeriodKey
    value: ObservationValue
    provider_id: str

    @property
    def is_missing(self) -> bool:
        return self.value is MISSING


@dataclass(frozen=True)
class Series:
    """Observations from one provider, ascending by period, one per period.

    ``scale`` converts the provider's declared unit to the base unit, e.g. a
    series reported in billions of USD has ``unit="USD"`` and ``scale=1e9``.
    """

    provider_id: str
    observations: tuple[Observation, ...]
    unit: str = ""
    scale: float = 1.0
    reported_change_percent: Optional[float] = None

    @classmethod
    def from_observations(
        cls,
        provider_id: str,
        observations: list[Observation],
        unit: str = "",
        scale: float = 1.0,
        reported_change_percent: Optional[float] = None,
    ) -> Series:
        # a later row for the same period is a newer vintage and replaces the older one
        by_period: dict[PeriodKey, Observation] = {}
        for observation in observations:
            by_period[observation.period] = observation
        ordered = tuple(sorted(by_period.values(), key=lambda o: o.period))
        return cls(
            provider_id=provider_id,
            observations=ordered,
            unit=unit,
            scale=scale,
            reported_change_percent=reported_change_percent,
        )

    def valid(self) -> list[Observation]:
        return [o for o in self.observations if not o.is_missing]

    def latest_valid(self) -> Optional[Observation]:
        valid = self.valid()
        return valid[-1] if valid else None

    def prior_valid(self) -> Optional[Observation]:
        valid = self.valid()
        return valid[-2] if len(valid) > 1 else None

    def __len__(self) -> int:
        return len(self.observations)


@dataclass(frozen=True)
class MetricResult:
    metric_key: str
    value: float
    unit: str
    as_of_period: Optional[PeriodKey]
    source: str
    computed_at: datetime
    degraded: bool = False
    cached: bool = False
    change_percent: Optional[float] = None
    details: dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "metric_key": self.metric_key,
            "value": self.value,
            "unit": self.unit,
            "as_of_period": self.as_of_period.label() if self.as_of_period else None,
            "source": self.source,
            "computed_at": self.computed_at.isoformat(),
            "degraded": self.degraded,
            "cached": self.cached,
            "change_percent": self.change_percent,
            "details": dict(self.details),
        }


OUTCOME_SUCCESS = "success"
OUTCOME_FAILURE = "failure"


@dataclass(frozen=True)
class ProviderAttempt:
    provider_id: str
    outcome: str
    error_kind: Optional[str] = None
    error: Optional[str] = None
    leg: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == OUTCOME_SUCCESS

    def to_dict(self) -> dict[str, object]:
        row: dict[str, object] = {"provider_id": self.provider_id, "outcome": self.outcome}
        if self.error_kind is not None:
            row["error_kind"] = self.error_kind
        if self.error is not None:
            row["error"] = self.error
        if self.leg is not None:
            row["leg"] = self.leg
        return row


@dataclass(frozen=True)
class CacheEntry:
    metric_key: str
    result: MetricResult
    stored_at: datetime
    ttl: timedelta

    def age(self, now: datetime) -> timedelta:
        return now - self.stored_at

    def is_fresh(self, now: datetime) -> bool:
        return self.age(now) < self.ttl


@dataclass(frozen=True)
class ErrorPayload:
    metric_key: str
    kind: str
    message: str
    attempts: tuple[ProviderAttempt, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "metric_key": self.metric_key,
            "error": self.message,
            "kind": self.kind,
            "attempts": [attempt.to_dict() for attempt in self.attempts],
        }
