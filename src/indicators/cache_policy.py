from datetime import timedelta
from enum import Enum
from typing import Optional


class MetricTier(Enum):
    QUOTE = "quote"
    DAILY = "daily"
    ANNUAL = "annual"


DEFAULT_TTL = timedelta(hours=6)


def ttl_for_tier(tier: MetricTier) -> timedelta:
    if tier == MetricTier.QUOTE:
        return timedelta(minutes=30)
    if tier == MetricTier.ANNUAL:
        return timedelta(hours=24)
    return DEFAULT_TTL


def resolve_ttl(tier: MetricTier, override_minutes: Optional[float] = None) -> timedelta:
    if override_minutes is not None:
        return timedelta(minutes=override_minutes)
    return ttl_for_tier(tier)
