import importlib
from datetime import timedelta


cache_policy = importlib.import_module("src.indicators.cache_policy")
MetricTier = cache_policy.MetricTier
ttl_for_tier = cache_policy.ttl_for_tier
resolve_ttl = cache_policy.resolve_ttl


def test_tier_ttl_mapping():
    assert ttl_for_tier(MetricTier.QUOTE) == timedelta(minutes=30)
    assert ttl_for_tier(MetricTier.DAILY) == timedelta(hours=6)
    assert ttl_for_tier(MetricTier.ANNUAL) == timedelta(hours=24)


def test_configured_override_applies_to_every_tier():
    assert resolve_ttl(MetricTier.QUOTE, override_minutes=90) == timedelta(minutes=90)
    assert resolve_ttl(MetricTier.ANNUAL, override_minutes=90) == timedelta(minutes=90)
    assert resolve_ttl(MetricTier.ANNUAL) == timedelta(hours=24)
