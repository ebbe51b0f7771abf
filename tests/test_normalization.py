from datetime import date
import importlib

normalization = importlib.import_module("src.indicators.normalization")
models = importlib.import_module("src.indicators.models")
PeriodKey = models.PeriodKey
MISSING = models.MISSING


def test_parse_period_supports_quarter_year_and_day_labels():
    assert normalization.parse_period("2024Q3") == PeriodKey.quarterly(2024, 3)
    assert normalization.parse_period("2024-q1") == PeriodKey.quarterly(2024, 1)
    assert normalization.parse_period("2024") == PeriodKey.annual(2024)
    assert normalization.parse_period("2024-02-05") == PeriodKey.daily(date(2024, 2, 5))
    assert normalization.parse_period("02/05/2024") == PeriodKey.daily(date(2024, 2, 5))
    assert normalization.parse_period("2024-02") == PeriodKey.monthly(2024, 2)


def test_parse_period_applies_declared_frequency_to_first_day_labels():
    assert normalization.parse_period("2021-07-01", "Q") == PeriodKey.quarterly(2021, 3)
    assert normalization.parse_period("2021-01-01", "A") == PeriodKey.annual(2021)


def test_parse_period_rejects_blank_and_garbage():
    assert normalization.parse_period("") is None
    assert normalization.parse_period(None) is None
    assert normalization.parse_period("not-a-date") is None


def test_parse_value_maps_placeholders_to_missing_not_zero():
    assert normalization.parse_value(".") is MISSING
    assert normalization.parse_value("NaN") is MISSING
    assert normalization.parse_value(None) is MISSING
    assert normalization.parse_value(float("nan")) is MISSING
    assert normalization.parse_value("0") == 0.0
    assert normalization.parse_value("1,234.5") == 1234.5
    assert normalization.parse_value(7) == 7.0


def test_period_keys_order_and_label():
    periods = [
        PeriodKey.annual(2021),
        PeriodKey.quarterly(2020, 4),
        PeriodKey.daily(date(2021, 6, 30)),
    ]

    assert sorted(periods)[0] == PeriodKey.quarterly(2020, 4)
    assert [p.label() for p in sorted(periods)] == ["2020-Q4", "2021", "2021-06-30"]


def test_series_keeps_one_observation_per_period_latest_vintage_wins():
    period = PeriodKey.annual(2020)
    series = models.Series.from_observations(
        "fred:GDP",
        [
            models.Observation(PeriodKey.annual(2021), 23.0, "fred:GDP"),
            models.Observation(period, 20.9, "fred:GDP"),
            models.Observation(period, 21.0, "fred:GDP"),
        ],
    )

    assert [o.period for o in series.observations] == [period, PeriodKey.annual(2021)]
    assert series.observations[0].value == 21.0
