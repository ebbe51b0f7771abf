import asyncio
import importlib
from datetime import date

import pytest


quotes = importlib.import_module("src.indicators.providers.quotes")
csv_history = importlib.import_module("src.indicators.providers.csv_history")
errors = importlib.import_module("src.indicators.errors")
models = importlib.import_module("src.indicators.models")

PeriodKey = models.PeriodKey


class RecordingClient:
    def __init__(self, json_payload=None, text_payload=""):
        self.json_payload = json_payload
        self.text_payload = text_payload
        self.calls = []

    async def request_json(self, url, headers=None):
        self.calls.append(url)
        return self.json_payload

    async def request_text(self, url, headers=None):
        self.calls.append(url)
        return self.text_payload


def test_twelve_data_quote_parses_close_and_reported_change():
    client = RecordingClient(
        {"symbol": "SPY", "close": "512.40", "percent_change": "0.85", "datetime": "2024-05-03"}
    )
    provider = quotes.TwelveDataQuoteProvider("SPY", client=client, api_key="TD")

    series = asyncio.run(provider.load())

    assert "symbol=SPY" in client.calls[0]
    assert "apikey=TD" in client.calls[0]
    assert series.provider_id == "twelvedata:SPY"
    assert series.latest_valid().value == 512.40
    assert series.latest_valid().period == PeriodKey.daily(date(2024, 5, 3))
    assert series.reported_change_percent == 0.85


def test_twelve_data_error_body_is_a_transport_failure():
    client = RecordingClient({"status": "error", "message": "You have run out of API credits"})
    provider = quotes.TwelveDataQuoteProvider("SPY", client=client, api_key="TD")

    with pytest.raises(errors.TransportError, match="credits"):
        asyncio.run(provider.load())


def test_twelve_data_without_key_does_not_call_upstream():
    client = RecordingClient({})
    provider = quotes.TwelveDataQuoteProvider("SPY", client=client, api_key="")

    with pytest.raises(errors.ConfigurationError, match="TWELVE_KEY"):
        asyncio.run(provider.load())

    assert client.calls == []


def test_twelve_data_payload_without_close_is_malformed():
    provider = quotes.TwelveDataQuoteProvider("XAU/USD", api_key="TD")

    with pytest.raises(errors.MalformedPayloadError):
        provider.parse({"symbol": "XAU/USD"})


def test_fmp_quote_uses_timestamp_and_changes_percentage():
    client = RecordingClient(
        [{"symbol": "TSLA", "price": 180.5, "changesPercentage": -1.25, "timestamp": 1714760000}]
    )
    provider = quotes.FmpQuoteProvider("TSLA", client=client, api_key="FMP")

    series = asyncio.run(provider.load())

    assert client.calls[0].startswith(quotes.FMP_QUOTE_URL + "/TSLA?")
    assert series.latest_valid().value == 180.5
    assert series.latest_valid().period == PeriodKey.daily(date(2024, 5, 3))
    assert series.reported_change_percent == -1.25


def test_fmp_quote_encodes_index_symbols_and_falls_back_to_today():
    client = RecordingClient([{"symbol": "^VIX", "price": "14.1"}])
    provider = quotes.FmpQuoteProvider(
        "^VIX", client=client, api_key="FMP", unit="index", today=lambda: date(2024, 6, 1)
    )

    series = asyncio.run(provider.load())

    assert "/%5EVIX?" in client.calls[0]
    assert series.latest_valid().period == PeriodKey.daily(date(2024, 6, 1))
    assert series.reported_change_percent is None
    assert series.unit == "index"


def test_fmp_quote_empty_list_is_malformed():
    provider = quotes.FmpQuoteProvider("LIT", api_key="FMP")

    with pytest.raises(errors.MalformedPayloadError):
        provider.parse([])


def test_cboe_history_reads_last_column_close():
    text = (
        "DATE,OPEN,HIGH,LOW,CLOSE\n"
        "05/01/2024,15.1,15.9,14.8,15.39\n"
        "05/02/2024,15.0,15.2,14.0,14.68\n"
    )
    client = RecordingClient(text_payload=text)
    provider = csv_history.CboeVixHistoryProvider(client=client)

    series = asyncio.run(provider.load())

    assert client.calls == [csv_history.CBOE_VIX_HISTORY_URL]
    assert series.provider_id == "cboe:VIX"
    assert series.latest_valid().value == 14.68
    assert series.prior_valid().value == 15.39
    assert series.latest_valid().period == PeriodKey.daily(date(2024, 5, 2))


def test_stooq_reads_close_column_and_builds_escaped_url():
    text = (
        "Date,Open,High,Low,Close,Volume\n"
        "2024-05-01,15.1,15.9,14.8,15.39,0\n"
        "2024-05-02,15.0,15.2,14.0,14.68,0\n"
    )
    client = RecordingClient(text_payload=text)
    provider = csv_history.StooqDailyProvider("^vix", client=client)

    series = asyncio.run(provider.load())

    assert client.calls == ["https://stooq.com/q/d/l/?s=%5Evix&i=d"]
    assert series.provider_id == "stooq:^vix"
    assert series.latest_valid().value == 14.68


def test_stooq_no_data_marker_is_no_valid_observation():
    provider = csv_history.StooqDailyProvider("^vix")

    with pytest.raises(errors.NoValidObservationError):
        provider.parse("NO DATA")


def test_csv_with_only_a_header_is_malformed():
    provider = csv_history.CboeVixHistoryProvider()

    with pytest.raises(errors.MalformedPayloadError):
        provider.parse("DATE,OPEN,HIGH,LOW,CLOSE\n")
