import asyncio
import importlib
from collections.abc import Mapping
from typing import Optional

from src.indicators.aggregator import Aggregator, to_response

CACHED_BADGE = "🟠 cached"
FALLBACK_BADGE = "🟡 fallback source"
LIVE_BADGE = "🟢 live"
ERROR_BADGE = "🔴 unavailable"

NO_OVERLAP_HINT = (
    "The latest figures do not share a reporting period yet, "
    "e.g. GDP for the current year has not been published."
)

METRIC_TITLES: dict[str, str] = {
    "buffett": "Buffett Indicator",
    "estimated_buffett": "Estimated Buffett Indicator",
    "gold": "Gold (USD/oz)",
    "vix": "VIX",
    "yield_spread": "10Y-2Y Spread",
    "dxy": "Broad USD Index",
    "spy": "SPY",
    "vixy": "VIXY",
    "tsla": "TSLA",
    "lit": "LIT",
}


def _format_value(value: object, unit: object) -> str:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return "-"
    if unit == "%":
        return f"{value:,.2f}%"
    return f"{value:,.2f}"


def _format_delta(metric: Mapping[str, object]) -> Optional[str]:
    change = metric.get("change_percent")
    if isinstance(change, (int, float)) and not isinstance(change, bool):
        return f"{change:+.2f}%"
    details = metric.get("details")
    if isinstance(details, Mapping):
        if details.get("overvalued") is True:
            return "overvalued (>120%)"
        if details.get("inverted") is True:
            return "inverted"
    return None


def _badge(metric: Mapping[str, object]) -> str:
    if metric.get("cached"):
        return CACHED_BADGE
    if metric.get("degraded"):
        return FALLBACK_BADGE
    return LIVE_BADGE


def _error_caption(metric: Mapping[str, object]) -> str:
    message = str(metric.get("error"))
    if metric.get("kind") == "no_overlap_period":
        return f"{message}. {NO_OVERLAP_HINT}"
    return message


def build_metric_cards(response: Mapping[str, object]) -> list[dict[str, object]]:
    metrics = response.get("metrics")
    if not isinstance(metrics, Mapping):
        return []

    cards: list[dict[str, object]] = []
    for key, metric in metrics.items():
        if not isinstance(metric, Mapping):
            continue
        title = METRIC_TITLES.get(str(key), str(key))
        if "error" in metric:
            attempts = metric.get("attempts")
            cards.append(
                {
                    "key": key,
                    "title": title,
                    "badge": ERROR_BADGE,
                    "value": "-",
                    "delta": None,
                    "caption": _error_caption(metric),
                    "attempts": list(attempts) if isinstance(attempts, list) else [],
                }
            )
            continue

        as_of = metric.get("as_of_period") or "latest"
        cards.append(
            {
                "key": key,
                "title": title,
                "badge": _badge(metric),
                "value": _format_value(metric.get("value"), metric.get("unit")),
                "delta": _format_delta(metric),
                "caption": f"{metric.get('source')} · as of {as_of}",
                "attempts": [],
            }
        )
    return cards


def load_dashboard_response(aggregator: Aggregator) -> dict[str, object]:
    results = asyncio.run(aggregator.resolve_all(aggregator.metric_keys))
    return to_response(results)


def run_dashboard_app(aggregator: Aggregator, columns_per_row: int = 3) -> None:
    st = importlib.import_module("streamlit")

    st.set_page_config(page_title="Market Indicators", layout="wide")
    st.title("Market Indicators")

    response = load_dashboard_response(aggregator)
    cards = build_metric_cards(response)
    st.caption(f"{response.get('resolved', 0)} live or cached · {response.get('failed', 0)} unavailable")

    for start in range(0, len(cards), columns_per_row):
        row = cards[start : start + columns_per_row]
        for column, card in zip(st.columns(columns_per_row), row):
            with column:
                st.metric(f"{card['title']} · {card['badge']}", card["value"], card["delta"])
                st.caption(str(card["caption"]))
                if card["attempts"]:
                    with st.expander("Sources tried"):
                        st.json(card["attempts"])
