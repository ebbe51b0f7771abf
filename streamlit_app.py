from __future__ import annotations

import logging

import streamlit as st

from src.dashboard.app import run_dashboard_app
from src.indicators.aggregator import Aggregator
from src.indicators.catalog import build_aggregator
from src.indicators.cli import configure_logging
from src.indicators.config import Settings

LOGGER = logging.getLogger(__name__)


@st.cache_resource
def _process_aggregator() -> Aggregator:
    # one cache per serving process, shared by every session
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    LOGGER.info("building aggregator (timeout=%ss)", settings.provider_timeout_seconds)
    return build_aggregator(settings)


def main() -> None:
    run_dashboard_app(_process_aggregator())


if __name__ == "__main__":
    main()
