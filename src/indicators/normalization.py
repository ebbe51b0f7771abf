import re
from datetime import date, datetime, timezone
from typing import Optional

from .models import MISSING, ObservationValue, PeriodKey


MISSING_MARKERS = {".", "NA", "NaN", "N/A", "null", "-"}


def parse_period(value: object, frequency: Optional[str] = None) -> Optional[PeriodKey]:
    """Turn an upstream date label into a PeriodKey.

    ``frequency`` forces the granularity (FRED labels quarters and years by
    their first day, e.g. ``2021-07-01`` for 2021-Q3).
    """
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return _with_frequency(value, frequency)
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    quarter_match = re.fullmatch(r"(\d{4})-?Q([1-4])", text, flags=re.IGNORECASE)
    if quarter_match:
        return PeriodKey.quarterly(int(quarter_match.group(1)), int(quarter_match.group(2)))

    if re.fullmatch(r"\d{4}", text):
        return PeriodKey.annual(int(text))

    for fmt in ("%Y-%m-%d", "%Y%m%d", "%m/%d/%Y", "%Y-%m", "%Y%m"):
        try:
            parsed = datetime.strptime(text, fmt).date()
        except ValueError:
            continue
        if fmt in ("%Y-%m", "%Y%m") and frequency is None:
            return PeriodKey.monthly(parsed.year, parsed.month)
        return _with_frequency(parsed, frequency)
    return None


def _with_frequency(day: date, frequency: Optional[str]) -> PeriodKey:
    if frequency == "A":
        return PeriodKey.annual(day.year)
    if frequency == "Q":
        return PeriodKey.quarterly(day.year, (day.month - 1) // 3 + 1)
    if frequency == "M":
        return PeriodKey.monthly(day.year, day.month)
    return PeriodKey.daily(day)


def parse_value(value: object) -> ObservationValue:
    if isinstance(value, bool) or value is None:
        return MISSING
    if isinstance(value, (int, float)):
        number = float(value)
        return MISSING if number != number else number
    if isinstance(value, str):
        cleaned = value.strip().replace(",", "")
        if not cleaned or cleaned in MISSING_MARKERS:
            return MISSING
        try:
            number = float(cleaned)
        except ValueError:
            return MISSING
        return MISSING if number != number else number
    return MISSING


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
