"""Timeframe resolution for digest lookback windows."""

from datetime import UTC, date, datetime, timedelta

# Lookback windows in days. Anything not listed resolves to the default.
TIMEFRAME_DAYS: dict[str, int] = {"week": 7, "month": 30, "quarter": 90}
DEFAULT_LOOKBACK_DAYS = 30

TIMEFRAME_LABELS: dict[str, str] = {
    "week": "past week",
    "month": "past 30 days",
    "quarter": "past 3 months",
}
DEFAULT_TIMEFRAME_LABEL = "past 30 days"

VALID_TIMEFRAMES = tuple(TIMEFRAME_DAYS)
DEFAULT_TIMEFRAME = "month"


def resolve_lookback_days(timeframe: str | None) -> int:
    """Map a timeframe token to a lookback window in days.

    Unknown or missing tokens fall back to 30 days rather than raising.
    """
    if not isinstance(timeframe, str):
        return DEFAULT_LOOKBACK_DAYS
    return TIMEFRAME_DAYS.get(timeframe, DEFAULT_LOOKBACK_DAYS)


def timeframe_label(timeframe: str | None) -> str:
    """Human-readable label used in the user prompt."""
    if not isinstance(timeframe, str):
        return DEFAULT_TIMEFRAME_LABEL
    return TIMEFRAME_LABELS.get(timeframe, DEFAULT_TIMEFRAME_LABEL)


def resolve_start_date(timeframe: str | None, today: date | None = None) -> str:
    """ISO date (YYYY-MM-DD) marking the start of the lookback window."""
    today = today or datetime.now(UTC).date()
    return (today - timedelta(days=resolve_lookback_days(timeframe))).isoformat()
