"""Session filter — pure function, maps a bar's UTC hour to a liquidity coefficient."""

from datetime import datetime, timezone


def session_coefficient(
    timestamp_ms: int,
    bands: tuple[tuple[int, int, float], ...],
    default: float = 1.0,
) -> float:
    """Return the liquidity coefficient of the session containing *timestamp_ms*.

    Args:
        timestamp_ms: Bar open time, epoch milliseconds (UTC).
        bands: ``(start_hour, end_hour, coefficient)`` triples, start
            inclusive, end exclusive.
        default: Coefficient for hours no band covers.
    """
    utc_hour = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).hour
    for start, end, coefficient in bands:
        if start <= utc_hour < end:
            return coefficient
    return default
