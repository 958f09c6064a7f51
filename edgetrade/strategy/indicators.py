"""Technical indicators — ATR, EMA and volume statistics. Pure functions, no I/O."""

import math
from typing import Optional, Sequence

from edgetrade.strategy.models import Bar


def calculate_atr(bars: Sequence[Bar], period: int = 14) -> float:
    """Calculate the Average True Range over *period* bars.

    Uses the standard True Range definition:
        TR = max(high - low, |high - prev_close|, |low - prev_close|)

    Requires at least ``period + 1`` bars (need a previous close for TR).
    Returns the simple average of the last *period* true ranges.

    Raises ``ValueError`` if insufficient data.
    """
    if period < 1:
        raise ValueError(f"ATR period must be >= 1, got {period}")
    if len(bars) < period + 1:
        raise ValueError(
            f"Need at least {period + 1} bars for ATR({period}), "
            f"got {len(bars)}"
        )

    # Only the tail matters; avoid walking a 720-bar window every call
    tail = bars[-(period + 1):]
    true_ranges: list[float] = []
    for i in range(1, len(tail)):
        high = tail[i].high
        low = tail[i].low
        prev_close = tail[i - 1].close
        tr = max(
            high - low,
            abs(high - prev_close),
            abs(low - prev_close),
        )
        true_ranges.append(tr)

    return sum(true_ranges) / len(true_ranges)


def calculate_atr_series(bars: Sequence[Bar], period: int = 14) -> list[Optional[float]]:
    """Rolling ATR for every bar; ``None`` until *period* true ranges exist.

    The first bar's true range is its own high − low.
    """
    true_ranges: list[float] = []
    atr: list[Optional[float]] = []
    window_sum = 0.0
    for i, bar in enumerate(bars):
        if i == 0:
            tr = bar.high - bar.low
        else:
            prev_close = bars[i - 1].close
            tr = max(bar.high - bar.low, abs(bar.high - prev_close), abs(bar.low - prev_close))
        true_ranges.append(tr)
        window_sum += tr
        if i >= period:
            window_sum -= true_ranges[i - period]
        atr.append(window_sum / period if i >= period - 1 else None)
    return atr


def calculate_ema(bars: Sequence[Bar], period: int) -> list[float]:
    """Calculate an Exponential Moving Average series of closes.

    Uses the standard EMA formula:
        ``EMA_today = close × k + EMA_yesterday × (1 - k)``
    where ``k = 2 / (period + 1)``.

    The first EMA value is seeded with the SMA of the first *period*
    closes.  Entries before the seed are ``float('nan')``.

    Raises ``ValueError`` if fewer than *period* bars are provided.
    """
    if len(bars) < period:
        raise ValueError(
            f"Need at least {period} bars for EMA({period}), "
            f"got {len(bars)}"
        )

    k = 2.0 / (period + 1)
    closes = [b.close for b in bars]
    ema: list[float] = [float("nan")] * len(closes)

    # Seed: SMA of first *period* closes
    ema[period - 1] = sum(closes[:period]) / period

    for i in range(period, len(closes)):
        ema[i] = closes[i] * k + ema[i - 1] * (1 - k)

    return ema


# ── Volume statistics ────────────────────────────────────────────────────


def mean_std(values: Sequence[float]) -> tuple[float, float]:
    """Return ``(mean, population std)`` of *values*; ``(0.0, 0.0)`` if empty."""
    n = len(values)
    if n == 0:
        return 0.0, 0.0
    mean = sum(values) / n
    variance = sum((v - mean) ** 2 for v in values) / n
    return mean, math.sqrt(variance)


def average_volume(bars: Sequence[Bar]) -> float:
    """Mean volume of *bars*; 0.0 for an empty sequence."""
    if not bars:
        return 0.0
    return sum(b.volume for b in bars) / len(bars)


def safe_ratio(numerator: float, denominator: float) -> float:
    """``numerator / denominator``, or 0.0 when the denominator is not positive."""
    if denominator <= 0:
        return 0.0
    return numerator / denominator
