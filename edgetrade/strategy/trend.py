"""Trend filter — EMA-based market state and score gates.

Classifies the market from EMA(20/50/100) over the last 100 bars, then
decides whether a signal of a given direction and score may trade:

- **Ranging**: score ≥ 0.60.
- **With the trend**: score ≥ 0.45.
- **Against the trend**: score ≥ 0.65.
- **Unknown** (not enough bars): score ≥ 0.55.

An optional short-only switch rejects every long signal.
"""

from dataclasses import dataclass
from typing import Literal, Sequence

from edgetrade.strategy.indicators import calculate_ema
from edgetrade.strategy.models import Bar, Direction

MarketState = Literal["UPTREND", "DOWNTREND", "RANGING", "UNKNOWN"]


@dataclass(frozen=True)
class FilterVerdict:
    """Outcome of the trend gate for one signal."""

    allowed: bool
    state: MarketState
    required_score: float
    reason: str


class EmaTrendFilter:
    """Gate signals by market state.

    Args:
        short_only: Reject all long signals.
        gap_threshold: Minimum relative EMA20/EMA50 gap for a trend.
        ranging_score: Score required in a ranging market.
        with_trend_score: Score required when trading with the trend.
        counter_trend_score: Score required when trading against it.
        unknown_score: Score required when the state is unknown.
    """

    lookback = 100

    def __init__(
        self,
        short_only: bool = False,
        gap_threshold: float = 0.005,
        ranging_score: float = 0.60,
        with_trend_score: float = 0.45,
        counter_trend_score: float = 0.65,
        unknown_score: float = 0.55,
    ) -> None:
        self.short_only = short_only
        self.gap_threshold = gap_threshold
        self.ranging_score = ranging_score
        self.with_trend_score = with_trend_score
        self.counter_trend_score = counter_trend_score
        self.unknown_score = unknown_score

    def identify_market_state(self, bars: Sequence[Bar]) -> MarketState:
        """Classify the market from the last ``lookback`` bars."""
        if len(bars) < self.lookback:
            return "UNKNOWN"

        recent = bars[-self.lookback:]
        ema20 = calculate_ema(recent, 20)[-1]
        ema50 = calculate_ema(recent, 50)[-1]
        ema100 = calculate_ema(recent, 100)[-1]

        gap = abs(ema20 - ema50) / ema50 if ema50 else 0.0
        if gap <= self.gap_threshold:
            return "RANGING"
        if ema20 > ema50 > ema100:
            return "UPTREND"
        if ema20 < ema50 < ema100:
            return "DOWNTREND"
        return "RANGING"

    def should_execute(
        self,
        state: MarketState,
        direction: Direction,
        score: float,
    ) -> FilterVerdict:
        """Return whether a *direction* signal with *score* may trade in *state*."""
        if self.short_only and direction == "long":
            return FilterVerdict(False, state, float("inf"), "short_only")

        if state == "RANGING":
            required = self.ranging_score
            reason = "ranging"
        elif state == "UNKNOWN":
            required = self.unknown_score
            reason = "unknown_state"
        elif (state == "UPTREND") == (direction == "long"):
            required = self.with_trend_score
            reason = "with_trend"
        else:
            required = self.counter_trend_score
            reason = "counter_trend"

        return FilterVerdict(score >= required, state, required, reason)

    def check(self, bars: Sequence[Bar], direction: Direction, score: float) -> FilterVerdict:
        """Classify *bars* and gate the signal in one call."""
        return self.should_execute(self.identify_market_state(bars), direction, score)
