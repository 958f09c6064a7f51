"""Volume-edge strategy — profile → edge spike → decision.

Composes the three pure stages into one ``evaluate`` call that the backtest
engine drives bar by bar.
"""

from typing import Optional, Sequence

from edgetrade.config import StrategyParams
from edgetrade.strategy.decision import decide
from edgetrade.strategy.edge_detector import detect_edge_spike
from edgetrade.strategy.indicators import calculate_atr
from edgetrade.strategy.models import Bar, Decision
from edgetrade.strategy.volume_profile import build_volume_profile


class VolumeEdgeStrategy:
    """Trade volume spikes at the edges of the value area.

    Args:
        params: Strategy thresholds and weights.
        stop_loss_pct: Fixed stop distance as a fraction of price.
        take_profit_pct: Fixed target distance as a fraction of price.
        atr_period: ATR lookback for profile-anchored stops.
    """

    def __init__(
        self,
        params: StrategyParams,
        stop_loss_pct: float = 0.01,
        take_profit_pct: float = 0.02,
        atr_period: int = 14,
    ) -> None:
        self.params = params
        self.stop_loss_pct = stop_loss_pct
        self.take_profit_pct = take_profit_pct
        self.atr_period = atr_period

    def evaluate(
        self,
        window: Sequence[Bar],
        offset: int = 0,
        next_bar: Optional[Bar] = None,
        verbosity: int = 0,
    ) -> Decision:
        profile = build_volume_profile(window, self.params, offset, verbosity)
        if profile is None:
            return Decision.hold("no_profile")

        current = window[-1]
        breakdown = detect_edge_spike(
            profile, current, window[:-1], self.params,
            next_bar=next_bar, verbosity=verbosity,
        )

        atr = None
        if self.params.stop_mode == "atr" and len(window) > self.atr_period:
            atr = calculate_atr(window, self.atr_period)

        return decide(
            breakdown,
            current.close,
            profile,
            self.params,
            self.stop_loss_pct,
            self.take_profit_pct,
            atr=atr,
            verbosity=verbosity,
        )
