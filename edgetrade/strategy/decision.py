"""Signal decision — turns a score breakdown into BUY / SELL / HOLD. Pure function."""

import logging
from typing import Optional

from edgetrade.config import StrategyParams
from edgetrade.risk.sl_tp import fixed_levels, profile_levels
from edgetrade.strategy.models import Decision, ScoreBreakdown, VolumeProfile

logger = logging.getLogger("edgetrade.strategy.decision")


def decide(
    breakdown: ScoreBreakdown,
    current_price: float,
    profile: VolumeProfile,
    params: StrategyParams,
    stop_loss_pct: float,
    take_profit_pct: float,
    atr: Optional[float] = None,
    verbosity: int = 0,
) -> Decision:
    """Map *breakdown* to a trade decision with stop-loss and take-profit.

    HOLD reasons:
        ``outside_edge``          no direction (P1 failed or no input)
        ``burst_missing``         P4 did not pass
        ``score_below_threshold`` final score under ``params.score_threshold``

    In ``stop_mode="atr"`` the stops come from the profile and ATR; when
    that is not possible the fixed percentages are used instead.
    """
    if breakdown.direction is None:
        return Decision.hold("outside_edge", breakdown)
    if not breakdown.passed("P4"):
        return Decision.hold("burst_missing", breakdown)
    if breakdown.final_score < params.score_threshold:
        return Decision.hold("score_below_threshold", breakdown)

    direction = breakdown.direction
    levels = None
    if params.stop_mode == "atr":
        levels = profile_levels(
            current_price, direction, profile, atr,
            stop_atr_mult=params.atr_stop_mult,
            trail_atr_mult=params.atr_trail_mult,
        )
        if levels is None and verbosity >= 1:
            logger.info("Profile stops unavailable (atr=%s), using fixed levels", atr)
    if levels is None:
        levels = fixed_levels(current_price, direction, stop_loss_pct, take_profit_pct)

    confidence = "HIGH" if breakdown.final_score >= params.high_confidence_score else "MEDIUM"
    decision = Decision(
        signal="BUY" if direction == "long" else "SELL",
        direction=direction,
        stop_loss=levels.stop_loss,
        take_profit=levels.take_profit,
        confidence=confidence,
        breakdown=breakdown,
        reason=levels.source,
        partial_target=levels.partial_target,
        trail_distance=levels.trail_distance,
    )

    if verbosity >= 1:
        logger.info(
            "%s @ %.2f score=%.3f (%s) SL=%.2f TP=%.2f",
            decision.signal, current_price, breakdown.final_score,
            confidence, levels.stop_loss, levels.take_profit,
        )
    return decision
