"""Stop-loss and take-profit calculation — pure math, no I/O.

Fixed approach (default):
    SL and TP are fixed percentages of the entry price.

Profile-anchored approach (``stop_mode="atr"``):
    TP is the opposite side of the value area (VAH for longs, VAL for shorts).
    SL sits k × ATR beyond the near side of the value area or the entry,
    whichever is further from the target.  VPOC becomes a partial target
    when it lies between the entry and TP.
"""

from dataclasses import dataclass
from typing import Optional

from edgetrade.strategy.models import Direction, VolumeProfile


@dataclass(frozen=True)
class RiskLevels:
    """Computed stop-loss and take-profit for a trade."""

    stop_loss: float
    take_profit: float
    source: str  # "fixed" or "profile"
    partial_target: Optional[float] = None
    trail_distance: Optional[float] = None


def fixed_levels(
    entry_price: float,
    direction: Direction,
    stop_loss_pct: float,
    take_profit_pct: float,
) -> RiskLevels:
    """Percentage stops around *entry_price*.

    Raises ``ValueError`` for an unknown direction.
    """
    if direction == "long":
        return RiskLevels(
            stop_loss=entry_price * (1 - stop_loss_pct),
            take_profit=entry_price * (1 + take_profit_pct),
            source="fixed",
        )
    if direction == "short":
        return RiskLevels(
            stop_loss=entry_price * (1 + stop_loss_pct),
            take_profit=entry_price * (1 - take_profit_pct),
            source="fixed",
        )
    raise ValueError(f"direction must be 'long' or 'short', got '{direction}'")


def profile_levels(
    entry_price: float,
    direction: Direction,
    profile: VolumeProfile,
    atr: Optional[float],
    stop_atr_mult: float = 1.0,
    trail_atr_mult: float = 1.5,
) -> Optional[RiskLevels]:
    """Profile-anchored stops.

    Returns ``None`` when ATR is missing or zero, or when the target lies
    on the wrong side of *entry_price*; callers fall back to fixed levels.
    """
    if atr is None or atr <= 0:
        return None

    buffer = stop_atr_mult * atr
    if direction == "long":
        target = profile.vah
        if target <= entry_price:
            return None
        stop = min(profile.val, entry_price) - buffer
        partial = profile.vpoc if entry_price < profile.vpoc < target else None
    elif direction == "short":
        target = profile.val
        if target >= entry_price:
            return None
        stop = max(profile.vah, entry_price) + buffer
        partial = profile.vpoc if target < profile.vpoc < entry_price else None
    else:
        raise ValueError(f"direction must be 'long' or 'short', got '{direction}'")

    return RiskLevels(
        stop_loss=stop,
        take_profit=target,
        source="profile",
        partial_target=partial,
        trail_distance=trail_atr_mult * atr,
    )
