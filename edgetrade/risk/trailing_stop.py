"""Trailing stop — progressive SL management for open positions.

Rules:
  - The stop trails the close by a fixed distance (k × ATR at entry).
  - The stop only ever tightens.
  - Once the partial target is hit the stop moves to breakeven.
"""

from typing import Optional


class TrailingStop:
    """Tracks and updates SL for a single position.

    Args:
        entry_price: Original entry price.
        initial_sl: Original stop-loss price.
        direction: ``"long"`` or ``"short"``.
        distance: Trailing distance in price units.
    """

    def __init__(
        self,
        entry_price: float,
        initial_sl: float,
        direction: str,
        distance: float,
    ) -> None:
        if direction not in ("long", "short"):
            raise ValueError(f"direction must be 'long' or 'short', got '{direction}'")
        self.entry_price = entry_price
        self.direction = direction
        self.distance = distance
        self.current_sl = initial_sl

    def update(self, current_price: float) -> Optional[float]:
        """Evaluate the current price and return a new SL if it should move.

        Returns:
            New SL price if the stop should be adjusted, ``None`` if no change.
        """
        if self.distance <= 0:
            return None

        if self.direction == "long":
            candidate = current_price - self.distance
            if candidate > self.current_sl:
                self.current_sl = candidate
                return candidate
        else:
            candidate = current_price + self.distance
            if candidate < self.current_sl:
                self.current_sl = candidate
                return candidate
        return None

    def move_to_breakeven(self) -> Optional[float]:
        """Tighten the stop to the entry price; ``None`` if already tighter."""
        if self.direction == "long" and self.current_sl < self.entry_price:
            self.current_sl = self.entry_price
            return self.entry_price
        if self.direction == "short" and self.current_sl > self.entry_price:
            self.current_sl = self.entry_price
            return self.entry_price
        return None
