"""Drawdown tracking — pure math, no I/O.

Tracks peak equity, the current drawdown and the deepest drawdown seen,
with the positions where that drawdown started (peak) and bottomed out.
"""


class DrawdownTracker:
    """Tracks equity peaks and computes drawdown metrics.

    Args:
        initial_equity: Starting account equity.
    """

    def __init__(self, initial_equity: float) -> None:
        if initial_equity <= 0:
            raise ValueError(
                f"initial_equity must be positive, got {initial_equity}"
            )
        self._peak_equity: float = initial_equity
        self._current_equity: float = initial_equity
        self._peak_pos: int = 0
        self._pos: int = 0
        self._max_dd: float = 0.0
        self._max_dd_pct: float = 0.0
        self._max_dd_start: int = 0
        self._max_dd_end: int = 0

    # ── Mutation ─────────────────────────────────────────────────────────

    def update(self, equity: float) -> None:
        """Record the next equity value.

        If *equity* exceeds the current peak, the peak is raised.  Otherwise
        the drawdown from the peak is compared with the deepest so far.
        """
        self._pos += 1
        self._current_equity = equity
        if equity > self._peak_equity:
            self._peak_equity = equity
            self._peak_pos = self._pos
            return

        dd = self._peak_equity - equity
        dd_pct = dd / self._peak_equity * 100.0 if self._peak_equity > 0 else 0.0
        if dd_pct > self._max_dd_pct:
            self._max_dd = dd
            self._max_dd_pct = dd_pct
            self._max_dd_start = self._peak_pos
            self._max_dd_end = self._pos

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def peak_equity(self) -> float:
        """Highest equity recorded."""
        return self._peak_equity

    @property
    def current_equity(self) -> float:
        """Most recently recorded equity."""
        return self._current_equity

    @property
    def drawdown_pct(self) -> float:
        """Current drawdown as a percentage of peak equity."""
        if self._peak_equity == 0:
            return 0.0
        return (
            (self._peak_equity - self._current_equity) / self._peak_equity
        ) * 100.0

    @property
    def max_drawdown(self) -> float:
        """Deepest peak-to-trough decline in currency units."""
        return self._max_dd

    @property
    def max_drawdown_pct(self) -> float:
        """Deepest decline as a percentage of the peak it fell from."""
        return self._max_dd_pct

    @property
    def max_drawdown_span(self) -> tuple[int, int]:
        """``(peak_position, trough_position)`` of the deepest drawdown.

        Positions count updates, with the initial equity at position 0.
        """
        return self._max_dd_start, self._max_dd_end
