"""Signal source protocol.

Defines the interface the backtest engine drives.  Any object with a
matching ``evaluate`` can stand in for the volume-edge strategy.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence, runtime_checkable

from edgetrade.strategy.models import Bar, Decision


@runtime_checkable
class SignalSource(Protocol):
    """Interface that all signal sources must satisfy."""

    def evaluate(
        self,
        window: Sequence[Bar],
        offset: int = 0,
        next_bar: Optional[Bar] = None,
        verbosity: int = 0,
    ) -> Decision:
        """Evaluate the last bar of *window* and return a decision.

        *offset* is the global index of ``window[0]``; *next_bar* is the bar
        after the window when look-ahead is allowed.
        """
        ...
