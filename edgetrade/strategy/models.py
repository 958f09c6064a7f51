"""Strategy data models — typed representations for bars, profiles and signals."""

from dataclasses import dataclass, field
from typing import Literal, Optional

Direction = Literal["long", "short"]
SignalType = Literal["BUY", "SELL", "HOLD"]
Confidence = Literal["HIGH", "MEDIUM", "LOW"]


@dataclass(frozen=True)
class Bar:
    """A single OHLCV bar.  ``timestamp`` is epoch milliseconds (UTC)."""

    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float

    @property
    def mid_price(self) -> float:
        return (self.high + self.low) / 2


@dataclass(frozen=True)
class BarRef:
    """Position of a bar in the full series and in its analysis window."""

    global_index: int
    local_index: int


@dataclass(frozen=True)
class VolumeProfile:
    """Volume distribution of one analysis window.

    ``buckets`` holds ``(price, volume)`` pairs sorted by price.  The edge
    bands hold references to every bar of the input window whose mid price
    falls inside the band.
    """

    vah: float
    val: float
    vpoc: float
    lower_edge: tuple[BarRef, ...]
    upper_edge: tuple[BarRef, ...]
    window_mean: float
    window_std: float
    global_mean: float
    global_std: float
    window_peak_volume: float
    latest: BarRef
    main_peak: BarRef
    window_range: tuple[BarRef, BarRef]
    buckets: tuple[tuple[float, float], ...] = ()

    def edge_of(self, global_index: int) -> Optional[Direction]:
        """Return ``"long"`` / ``"short"`` if *global_index* sits in an edge band."""
        if any(ref.global_index == global_index for ref in self.lower_edge):
            return "long"
        if any(ref.global_index == global_index for ref in self.upper_edge):
            return "short"
        return None


@dataclass(frozen=True)
class ParameterResult:
    """Outcome of one scoring factor (P1..P8)."""

    name: str
    passed: bool
    observed: float
    threshold: float
    weight: float = 0.0
    note: str = ""


@dataclass(frozen=True)
class ScoreBreakdown:
    """Full result of one edge-spike evaluation."""

    raw_score: float
    final_score: float
    direction: Optional[Direction]
    liquidity_multiplier: float = 0.0
    parameters: tuple[ParameterResult, ...] = ()

    def parameter(self, name: str) -> Optional[ParameterResult]:
        for result in self.parameters:
            if result.name == name:
                return result
        return None

    def passed(self, name: str) -> bool:
        result = self.parameter(name)
        return result is not None and result.passed

    @classmethod
    def zero(cls, parameters: tuple[ParameterResult, ...] = ()) -> "ScoreBreakdown":
        return cls(raw_score=0.0, final_score=0.0, direction=None,
                   liquidity_multiplier=0.0, parameters=parameters)


@dataclass(frozen=True)
class Decision:
    """A directional trade decision (or HOLD) with its risk levels."""

    signal: SignalType
    direction: Optional[Direction] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    confidence: Confidence = "LOW"
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown.zero)
    reason: str = ""
    partial_target: Optional[float] = None
    trail_distance: Optional[float] = None

    @property
    def is_trade(self) -> bool:
        return self.signal in ("BUY", "SELL")

    @classmethod
    def hold(
        cls,
        reason: str,
        breakdown: Optional[ScoreBreakdown] = None,
    ) -> "Decision":
        return cls(
            signal="HOLD",
            confidence="LOW",
            breakdown=breakdown if breakdown is not None else ScoreBreakdown.zero(),
            reason=reason,
        )
