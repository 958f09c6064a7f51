"""Backtest data models — positions, trades, equity samples and results."""

from dataclasses import dataclass, field
from typing import Optional

from edgetrade.config import BacktestConfig, StrategyParams
from edgetrade.strategy.models import Decision, Direction

PARAMETER_NAMES = ("P1", "P2", "P3", "P4", "P5", "P6", "P7", "P8")


@dataclass
class SimulatedPosition:
    """The single open position of a run.  Stops move while it is open."""

    side: Direction
    entry_index: int
    entry_price: float
    quantity: float
    stop_loss: float
    take_profit: float
    entry_fee: float
    notional: float
    partial_target: Optional[float] = None
    trail_distance: Optional[float] = None

    @property
    def sign(self) -> int:
        return 1 if self.side == "long" else -1

    def unrealized(self, price: float, leverage: float) -> float:
        """Leveraged P&L at *price* before fees."""
        return (price - self.entry_price) * self.sign * self.quantity * leverage


@dataclass(frozen=True)
class Trade:
    """A closed (or partially closed) position."""

    side: Direction
    entry_index: int
    exit_index: int
    entry_price: float
    exit_price: float
    stop_loss_price: float
    take_profit_price: float
    quantity: float
    exit_reason: str
    gross_return: float
    leveraged_return: float
    net_return: float
    entry_fee: float
    exit_fee: float

    @property
    def total_fees(self) -> float:
        return self.entry_fee + self.exit_fee


@dataclass(frozen=True)
class EquityPoint:
    """One sample of the equity curve."""

    index: int
    timestamp: int
    equity: float
    position: Optional[SimulatedPosition] = None


@dataclass(frozen=True)
class PerformanceMetrics:
    """Return and risk statistics of a run.  Percentages are 0–100."""

    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0

    total_return: float = 0.0
    total_return_pct: float = 0.0
    annualized_return: float = 0.0

    max_drawdown: float = 0.0
    max_drawdown_pct: float = 0.0
    max_drawdown_duration: int = 0
    max_drawdown_start: int = 0
    max_drawdown_end: int = 0

    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    calmar_ratio: float = 0.0
    profit_factor: float = 0.0

    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    avg_trade: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0

    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    current_streak: int = 0

    expectancy: float = 0.0
    kelly_criterion: float = 0.0

    @classmethod
    def empty(cls) -> "PerformanceMetrics":
        """All-zero metrics for a run without trades."""
        return cls()


@dataclass(frozen=True)
class Distribution:
    """Summary of a simulated distribution (nearest-rank percentiles)."""

    min: float
    max: float
    mean: float
    median: float
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float
    p95: float


@dataclass(frozen=True)
class MonteCarloResult:
    """Outcome of trade-order resampling."""

    simulations: int
    final_return: Distribution
    max_drawdown: Distribution
    probability_of_profit: float
    mean_final_equity: float


@dataclass
class SignalStats:
    """Counters collected while a run evaluates bars."""

    total: int = 0
    buy: int = 0
    sell: int = 0
    hold: int = 0
    errors: int = 0
    edge_hits: int = 0
    vetoed: int = 0
    hold_reasons: dict[str, int] = field(default_factory=dict)
    parameter_passes: dict[str, int] = field(
        default_factory=lambda: {name: 0 for name in PARAMETER_NAMES}
    )

    def record(self, decision: Decision) -> None:
        """Count one evaluated decision."""
        self.total += 1
        if decision.signal == "BUY":
            self.buy += 1
        elif decision.signal == "SELL":
            self.sell += 1
        else:
            self.hold += 1
            self.hold_reasons[decision.reason] = self.hold_reasons.get(decision.reason, 0) + 1

        breakdown = decision.breakdown
        if breakdown.direction is not None:
            self.edge_hits += 1
            for result in breakdown.parameters:
                if result.passed:
                    self.parameter_passes[result.name] = (
                        self.parameter_passes.get(result.name, 0) + 1
                    )

    def record_error(self) -> None:
        self.total += 1
        self.hold += 1
        self.errors += 1
        self.hold_reasons["error"] = self.hold_reasons.get("error", 0) + 1

    @property
    def signals(self) -> int:
        return self.buy + self.sell

    @property
    def conversion_rate(self) -> float:
        """Share of edge hits that became BUY/SELL signals, in percent."""
        if self.edge_hits == 0:
            return 0.0
        return self.signals / self.edge_hits * 100.0


@dataclass(frozen=True)
class BacktestResult:
    """Everything one run produces."""

    metrics: PerformanceMetrics
    trades: list[Trade]
    equity_curve: list[EquityPoint]
    signal_stats: SignalStats
    monte_carlo: Optional[MonteCarloResult]
    config: BacktestConfig
    params: StrategyParams = field(default_factory=StrategyParams)
