"""Backtest engine — replays historical bars through strategy and risk.

Iterates bars chronologically, evaluating signals and simulating one
leveraged position at a time with virtual equity.  No real orders are placed.
"""

import dataclasses
import logging
from typing import Optional, Sequence

from edgetrade.backtest.models import (
    BacktestResult,
    EquityPoint,
    SignalStats,
    SimulatedPosition,
    Trade,
)
from edgetrade.backtest.montecarlo import monte_carlo
from edgetrade.backtest.stats import analyze
from edgetrade.config import DEFAULT_SEGMENTS, BacktestConfig, Segment, StrategyParams
from edgetrade.data.loader import slice_by_time
from edgetrade.errors import InsufficientDataError
from edgetrade.risk.sl_tp import fixed_levels
from edgetrade.risk.trailing_stop import TrailingStop
from edgetrade.strategy.base import SignalSource
from edgetrade.strategy.indicators import calculate_atr_series
from edgetrade.strategy.models import Bar, Decision
from edgetrade.strategy.trend import EmaTrendFilter
from edgetrade.strategy.volume_edge import VolumeEdgeStrategy

logger = logging.getLogger("edgetrade.backtest")

_ERROR_LOG_LIMIT = 10
_PROGRESS_EVERY = 10_000


class BacktestEngine:
    """Simulates the strategy on historical bar data.

    Args:
        config: Execution and accounting settings.
        params: Strategy thresholds (defaults to ``StrategyParams()``).
        source: Signal source; defaults to ``VolumeEdgeStrategy(params)``.
        trend_filter: Trend gate; defaults to ``EmaTrendFilter`` when
            ``config.use_trend_filter`` is set.
        seed: Seed for the Monte Carlo generator.
    """

    def __init__(
        self,
        config: BacktestConfig,
        params: Optional[StrategyParams] = None,
        source: Optional[SignalSource] = None,
        trend_filter: Optional[EmaTrendFilter] = None,
        seed: Optional[int] = None,
    ) -> None:
        self._config = config
        self._params = params if params is not None else StrategyParams()
        self._source = source if source is not None else VolumeEdgeStrategy(
            self._params,
            stop_loss_pct=config.stop_loss_pct,
            take_profit_pct=config.take_profit_pct,
            atr_period=config.atr_period,
        )
        if trend_filter is None and config.use_trend_filter:
            trend_filter = EmaTrendFilter(short_only=config.short_only)
        self._trend_filter = trend_filter
        self._seed = seed

        # Per-run state, reset by run()
        self._capital = config.initial_capital
        self._position: Optional[SimulatedPosition] = None
        self._trailing: Optional[TrailingStop] = None
        self._trades: list[Trade] = []
        self._atr: list[Optional[float]] = []

    @property
    def warmup(self) -> int:
        """Index of the first evaluated bar."""
        return max(self._config.min_bars, self._params.lookback - 1)

    # ── Public API ───────────────────────────────────────────────────────

    def run(self, bars: Sequence[Bar], verbosity: int = 0) -> BacktestResult:
        """Execute a full backtest over *bars*.

        Raises:
            InsufficientDataError: fewer than ``warmup + 1`` bars.
        """
        cfg = self._config
        start = self.warmup
        n = len(bars)
        if n < start + 1:
            raise InsufficientDataError(start + 1, n)

        self._capital = cfg.initial_capital
        self._position = None
        self._trailing = None
        self._trades = []
        self._atr = (
            calculate_atr_series(bars, cfg.atr_period)
            if cfg.slippage_mode == "dynamic" else []
        )
        stats = SignalStats()
        equity_curve = [EquityPoint(0, bars[0].timestamp, self._capital)]
        lookback = self._params.lookback

        logger.info(
            "Backtest %s %s: %d bars, evaluating from %d", cfg.symbol, cfg.timeframe, n, start,
        )

        for i in range(start, n):
            bar = bars[i]
            price = bar.close

            if self._position is not None:
                self._manage_position(i, price, verbosity)
            else:
                offset = i - lookback + 1
                next_bar = bars[i + 1] if cfg.use_lookahead and i + 1 < n else None
                try:
                    decision = self._source.evaluate(
                        bars[offset:i + 1], offset, next_bar, verbosity,
                    )
                except (ValueError, ArithmeticError) as exc:
                    stats.record_error()
                    if stats.errors <= _ERROR_LOG_LIMIT or i % 1000 == 0:
                        logger.warning("Bar %d: signal evaluation failed: %s", i, exc)
                    decision = None

                if decision is not None:
                    stats.record(decision)
                    if decision.is_trade:
                        if self._vetoed(bars[offset:i + 1], decision, verbosity):
                            stats.vetoed += 1
                        else:
                            self._open(i, price, decision, verbosity)

            if i % cfg.equity_sample_stride == 0 or self._position is not None:
                equity_curve.append(EquityPoint(
                    index=i,
                    timestamp=bar.timestamp,
                    equity=self._equity(price),
                    position=(
                        dataclasses.replace(self._position)
                        if self._position is not None else None
                    ),
                ))

            if verbosity >= 1 and i % _PROGRESS_EVERY == 0:
                logger.info(
                    "Progress %.1f%% (%d/%d): BUY=%d SELL=%d HOLD=%d errors=%d trades=%d",
                    (i - start) / max(n - start, 1) * 100, i, n,
                    stats.buy, stats.sell, stats.hold, stats.errors, len(self._trades),
                )

        if self._position is not None:
            self._close(n - 1, bars[-1].close, 1.0, "backtest_end", verbosity)
        final = EquityPoint(n - 1, bars[-1].timestamp, self._capital)
        # The loop may already have sampled the last bar; keep one point per index
        if equity_curve[-1].index == n - 1:
            equity_curve[-1] = final
        else:
            equity_curve.append(final)

        logger.info(
            "Backtest done: %d signals (BUY=%d SELL=%d HOLD=%d errors=%d), "
            "edge hits=%d, conversion=%.2f%%, trades=%d",
            stats.total, stats.buy, stats.sell, stats.hold, stats.errors,
            stats.edge_hits, stats.conversion_rate, len(self._trades),
        )

        trades = list(self._trades)
        metrics = analyze(trades, equity_curve, cfg.initial_capital)
        mc = None
        if cfg.monte_carlo_runs > 0:
            mc = monte_carlo(
                trades, cfg.initial_capital,
                n_simulations=cfg.monte_carlo_runs,
                seed=self._seed,
                min_trades=cfg.monte_carlo_min_trades,
            )

        return BacktestResult(
            metrics=metrics,
            trades=trades,
            equity_curve=equity_curve,
            signal_stats=stats,
            monte_carlo=mc,
            config=cfg,
            params=self._params,
        )

    def run_segmented(
        self,
        bars: Sequence[Bar],
        segments: Sequence[Segment] = DEFAULT_SEGMENTS,
        verbosity: int = 0,
    ) -> dict[str, BacktestResult]:
        """Run one backtest per named date range.

        Segments with too few bars are skipped with a warning.
        """
        results: dict[str, BacktestResult] = {}
        for segment in segments:
            segment_bars = slice_by_time(bars, segment.start, segment.end)
            logger.info(
                "Segment %s (%s → %s): %d bars",
                segment.name, segment.start, segment.end, len(segment_bars),
            )
            if len(segment_bars) < self.warmup + 1:
                logger.warning(
                    "Skipping segment %s: %d bars (need %d)",
                    segment.name, len(segment_bars), self.warmup + 1,
                )
                continue
            results[segment.name] = self.run(segment_bars, verbosity)
        return results

    # ── Position lifecycle ───────────────────────────────────────────────

    def _vetoed(self, window: Sequence[Bar], decision: Decision, verbosity: int) -> bool:
        """Apply the short-only switch and the trend gate to a BUY/SELL."""
        direction = decision.direction
        if self._config.short_only and direction == "long":
            if verbosity >= 1:
                logger.info("Long signal rejected: short-only mode")
            return True
        if self._trend_filter is None:
            return False

        verdict = self._trend_filter.check(window, direction, decision.breakdown.final_score)
        if not verdict.allowed and verbosity >= 1:
            logger.info(
                "Trend filter veto: %s %s score=%.3f < %.2f (%s)",
                verdict.state, direction, decision.breakdown.final_score,
                verdict.required_score, verdict.reason,
            )
        return not verdict.allowed

    def _open(self, index: int, price: float, decision: Decision, verbosity: int) -> None:
        cfg = self._config
        direction = decision.direction
        sign = 1 if direction == "long" else -1
        entry_price = price * (1 + sign * self._slippage(index, price))

        stop_loss, take_profit = decision.stop_loss, decision.take_profit
        if decision.reason != "profile" or stop_loss is None or take_profit is None:
            levels = fixed_levels(entry_price, direction, cfg.stop_loss_pct, cfg.take_profit_pct)
            stop_loss, take_profit = levels.stop_loss, levels.take_profit

        self._position = SimulatedPosition(
            side=direction,
            entry_index=index,
            entry_price=entry_price,
            quantity=cfg.position_size_usd / entry_price,
            stop_loss=stop_loss,
            take_profit=take_profit,
            entry_fee=cfg.position_size_usd * cfg.fee_rate,
            notional=cfg.position_size_usd,
            partial_target=decision.partial_target,
            trail_distance=decision.trail_distance,
        )
        self._trailing = (
            TrailingStop(entry_price, stop_loss, direction, decision.trail_distance)
            if decision.trail_distance else None
        )
        if verbosity >= 1:
            logger.info(
                "Open %s @ %.2f (bar %d) SL=%.2f TP=%.2f confidence=%s",
                direction, entry_price, index, stop_loss, take_profit, decision.confidence,
            )

    def _manage_position(self, index: int, price: float, verbosity: int) -> None:
        """Trailing stop, then partial target, then SL/TP against the close."""
        pos = self._position

        if self._trailing is not None and self._trailing.update(price) is not None:
            pos.stop_loss = self._trailing.current_sl

        if pos.partial_target is not None and _reached(pos.side, price, pos.partial_target):
            level = pos.partial_target
            pos.partial_target = None
            self._close(index, level, self._params.partial_fraction, "partial_target", verbosity)
            if self._trailing is not None:
                if self._trailing.move_to_breakeven() is not None:
                    pos.stop_loss = self._trailing.current_sl
            elif (pos.stop_loss - pos.entry_price) * pos.sign < 0:
                pos.stop_loss = pos.entry_price

        result = self._check_exit(pos, price)
        if result is not None:
            level, reason = result
            self._close(index, level, 1.0, reason, verbosity)

    def _close(
        self,
        index: int,
        level: float,
        fraction: float,
        reason: str,
        verbosity: int,
    ) -> Trade:
        """Close *fraction* of the open position at *level* (exit slippage applied)."""
        cfg = self._config
        pos = self._position
        exit_price = level * (1 - pos.sign * self._slippage(index, level))

        quantity = pos.quantity * fraction
        entry_fee = pos.entry_fee * fraction
        exit_fee = pos.notional * fraction * cfg.fee_rate
        gross = (exit_price - pos.entry_price) * pos.sign * quantity
        leveraged = gross * cfg.leverage
        net = leveraged - entry_fee - exit_fee

        trade = Trade(
            side=pos.side,
            entry_index=pos.entry_index,
            exit_index=index,
            entry_price=pos.entry_price,
            exit_price=exit_price,
            stop_loss_price=pos.stop_loss,
            take_profit_price=pos.take_profit,
            quantity=quantity,
            exit_reason=reason,
            gross_return=gross,
            leveraged_return=leveraged,
            net_return=net,
            entry_fee=entry_fee,
            exit_fee=exit_fee,
        )
        self._trades.append(trade)
        self._capital += net

        if fraction >= 1.0:
            self._position = None
            self._trailing = None
        else:
            pos.quantity -= quantity
            pos.entry_fee -= entry_fee
            pos.notional -= pos.notional * fraction

        if verbosity >= 1:
            logger.info(
                "Close %s @ %.2f (bar %d) net=%.2f reason=%s",
                pos.side, exit_price, index, net, reason,
            )
        return trade

    # ── Helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def _check_exit(
        pos: SimulatedPosition, price: float,
    ) -> Optional[tuple[float, str]]:
        """Check whether the close *price* triggers an SL or TP exit.

        Returns ``(level, reason)`` or ``None``.  Take-profit wins when both
        levels are crossed.
        """
        if _reached(pos.side, price, pos.take_profit):
            return pos.take_profit, "take_profit"
        if (price - pos.stop_loss) * pos.sign <= 0:
            return pos.stop_loss, "stop_loss"
        return None

    def _slippage(self, index: int, price: float) -> float:
        cfg = self._config
        if cfg.slippage_mode == "dynamic" and index < len(self._atr):
            atr = self._atr[index]
            if atr and price > 0:
                return atr * cfg.atr_factor / price
        return cfg.fixed_slippage

    def _equity(self, price: float) -> float:
        """Capital plus unrealised P&L, net of the open position's entry fee."""
        if self._position is None:
            return self._capital
        pos = self._position
        return self._capital + pos.unrealized(price, self._config.leverage) - pos.entry_fee


def _reached(side: str, price: float, level: float) -> bool:
    """Has *price* reached a profit-side *level* for *side*?"""
    if side == "long":
        return price >= level
    return price <= level
