"""Backtest statistics — pure functions for trade-series analysis."""

import logging
import math
from typing import Sequence

from edgetrade.backtest.models import EquityPoint, PerformanceMetrics, Trade
from edgetrade.risk.drawdown import DrawdownTracker

logger = logging.getLogger("edgetrade.backtest.stats")

DAYS_PER_YEAR = 365
RISK_FREE_RATE = 0.02
_MS_PER_DAY = 1000 * 60 * 60 * 24


def analyze(
    trades: Sequence[Trade],
    equity_curve: Sequence[EquityPoint],
    initial_capital: float,
) -> PerformanceMetrics:
    """Compute summary statistics from closed trades and the equity curve.

    Returns ``PerformanceMetrics.empty()`` when there are no trades.
    """
    if not trades or not equity_curve:
        logger.info("No closed trades, returning empty metrics")
        return PerformanceMetrics.empty()

    nets = [t.net_return for t in trades]
    total = len(nets)
    winners = [p for p in nets if p > 0]
    losers = [p for p in nets if p < 0]

    final_equity = equity_curve[-1].equity
    total_return = final_equity - initial_capital
    years = _years(equity_curve)
    annualized = _annualized_return(final_equity, initial_capital, years)

    dd, dd_pct, dd_start, dd_end = max_drawdown([p.equity for p in equity_curve])
    duration = equity_curve[dd_end].index - equity_curve[dd_start].index

    sharpe, sortino = _risk_adjusted([p / initial_capital for p in nets], years)

    gross_profit = sum(winners)
    gross_loss = abs(sum(losers))
    win_rate = len(winners) / total * 100.0
    avg_win = gross_profit / len(winners) if winners else 0.0
    avg_loss = sum(losers) / len(losers) if losers else 0.0
    max_wins, max_losses, current = _streaks(nets)

    return PerformanceMetrics(
        total_trades=total,
        winning_trades=len(winners),
        losing_trades=len(losers),
        total_return=total_return,
        total_return_pct=total_return / initial_capital * 100.0,
        annualized_return=annualized,
        max_drawdown=dd,
        max_drawdown_pct=dd_pct,
        max_drawdown_duration=duration,
        max_drawdown_start=dd_start,
        max_drawdown_end=dd_end,
        sharpe_ratio=sharpe,
        sortino_ratio=sortino,
        calmar_ratio=annualized / abs(dd_pct) if dd_pct != 0 else 0.0,
        profit_factor=gross_profit / gross_loss if gross_loss > 0 else 0.0,
        win_rate=win_rate,
        avg_win=avg_win,
        avg_loss=avg_loss,
        avg_trade=sum(nets) / total,
        largest_win=max(winners) if winners else 0.0,
        largest_loss=min(losers) if losers else 0.0,
        max_consecutive_wins=max_wins,
        max_consecutive_losses=max_losses,
        current_streak=current,
        expectancy=(win_rate / 100.0) * avg_win + ((100.0 - win_rate) / 100.0) * avg_loss,
        kelly_criterion=_kelly(win_rate / 100.0, avg_win, avg_loss),
    )


def max_drawdown(equity: Sequence[float]) -> tuple[float, float, int, int]:
    """Deepest peak-to-trough decline of an equity series.

    Returns:
        ``(drawdown, drawdown_pct, start_position, end_position)`` where the
        positions index *equity*.  All zeros for an empty or flat series.
    """
    if not equity or equity[0] <= 0:
        return 0.0, 0.0, 0, 0

    tracker = DrawdownTracker(equity[0])
    for value in equity[1:]:
        tracker.update(value)
    start, end = tracker.max_drawdown_span
    return tracker.max_drawdown, tracker.max_drawdown_pct, start, end


# ── Helpers ──────────────────────────────────────────────────────────────


def _years(equity_curve: Sequence[EquityPoint]) -> float:
    span_ms = equity_curve[-1].timestamp - equity_curve[0].timestamp
    return span_ms / _MS_PER_DAY / DAYS_PER_YEAR


def _annualized_return(final_equity: float, initial: float, years: float) -> float:
    if years <= 0:
        return 0.0
    if final_equity <= 0:
        return -100.0
    return (math.pow(final_equity / initial, 1.0 / years) - 1.0) * 100.0


def _risk_adjusted(returns: list[float], years: float) -> tuple[float, float]:
    """Annualised Sharpe and Sortino ratios of per-trade returns.

    Periods per year = trades / years (one year when the span is empty).
    Population standard deviation; the downside variance sums returns below
    the mean but divides by the full count.
    """
    n = len(returns)
    if n == 0:
        return 0.0, 0.0

    mean = sum(returns) / n
    std = math.sqrt(sum((r - mean) ** 2 for r in returns) / n)
    downside = math.sqrt(sum((r - mean) ** 2 for r in returns if r < mean) / n)

    periods = n / years if years > 0 else float(n)
    annual_return = mean * periods
    annual_std = std * math.sqrt(periods)
    annual_downside = downside * math.sqrt(periods)

    sharpe = (annual_return - RISK_FREE_RATE) / annual_std if annual_std > 0 else 0.0
    sortino = (
        (annual_return - RISK_FREE_RATE) / annual_downside if annual_downside > 0 else 0.0
    )
    return sharpe, sortino


def _streaks(nets: list[float]) -> tuple[int, int, int]:
    """``(max_wins, max_losses, current)``; *current* is negative for losses.

    Break-even trades leave the running streaks untouched.
    """
    max_wins = max_losses = wins = losses = current = 0
    for p in nets:
        if p > 0:
            wins += 1
            losses = 0
            current = wins
            max_wins = max(max_wins, wins)
        elif p < 0:
            losses += 1
            wins = 0
            current = -losses
            max_losses = max(max_losses, losses)
    return max_wins, max_losses, current


def _kelly(win_prob: float, avg_win: float, avg_loss: float) -> float:
    if avg_loss == 0 or avg_win == 0:
        return 0.0
    ratio = abs(avg_win / avg_loss)
    return win_prob - (1.0 - win_prob) / ratio
