"""Plain-text backtest report."""

from typing import Optional

from edgetrade.backtest.models import (
    PARAMETER_NAMES,
    MonteCarloResult,
    PerformanceMetrics,
    SignalStats,
)

_RULE = "=" * 80


def format_report(
    metrics: PerformanceMetrics,
    mc: Optional[MonteCarloResult] = None,
    stats: Optional[SignalStats] = None,
) -> str:
    """Render *metrics* (plus optional Monte Carlo and signal diagnostics)."""
    m = metrics
    lines = [_RULE, "BACKTEST PERFORMANCE REPORT", _RULE, ""]

    lines += [
        "[Trades]",
        f"Total trades: {m.total_trades}",
        f"Winning: {m.winning_trades} ({m.win_rate:.2f}%)",
        f"Losing: {m.losing_trades} ({100 - m.win_rate:.2f}%)" if m.total_trades
        else f"Losing: {m.losing_trades}",
        "",
        "[Returns]",
        f"Total return: ${m.total_return:.2f} ({m.total_return_pct:.2f}%)",
        f"Annualized return: {m.annualized_return:.2f}%",
        f"Average trade: ${m.avg_trade:.2f}",
        f"Expectancy: ${m.expectancy:.2f}",
        "",
        "[Risk]",
        f"Max drawdown: ${m.max_drawdown:.2f} ({m.max_drawdown_pct:.2f}%)",
        f"Max drawdown duration: {m.max_drawdown_duration} bars",
        f"Sharpe ratio: {m.sharpe_ratio:.3f}",
        f"Sortino ratio: {m.sortino_ratio:.3f}",
        f"Calmar ratio: {m.calmar_ratio:.3f}",
        "",
        "[Trade quality]",
        f"Profit factor: {m.profit_factor:.3f}",
        f"Average win: ${m.avg_win:.2f}",
        f"Average loss: ${m.avg_loss:.2f}",
        f"Largest win: ${m.largest_win:.2f}",
        f"Largest loss: ${m.largest_loss:.2f}",
        "Win/loss ratio: "
        + (f"{abs(m.avg_win / m.avg_loss):.2f}" if m.avg_loss != 0 else "N/A"),
        "",
        "[Streaks]",
        f"Max consecutive wins: {m.max_consecutive_wins}",
        f"Max consecutive losses: {m.max_consecutive_losses}",
        f"Current streak: {m.current_streak:+d}",
        "",
        "[Position sizing]",
        f"Kelly criterion: {m.kelly_criterion * 100:.2f}%",
        f"Half Kelly: {m.kelly_criterion * 50:.2f}%",
        "",
    ]

    if mc is not None:
        fr, dd = mc.final_return, mc.max_drawdown
        lines += [
            "[Monte Carlo]",
            f"Simulations: {mc.simulations}",
            f"Probability of profit: {mc.probability_of_profit:.2f}%",
            "",
            "Return distribution:",
            f"  P10: {fr.p10:.2f}%",
            f"  P25: {fr.p25:.2f}%",
            f"  Median: {fr.median:.2f}%",
            f"  P75: {fr.p75:.2f}%",
            f"  P90: {fr.p90:.2f}%",
            "",
            "Max drawdown distribution:",
            f"  P50: {dd.p50:.2f}%",
            f"  P90: {dd.p90:.2f}%",
            f"  P95: {dd.p95:.2f}%",
            "",
        ]

    if stats is not None:
        lines += _diagnostics(stats)

    lines.append(_RULE)
    return "\n".join(lines)


def _diagnostics(stats: SignalStats) -> list[str]:
    hits = stats.edge_hits
    failures = max(hits - stats.signals, 0)

    def share(count: int, total: int) -> str:
        return f"{count / total * 100:.2f}" if total > 0 else "0.00"

    lines = [
        "[Signal diagnostics]",
        f"Evaluated bars: {stats.total} (BUY={stats.buy} SELL={stats.sell} "
        f"HOLD={stats.hold} errors={stats.errors})",
        f"Edge hits: {hits}",
        f"Converted to signals: {share(stats.signals, hits)}% ({stats.signals}/{hits})",
        f"Vetoed by filters: {stats.vetoed}",
        "Failure reasons:",
    ]
    for reason in ("burst_missing", "score_below_threshold"):
        lines.append(f"  {reason}: {share(stats.hold_reasons.get(reason, 0), failures)}%")
    lines += ["", "Parameter pass rates:"]
    for name in PARAMETER_NAMES:
        lines.append(f"  {name}: {share(stats.parameter_passes.get(name, 0), hits)}%")
    lines.append("")
    return lines
