"""Monte Carlo resampling — shuffles trade order to stress the equity path.

Every permutation ends at the same final equity (the sum of net returns
does not depend on order); what changes is the drawdown along the way.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from edgetrade.backtest.models import Distribution, MonteCarloResult, Trade

logger = logging.getLogger("edgetrade.backtest.montecarlo")


def monte_carlo(
    trades: Sequence[Trade],
    initial_capital: float,
    n_simulations: int = 1000,
    seed: Optional[int] = None,
    min_trades: int = 10,
) -> Optional[MonteCarloResult]:
    """Resample the order of *trades* ``n_simulations`` times.

    Args:
        trades: Closed trades; never mutated.
        initial_capital: Starting equity of every path.
        n_simulations: Number of permutations.
        seed: Seed for a local ``numpy.random.Generator``.
        min_trades: Minimum trade count; fewer returns ``None``.

    Returns:
        Distributions of final return % and max drawdown %, or ``None``.
    """
    if len(trades) < min_trades:
        logger.info(
            "Skipping Monte Carlo: %d trades (need %d)", len(trades), min_trades,
        )
        return None
    if n_simulations < 1:
        raise ValueError(f"n_simulations must be >= 1, got {n_simulations}")

    rng = np.random.default_rng(seed)
    nets = np.array([t.net_return for t in trades], dtype=float)

    final_returns = np.empty(n_simulations)
    drawdowns = np.empty(n_simulations)
    final_equity = np.empty(n_simulations)
    for k in range(n_simulations):
        path = initial_capital + np.cumsum(rng.permutation(nets))
        equity = np.concatenate(([initial_capital], path))
        peaks = np.maximum.accumulate(equity)
        with np.errstate(divide="ignore", invalid="ignore"):
            dd_pct = np.where(peaks > 0, (peaks - equity) / peaks * 100.0, 0.0)
        drawdowns[k] = dd_pct.max()
        final_equity[k] = equity[-1]
        final_returns[k] = (equity[-1] - initial_capital) / initial_capital * 100.0

    result = MonteCarloResult(
        simulations=n_simulations,
        final_return=_distribution(final_returns),
        max_drawdown=_distribution(drawdowns),
        probability_of_profit=float((final_returns > 0).sum()) / n_simulations * 100.0,
        mean_final_equity=float(final_equity.mean()),
    )
    logger.info(
        "Monte Carlo (%d runs): P(profit)=%.2f%% median DD=%.2f%% P95 DD=%.2f%%",
        n_simulations, result.probability_of_profit,
        result.max_drawdown.median, result.max_drawdown.p95,
    )
    return result


def percentile(sorted_values: np.ndarray, p: float) -> float:
    """Nearest-rank percentile: ``sorted_values[floor(n × p)]``, clamped to the end."""
    n = len(sorted_values)
    idx = min(int(np.floor(n * p)), n - 1)
    return float(sorted_values[idx])


def _distribution(values: np.ndarray) -> Distribution:
    ordered = np.sort(values)
    return Distribution(
        min=float(ordered[0]),
        max=float(ordered[-1]),
        mean=float(ordered.mean()),
        median=percentile(ordered, 0.5),
        p10=percentile(ordered, 0.10),
        p25=percentile(ordered, 0.25),
        p50=percentile(ordered, 0.50),
        p75=percentile(ordered, 0.75),
        p90=percentile(ordered, 0.90),
        p95=percentile(ordered, 0.95),
    )
