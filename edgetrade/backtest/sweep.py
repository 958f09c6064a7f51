"""Parameter sweeps — run the backtest over a grid of parameter overrides.

Each combination is applied with ``dataclasses.replace`` to fresh immutable
copies of the config and strategy parameters, so combinations can run in
separate processes.
"""

import dataclasses
import itertools
import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from edgetrade.backtest.engine import BacktestEngine
from edgetrade.backtest.models import PerformanceMetrics
from edgetrade.config import GRID_ALIASES, BacktestConfig, StrategyParams
from edgetrade.strategy.models import Bar

logger = logging.getLogger("edgetrade.backtest.sweep")


@dataclass(frozen=True)
class SweepResult:
    """Metrics of one parameter combination."""

    parameters: dict[str, Any]
    metrics: PerformanceMetrics


def generate_combinations(grid: Mapping[str, Sequence[Any]]) -> list[dict[str, Any]]:
    """Cartesian product of *grid* values, keys in insertion order."""
    keys = list(grid)
    return [dict(zip(keys, values)) for values in itertools.product(*(grid[k] for k in keys))]


def apply_overrides(
    config: BacktestConfig,
    params: StrategyParams,
    overrides: Mapping[str, Any],
) -> tuple[BacktestConfig, StrategyParams]:
    """Return copies of *config* / *params* with *overrides* applied.

    Each key names a field of either dataclass (or a ``GRID_ALIASES`` key).
    Values are coerced to the field's type.  Raises ``ValueError`` for an
    unknown key.
    """
    config_fields = {f.name: f for f in dataclasses.fields(BacktestConfig)}
    params_fields = {f.name: f for f in dataclasses.fields(StrategyParams)}
    config_changes: dict[str, Any] = {}
    params_changes: dict[str, Any] = {}

    for key, value in overrides.items():
        name = GRID_ALIASES.get(key.lower(), key.lower())
        if name in params_fields:
            params_changes[name] = _coerce(params_fields[name].default, value)
        elif name in config_fields:
            config_changes[name] = _coerce(config_fields[name].default, value)
        else:
            raise ValueError(f"Unknown sweep parameter: {key!r}")

    return (
        dataclasses.replace(config, **config_changes),
        dataclasses.replace(params, **params_changes),
    )


def run_parameter_sweep(
    bars: Sequence[Bar],
    config: BacktestConfig,
    params: StrategyParams,
    grid: Mapping[str, Sequence[Any]],
    rank_by: str = "sharpe_ratio",
    max_workers: int = 1,
) -> list[SweepResult]:
    """Backtest every combination of *grid* and rank by *rank_by* (descending).

    Monte Carlo is skipped for sweep runs.  With ``max_workers > 1`` the
    combinations run in a process pool.
    """
    if rank_by not in {f.name for f in dataclasses.fields(PerformanceMetrics)}:
        raise ValueError(f"Unknown ranking metric: {rank_by!r}")

    combinations = generate_combinations(grid)
    # Validate every combination before spending time on any backtest
    jobs = [
        (combo, *apply_overrides(dataclasses.replace(config, monte_carlo_runs=0), params, combo))
        for combo in combinations
    ]
    logger.info("Parameter sweep: %d combinations", len(jobs))

    if max_workers > 1 and len(jobs) > 1:
        with ProcessPoolExecutor(max_workers=max_workers) as pool:
            metrics = list(pool.map(
                _run_one,
                itertools.repeat(bars),
                [cfg for _, cfg, _ in jobs],
                [prm for _, _, prm in jobs],
            ))
    else:
        metrics = [_run_one(bars, cfg, prm) for _, cfg, prm in jobs]

    results = [
        SweepResult(parameters=combo, metrics=m)
        for (combo, _, _), m in zip(jobs, metrics)
    ]
    for i, r in enumerate(results, start=1):
        logger.info(
            "[%d/%d] %s → return=%.2f%% sharpe=%.3f trades=%d",
            i, len(results), r.parameters, r.metrics.total_return_pct,
            r.metrics.sharpe_ratio, r.metrics.total_trades,
        )

    results.sort(key=lambda r: getattr(r.metrics, rank_by), reverse=True)
    return results


# ── Helpers ──────────────────────────────────────────────────────────────


def _run_one(
    bars: Sequence[Bar],
    config: BacktestConfig,
    params: StrategyParams,
) -> PerformanceMetrics:
    return BacktestEngine(config, params).run(bars).metrics


def _coerce(default: Any, value: Any) -> Any:
    if isinstance(default, bool):
        return bool(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return value
