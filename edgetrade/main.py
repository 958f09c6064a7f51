"""EdgeTrade — command-line entry point.

Loads historical bars from CSV and runs a single backtest, a segmented
backtest (one run per named date range) or a parameter sweep, writing
trade ledgers and JSON reports to the output directory.
"""

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from edgetrade.backtest.engine import BacktestEngine
from edgetrade.backtest.ledger import (
    artefact_path,
    write_report_json,
    write_sweep_json,
    write_trades_csv,
)
from edgetrade.backtest.models import BacktestResult
from edgetrade.backtest.report import format_report
from edgetrade.backtest.sweep import run_parameter_sweep
from edgetrade.config import (
    DEFAULT_SEGMENTS,
    load_config,
    load_strategy_params,
    parse_param_grid,
)
from edgetrade.data.loader import check_integrity, describe_bars, load_bars_csv, merge_bars

logger = logging.getLogger("edgetrade")

# Used when no PARAMGRID_* variable is set
DEFAULT_GRID = {
    "local_z_threshold": [2.0, 2.3, 2.6],
    "global_z_threshold": [1.8, 2.0, 2.2],
    "burst_ratio": [2.0, 2.2, 2.5],
}


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli(argv: Optional[Sequence[str]] = None) -> None:
    """Parse CLI arguments and dispatch to the requested mode."""
    parser = argparse.ArgumentParser(description="EdgeTrade volume-edge backtester")
    parser.add_argument("--data", required=True, help="OHLCV CSV file")
    parser.add_argument(
        "--mode",
        choices=["backtest", "segments", "sweep"],
        default="backtest",
        help="Run mode (default: backtest)",
    )
    parser.add_argument(
        "--merge",
        type=int,
        default=1,
        help="Aggregate every N input bars into one (e.g. 2 for 1m → 2m)",
    )
    parser.add_argument(
        "--out", default="data/backtest", help="Output directory (default: data/backtest)",
    )
    parser.add_argument("--env", default=None, help="Path to a .env file")
    parser.add_argument(
        "--workers", type=int, default=1, help="Worker processes for sweeps (default: 1)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Monte Carlo seed")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="-v logs decisions and trades, -vv per-parameter diagnostics",
    )
    args = parser.parse_args(argv)

    config = load_config(args.env)
    params = load_strategy_params(args.env)

    level = logging.DEBUG if args.verbose >= 2 else getattr(
        logging, config.log_level.upper(), logging.INFO,
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    bars = load_bars_csv(args.data)
    if args.merge > 1:
        bars = merge_bars(bars, args.merge)
        logger.info("Merged into %d bars (factor %d)", len(bars), args.merge)
    check_integrity(bars, config.timeframe)
    logger.info("Data summary: %s", describe_bars(bars))

    out_dir = Path(args.out)
    engine = BacktestEngine(config, params, seed=args.seed)

    if args.mode == "backtest":
        result = engine.run(bars, verbosity=args.verbose)
        _save(result, out_dir, "default")
    elif args.mode == "segments":
        results = engine.run_segmented(bars, DEFAULT_SEGMENTS, verbosity=args.verbose)
        if not results:
            logger.warning("No segment had enough bars to run")
        for name, result in results.items():
            _save(result, out_dir, name)
    else:
        grid = parse_param_grid() or DEFAULT_GRID
        ranked = run_parameter_sweep(
            bars, config, params, grid, max_workers=args.workers,
        )
        path = out_dir / f"{config.symbol.replace('/', '_')}_parameter_sensitivity.json"
        write_sweep_json(ranked, path)
        if ranked:
            best = ranked[0]
            logger.info(
                "Best parameters: %s (sharpe=%.3f, return=%.2f%%)",
                best.parameters, best.metrics.sharpe_ratio, best.metrics.total_return_pct,
            )


def _save(result: BacktestResult, out_dir: Path, segment: str) -> None:
    symbol = result.config.symbol
    print(format_report(result.metrics, result.monte_carlo, result.signal_stats))
    write_trades_csv(result.trades, artefact_path(out_dir, symbol, segment, "trades.csv"))
    write_report_json(result, artefact_path(out_dir, symbol, segment, "report.json"))


if __name__ == "__main__":
    _run_cli()
