"""Backtest artefacts — trade ledgers (CSV) and reports (JSON).

File names follow ``<SYMBOL>_<segment>_trades.csv`` / ``_report.json`` with
the ``/`` of the symbol replaced by ``_``.
"""

import dataclasses
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence, Union

import pandas as pd

from edgetrade.backtest.models import BacktestResult, Trade

logger = logging.getLogger("edgetrade.backtest.ledger")

TRADE_COLUMNS = [
    "side",
    "entry_index",
    "exit_index",
    "entry_price",
    "exit_price",
    "stop_loss_price",
    "take_profit_price",
    "exit_reason",
    "gross_return",
    "leveraged_return",
    "net_return",
    "quantity",
    "entry_fee",
    "exit_fee",
]

PathLike = Union[str, Path]


def artefact_path(out_dir: PathLike, symbol: str, segment: str, kind: str) -> Path:
    """``<out_dir>/<SYMBOL>_<segment>_<kind>``, e.g. ``kind="trades.csv"``."""
    return Path(out_dir) / f"{symbol.replace('/', '_')}_{segment}_{kind}"


# ── Trades CSV ───────────────────────────────────────────────────────────


def write_trades_csv(trades: Sequence[Trade], path: PathLike) -> Path:
    """Write *trades* to CSV, creating directories as needed.

    Floats are written at full precision so ``read_trades_csv`` restores
    identical values.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame(
        [{col: getattr(t, col) for col in TRADE_COLUMNS} for t in trades],
        columns=TRADE_COLUMNS,
    )
    df.to_csv(path, index=False)
    logger.info("Saved %d trades → %s", len(df), path)
    return path


def read_trades_csv(path: PathLike) -> list[Trade]:
    """Load trades written by ``write_trades_csv``."""
    df = pd.read_csv(path, float_precision="round_trip")
    if df.empty:
        return []
    return [
        Trade(
            side=row.side,
            entry_index=int(row.entry_index),
            exit_index=int(row.exit_index),
            entry_price=float(row.entry_price),
            exit_price=float(row.exit_price),
            stop_loss_price=float(row.stop_loss_price),
            take_profit_price=float(row.take_profit_price),
            quantity=float(row.quantity),
            exit_reason=row.exit_reason,
            gross_return=float(row.gross_return),
            leveraged_return=float(row.leveraged_return),
            net_return=float(row.net_return),
            entry_fee=float(row.entry_fee),
            exit_fee=float(row.exit_fee),
        )
        for row in df.itertuples(index=False)
    ]


# ── Reports JSON ─────────────────────────────────────────────────────────


def report_dict(result: BacktestResult) -> dict:
    """JSON-ready summary of a run (the trade list itself is left out)."""
    return {
        "config": dataclasses.asdict(result.config),
        "params": dataclasses.asdict(result.params),
        "metrics": dataclasses.asdict(result.metrics),
        "monte_carlo": (
            dataclasses.asdict(result.monte_carlo)
            if result.monte_carlo is not None else None
        ),
        "signal_stats": dataclasses.asdict(result.signal_stats),
        "trade_count": len(result.trades),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def write_report_json(result: BacktestResult, path: PathLike) -> Path:
    """Write the run summary as indented JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(report_dict(result), indent=2, default=str) + "\n",
        encoding="utf-8",
    )
    logger.info("Saved report → %s", path)
    return path


def read_report_json(path: PathLike) -> dict:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def write_sweep_json(results: Sequence, path: PathLike) -> Path:
    """Write ranked sweep results (parameters plus headline metrics)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    rows = [
        {
            "parameters": r.parameters,
            "metrics": {
                "total_return_pct": r.metrics.total_return_pct,
                "sharpe_ratio": r.metrics.sharpe_ratio,
                "max_drawdown_pct": r.metrics.max_drawdown_pct,
                "win_rate": r.metrics.win_rate,
                "profit_factor": r.metrics.profit_factor,
                "total_trades": r.metrics.total_trades,
            },
        }
        for r in results
    ]
    path.write_text(json.dumps(rows, indent=2, default=str) + "\n", encoding="utf-8")
    logger.info("Saved %d sweep results → %s", len(rows), path)
    return path
