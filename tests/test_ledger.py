"""Tests for backtest artefacts — trade CSV ledgers and JSON reports."""

import json
from pathlib import Path

import pytest

from edgetrade.backtest.engine import BacktestEngine
from edgetrade.backtest.ledger import (
    TRADE_COLUMNS,
    artefact_path,
    read_report_json,
    read_trades_csv,
    report_dict,
    write_report_json,
    write_sweep_json,
    write_trades_csv,
)
from edgetrade.backtest.models import PerformanceMetrics, Trade
from edgetrade.backtest.sweep import SweepResult
from edgetrade.config import BacktestConfig, StrategyParams
from edgetrade.strategy.models import Bar, Decision


# ── Helpers ──────────────────────────────────────────────────────────────


def _make_trade(i, net):
    return Trade(
        side="long" if i % 2 == 0 else "short",
        entry_index=10 * i,
        exit_index=10 * i + 3,
        entry_price=100.0 + i / 3,
        exit_price=101.0 + i / 7,
        stop_loss_price=99.0 + 0.1 * i,
        take_profit_price=102.0 + 0.2 * i,
        quantity=1_000.0 / (100.0 + i / 3),
        exit_reason="take_profit" if net > 0 else "stop_loss",
        gross_return=net / 10 + 0.1,
        leveraged_return=net + 1.0,
        net_return=net,
        entry_fee=0.4,
        exit_fee=0.4,
    )


class _AlwaysBuy:
    def evaluate(self, window, offset=0, next_bar=None, verbosity=0):
        return Decision(signal="BUY", direction="long", confidence="MEDIUM", reason="fixed")


def _result():
    bars = [
        Bar(1_704_067_200_000 + i * 60_000, 100.0 + i, 100.5 + i, 99.5 + i, 100.0 + i, 10.0)
        for i in range(40)
    ]
    config = BacktestConfig(min_bars=20, use_trend_filter=False, monte_carlo_runs=0)
    return BacktestEngine(config, StrategyParams(lookback=20), source=_AlwaysBuy()).run(bars)


# ── Trades CSV ───────────────────────────────────────────────────────────


class TestTradesCsv:
    def test_round_trip(self, tmp_path):
        trades = [_make_trade(i, n) for i, n in enumerate([12.3456789, -7.1, 0.1 + 0.2])]
        path = write_trades_csv(trades, tmp_path / "trades.csv")
        assert read_trades_csv(path) == trades

    def test_column_order(self, tmp_path):
        path = write_trades_csv([_make_trade(0, 1.0)], tmp_path / "t.csv")
        header = path.read_text(encoding="utf-8").splitlines()[0]
        assert header.split(",") == TRADE_COLUMNS

    def test_creates_directories(self, tmp_path):
        path = write_trades_csv([], tmp_path / "nested" / "dir" / "t.csv")
        assert path.exists()
        assert read_trades_csv(path) == []

    def test_engine_trades_round_trip(self, tmp_path):
        trades = _result().trades
        assert trades
        path = write_trades_csv(trades, tmp_path / "t.csv")
        assert read_trades_csv(path) == trades


# ── Reports ──────────────────────────────────────────────────────────────


class TestReports:
    def test_artefact_path(self):
        path = artefact_path("data/backtest", "BTC/USDT", "bull_2024", "trades.csv")
        assert path == Path("data/backtest") / "BTC_USDT_bull_2024_trades.csv"

    def test_report_dict(self):
        result = _result()
        report = report_dict(result)
        assert report["trade_count"] == len(result.trades)
        assert report["config"]["symbol"] == "BTC/USDT"
        assert report["params"]["lookback"] == 20
        assert report["metrics"]["total_trades"] == result.metrics.total_trades
        assert report["monte_carlo"] is None
        assert "timestamp" in report

    def test_report_json_round_trip(self, tmp_path):
        result = _result()
        path = write_report_json(result, tmp_path / "report.json")
        loaded = read_report_json(path)
        assert loaded["metrics"]["total_return"] == pytest.approx(result.metrics.total_return)
        assert loaded["signal_stats"]["buy"] == result.signal_stats.buy
        assert loaded["params"]["session_bands"][0] == [0, 8, 0.8]

    def test_sweep_json(self, tmp_path):
        results = [
            SweepResult({"burst_ratio": 2.2}, PerformanceMetrics(total_trades=4, sharpe_ratio=1.5)),
            SweepResult({"burst_ratio": 2.5}, PerformanceMetrics.empty()),
        ]
        path = write_sweep_json(results, tmp_path / "sweep.json")
        rows = json.loads(path.read_text(encoding="utf-8"))
        assert [r["parameters"] for r in rows] == [{"burst_ratio": 2.2}, {"burst_ratio": 2.5}]
        assert rows[0]["metrics"]["sharpe_ratio"] == 1.5
        assert rows[0]["metrics"]["total_trades"] == 4
