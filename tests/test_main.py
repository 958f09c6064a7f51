"""Tests for the command-line entry point."""

import json
import os

import numpy as np
import pytest

from edgetrade.data.loader import bars_to_frame
from edgetrade.main import _run_cli
from edgetrade.strategy.models import Bar


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Small warm-up windows; no stray BACKTEST_/STRATEGY_/PARAMGRID_ settings."""
    for var in list(os.environ):
        if var.startswith(("BACKTEST_", "STRATEGY_", "PARAMGRID_")):
            monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("BACKTEST_MIN_BARS", "60")
    monkeypatch.setenv("BACKTEST_MONTE_CARLO_RUNS", "0")
    monkeypatch.setenv("STRATEGY_LOOKBACK", "60")


@pytest.fixture
def data_csv(tmp_path):
    rng = np.random.default_rng(5)
    closes = 100.0 * np.exp(np.cumsum(rng.normal(0.0, 0.002, 200)))
    volumes = rng.uniform(50.0, 150.0, 200)
    bars = [
        Bar(1_704_067_200_000 + i * 120_000, float(c), float(c) * 1.001,
            float(c) * 0.999, float(c), float(v))
        for i, (c, v) in enumerate(zip(closes, volumes))
    ]
    path = tmp_path / "bars.csv"
    bars_to_frame(bars).to_csv(path, index=False)
    return path


def _args(data_csv, tmp_path, *extra):
    return [
        "--data", str(data_csv),
        "--out", str(tmp_path / "out"),
        "--env", str(tmp_path / "missing.env"),
        *extra,
    ]


class TestCli:
    def test_backtest_mode(self, data_csv, tmp_path, capsys):
        _run_cli(_args(data_csv, tmp_path))
        out = tmp_path / "out"
        assert (out / "BTC_USDT_default_trades.csv").exists()
        report = json.loads((out / "BTC_USDT_default_report.json").read_text(encoding="utf-8"))
        assert report["config"]["min_bars"] == 60
        assert "BACKTEST PERFORMANCE REPORT" in capsys.readouterr().out

    def test_segments_mode(self, data_csv, tmp_path):
        _run_cli(_args(data_csv, tmp_path, "--mode", "segments"))
        out = tmp_path / "out"
        assert (out / "BTC_USDT_bull_2024_report.json").exists()
        assert not (out / "BTC_USDT_bear_2025_report.json").exists()

    def test_sweep_mode(self, data_csv, tmp_path, monkeypatch):
        monkeypatch.setenv("PARAMGRID_SCORE_THRESHOLD", "0.5,0.9")
        _run_cli(_args(data_csv, tmp_path, "--mode", "sweep"))
        path = tmp_path / "out" / "BTC_USDT_parameter_sensitivity.json"
        rows = json.loads(path.read_text(encoding="utf-8"))
        assert len(rows) == 2

    def test_merge(self, data_csv, tmp_path):
        # 200 bars → 100; still enough for a 60-bar warm-up
        _run_cli(_args(data_csv, tmp_path, "--merge", "2"))
        report = json.loads(
            (tmp_path / "out" / "BTC_USDT_default_report.json").read_text(encoding="utf-8")
        )
        assert report["signal_stats"]["total"] <= 100 - 60

    def test_requires_data(self):
        with pytest.raises(SystemExit):
            _run_cli([])
