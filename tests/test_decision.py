"""Tests for the signal decision and the volume-edge strategy composition."""

import pytest

from edgetrade.config import StrategyParams
from edgetrade.strategy.base import SignalSource
from edgetrade.strategy.decision import decide
from edgetrade.strategy.models import (
    Bar,
    BarRef,
    ParameterResult,
    ScoreBreakdown,
    VolumeProfile,
)
from edgetrade.strategy.volume_edge import VolumeEdgeStrategy


# ── Helpers ──────────────────────────────────────────────────────────────

PARAMS = StrategyParams(lookback=30)
ATR_PARAMS = StrategyParams(lookback=30, stop_mode="atr")

PROFILE = VolumeProfile(
    vah=103.0,
    val=99.0,
    vpoc=101.0,
    lower_edge=(BarRef(29, 29),),
    upper_edge=(),
    window_mean=100.0,
    window_std=50.0,
    global_mean=100.0,
    global_std=50.0,
    window_peak_volume=600.0,
    latest=BarRef(29, 29),
    main_peak=BarRef(15, 15),
    window_range=(BarRef(12, 12), BarRef(18, 18)),
)


def _breakdown(final_score, direction="long", burst=True):
    return ScoreBreakdown(
        raw_score=final_score,
        final_score=final_score,
        direction=direction,
        liquidity_multiplier=1.0,
        parameters=(
            ParameterResult("P1", direction is not None, 1.0, 1.0, 0.25),
            ParameterResult("P4", burst, 3.0, 2.2, 0.20),
        ),
    )


def _decide(breakdown, params=PARAMS, price=100.0, atr=None):
    return decide(breakdown, price, PROFILE, params, 0.01, 0.02, atr=atr)


# ── HOLD ─────────────────────────────────────────────────────────────────


class TestHold:
    def test_no_direction(self):
        decision = _decide(ScoreBreakdown.zero())
        assert decision.signal == "HOLD"
        assert decision.reason == "outside_edge"
        assert decision.confidence == "LOW"
        assert not decision.is_trade

    def test_burst_missing(self):
        decision = _decide(_breakdown(0.95, burst=False))
        assert decision.signal == "HOLD"
        assert decision.reason == "burst_missing"

    def test_score_below_threshold(self):
        decision = _decide(_breakdown(0.74))
        assert decision.signal == "HOLD"
        assert decision.reason == "score_below_threshold"
        assert decision.stop_loss is None
        assert decision.take_profit is None

    def test_breakdown_is_kept(self):
        breakdown = _breakdown(0.5)
        assert _decide(breakdown).breakdown is breakdown


# ── Trades ───────────────────────────────────────────────────────────────


class TestTrades:
    def test_buy_medium_confidence(self):
        decision = _decide(_breakdown(0.80))
        assert decision.signal == "BUY"
        assert decision.direction == "long"
        assert decision.confidence == "MEDIUM"
        assert decision.stop_loss == pytest.approx(99.0)
        assert decision.take_profit == pytest.approx(102.0)
        assert decision.reason == "fixed"
        assert decision.is_trade

    def test_sell_high_confidence(self):
        decision = _decide(_breakdown(0.90, direction="short"))
        assert decision.signal == "SELL"
        assert decision.confidence == "HIGH"
        assert decision.stop_loss == pytest.approx(101.0)
        assert decision.take_profit == pytest.approx(98.0)

    def test_threshold_is_inclusive(self):
        assert _decide(_breakdown(0.75)).signal == "BUY"
        assert _decide(_breakdown(0.85)).confidence == "HIGH"


class TestProfileStops:
    def test_long_anchored_on_value_area(self):
        decision = _decide(_breakdown(0.80), params=ATR_PARAMS, atr=0.5)
        assert decision.reason == "profile"
        # min(VAL, entry) − 1 × ATR
        assert decision.stop_loss == pytest.approx(98.5)
        assert decision.take_profit == pytest.approx(103.0)
        assert decision.partial_target == pytest.approx(101.0)
        assert decision.trail_distance == pytest.approx(0.75)

    def test_missing_atr_falls_back_to_fixed(self):
        decision = _decide(_breakdown(0.80), params=ATR_PARAMS, atr=None)
        assert decision.reason == "fixed"
        assert decision.stop_loss == pytest.approx(99.0)
        assert decision.partial_target is None

    def test_target_behind_entry_falls_back_to_fixed(self):
        decision = _decide(_breakdown(0.80), params=ATR_PARAMS, price=104.0, atr=0.5)
        assert decision.reason == "fixed"
        assert decision.take_profit == pytest.approx(104.0 * 1.02)

    def test_fixed_mode_ignores_atr(self):
        decision = _decide(_breakdown(0.80), atr=0.5)
        assert decision.reason == "fixed"
        assert decision.trail_distance is None


# ── Strategy composition ─────────────────────────────────────────────────


def _make_bar(i, volume, price=100.0):
    return Bar(
        timestamp=1_704_067_200_000 + 10 * 3_600_000 + i * 120_000,
        open=price,
        high=price + 0.5,
        low=price - 0.5,
        close=price,
        volume=volume,
    )


class TestVolumeEdgeStrategy:
    def test_satisfies_signal_source(self):
        assert isinstance(VolumeEdgeStrategy(PARAMS), SignalSource)

    def test_short_window_holds(self):
        strategy = VolumeEdgeStrategy(PARAMS)
        window = [_make_bar(i, 100.0) for i in range(10)]
        decision = strategy.evaluate(window)
        assert decision.signal == "HOLD"
        assert decision.reason == "no_profile"

    def test_flat_volume_holds(self):
        strategy = VolumeEdgeStrategy(PARAMS)
        window = [_make_bar(i, 100.0) for i in range(30)]
        assert strategy.evaluate(window).reason == "no_profile"

    def test_bar_outside_edges_holds(self):
        volumes = [100.0] * 30
        volumes[13:18] = [200.0, 300.0, 600.0, 300.0, 200.0]
        window = [_make_bar(i, v, price=100.0 + i * 0.1) for i, v in enumerate(volumes)]
        decision = VolumeEdgeStrategy(PARAMS).evaluate(window, offset=500)
        assert decision.signal == "HOLD"
        assert decision.reason == "outside_edge"
        assert decision.breakdown.parameter("P1").note == "outside_edge"


def _edge_spike_window():
    """Peak at bar 15; bar 29 returns to the lower edge price (101.3) on 500 volume."""
    volumes = [100.0] * 30
    volumes[13:18] = [200.0, 300.0, 600.0, 300.0, 200.0]
    volumes[29] = 500.0
    prices = [100.0 + i * 0.1 for i in range(30)]
    prices[29] = 101.3
    return [_make_bar(i, v, price=p) for i, (v, p) in enumerate(zip(volumes, prices))]


class TestEdgeSpikeEntry:
    def test_buy_with_next_bar(self):
        decision = VolumeEdgeStrategy(PARAMS).evaluate(
            _edge_spike_window(), next_bar=_make_bar(30, 400.0, price=101.3),
        )
        assert decision.signal == "BUY"
        assert decision.direction == "long"
        assert decision.confidence == "HIGH"
        breakdown = decision.breakdown
        # Window z = (500 - 257.1) / 159.1 ≈ 1.53 < 2.3; every other factor passes
        assert not breakdown.passed("P2")
        for name in ("P1", "P3", "P4", "P5", "P6", "P7", "P8"):
            assert breakdown.passed(name), name
        assert breakdown.parameter("P4").note == "A"
        assert breakdown.raw_score == pytest.approx(0.80)
        # Relative volume capped at 1, European session 1.2
        assert breakdown.final_score == pytest.approx(0.96)
        assert decision.stop_loss == pytest.approx(101.3 * 0.99)
        assert decision.take_profit == pytest.approx(101.3 * 1.02)
        assert decision.reason == "fixed"

    def test_buy_without_next_bar(self):
        decision = VolumeEdgeStrategy(PARAMS).evaluate(_edge_spike_window())
        assert decision.signal == "BUY"
        assert decision.breakdown.parameter("P7").note == "no_next_bar"
        assert decision.breakdown.raw_score == pytest.approx(0.75)
        assert decision.breakdown.final_score == pytest.approx(0.90)

    def test_offset_shifts_edge_membership(self):
        decision = VolumeEdgeStrategy(PARAMS).evaluate(_edge_spike_window(), offset=1_000)
        assert decision.signal == "BUY"
        assert decision.breakdown.parameter("P1").note == "long"
