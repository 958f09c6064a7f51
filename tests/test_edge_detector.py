"""Tests for the edge spike detector (P1–P8 scoring)."""

from dataclasses import replace

import pytest

from edgetrade.config import StrategyParams
from edgetrade.strategy.edge_detector import detect_edge_spike
from edgetrade.strategy.models import Bar, BarRef, VolumeProfile
from edgetrade.strategy.session_filter import session_coefficient


# ── Helpers ──────────────────────────────────────────────────────────────

_MIDNIGHT = 1_704_067_200_000  # 2024-01-01T00:00:00Z
_HOUR = 3_600_000

PARAMS = StrategyParams(lookback=30)


def _make_bar(volume, timestamp=_MIDNIGHT + 10 * _HOUR, price=100.0):
    return Bar(
        timestamp=timestamp,
        open=price,
        high=price + 0.5,
        low=price - 0.5,
        close=price,
        volume=volume,
    )


def _make_profile(lower=(29,), upper=(), latest=29):
    return VolumeProfile(
        vah=103.0,
        val=99.0,
        vpoc=101.0,
        lower_edge=tuple(BarRef(i, i) for i in lower),
        upper_edge=tuple(BarRef(i, i) for i in upper),
        window_mean=100.0,
        window_std=50.0,
        global_mean=100.0,
        global_std=50.0,
        window_peak_volume=600.0,
        latest=BarRef(latest, latest),
        main_peak=BarRef(15, 15),
        window_range=(BarRef(12, 12), BarRef(18, 18)),
    )


def _preceding(n=29, volume=100.0):
    return [_make_bar(volume) for _ in range(n)]


# ── Gates ────────────────────────────────────────────────────────────────


class TestGates:
    def test_too_few_preceding_bars_scores_zero(self):
        result = detect_edge_spike(
            _make_profile(), _make_bar(400.0), _preceding(4), PARAMS,
        )
        assert result.final_score == 0.0
        assert result.direction is None
        assert result.parameters == ()

    def test_outside_edges_only_reports_p1(self):
        profile = _make_profile(lower=(10,), upper=(20,))
        result = detect_edge_spike(profile, _make_bar(400.0), _preceding(), PARAMS)
        assert result.final_score == 0.0
        assert result.direction is None
        assert [p.name for p in result.parameters] == ["P1"]
        assert result.parameters[0].note == "outside_edge"
        assert not result.passed("P1")


# ── Scoring ──────────────────────────────────────────────────────────────


class TestScoring:
    def test_all_factors_pass(self):
        result = detect_edge_spike(
            _make_profile(), _make_bar(400.0), _preceding(), PARAMS,
            next_bar=_make_bar(300.0),
        )
        assert result.direction == "long"
        for name in ("P1", "P2", "P3", "P4", "P5", "P6", "P7", "P8"):
            assert result.passed(name), name
        assert result.raw_score == pytest.approx(1.0)
        # Relative volume capped at 1, European session coefficient 1.2
        assert result.liquidity_multiplier == pytest.approx(1.2)
        assert result.final_score == pytest.approx(1.2)

    def test_upper_edge_is_short(self):
        profile = _make_profile(lower=(), upper=(29,))
        result = detect_edge_spike(
            profile, _make_bar(400.0), _preceding(), PARAMS, next_bar=_make_bar(300.0),
        )
        assert result.direction == "short"

    def test_z_scores(self):
        result = detect_edge_spike(_make_profile(), _make_bar(400.0), _preceding(), PARAMS)
        assert result.parameter("P2").observed == pytest.approx(6.0)
        assert result.parameter("P3").observed == pytest.approx(6.0)

    def test_zero_std_gives_zero_z(self):
        profile = replace(_make_profile(), window_std=0.0)
        result = detect_edge_spike(profile, _make_bar(400.0), _preceding(), PARAMS)
        assert result.parameter("P2").observed == 0.0
        assert not result.passed("P2")

    def test_raw_score_is_sum_of_passed_weights(self):
        result = detect_edge_spike(_make_profile(), _make_bar(400.0), _preceding(), PARAMS)
        expected = sum(p.weight for p in result.parameters if p.passed)
        assert result.raw_score == pytest.approx(expected)
        # P7 needs the next bar
        assert result.raw_score == pytest.approx(0.95)


class TestBurst:
    def test_mode_a(self):
        result = detect_edge_spike(_make_profile(), _make_bar(400.0), _preceding(), PARAMS)
        p4 = result.parameter("P4")
        assert p4.passed
        assert p4.note == "A"
        assert p4.observed == pytest.approx(4.0)

    def test_mode_b_confirmed_by_next_bar(self):
        result = detect_edge_spike(
            _make_profile(), _make_bar(200.0), _preceding(), PARAMS,
            next_bar=_make_bar(140.0),
        )
        p4 = result.parameter("P4")
        assert p4.passed
        assert p4.note == "B"

    def test_mode_b_needs_next_bar(self):
        result = detect_edge_spike(_make_profile(), _make_bar(200.0), _preceding(), PARAMS)
        assert not result.passed("P4")

    def test_mode_b_rejected_when_next_bar_fades(self):
        result = detect_edge_spike(
            _make_profile(), _make_bar(200.0), _preceding(), PARAMS,
            next_bar=_make_bar(50.0),
        )
        assert not result.passed("P4")


class TestContinuation:
    def test_without_next_bar(self):
        result = detect_edge_spike(_make_profile(), _make_bar(400.0), _preceding(), PARAMS)
        p7 = result.parameter("P7")
        assert not p7.passed
        assert p7.note == "no_next_bar"

    def test_with_next_bar(self):
        result = detect_edge_spike(
            _make_profile(), _make_bar(400.0), _preceding(), PARAMS,
            next_bar=_make_bar(200.0),
        )
        assert result.parameter("P7").observed == pytest.approx(0.5)
        assert not result.passed("P7")


class TestLiquidity:
    def test_low_relative_volume_scales_score(self):
        # 50 vs an average of 100 → relative volume 0.5
        result = detect_edge_spike(_make_profile(), _make_bar(50.0), _preceding(), PARAMS)
        assert result.liquidity_multiplier == pytest.approx(0.5 * 1.2)
        assert not result.passed("P8")
        assert result.final_score == pytest.approx(result.raw_score * 0.6)

    def test_asian_session_coefficient(self):
        bar = _make_bar(400.0, timestamp=_MIDNIGHT + 3 * _HOUR)
        result = detect_edge_spike(_make_profile(), bar, _preceding(), PARAMS)
        assert result.liquidity_multiplier == pytest.approx(0.8)

    def test_p8_has_no_weight(self):
        result = detect_edge_spike(_make_profile(), _make_bar(400.0), _preceding(), PARAMS)
        assert result.parameter("P8").weight == 0.0


class TestSessionCoefficient:
    @pytest.mark.parametrize(
        "hour, expected",
        [(0, 0.8), (7, 0.8), (8, 1.2), (15, 1.2), (16, 1.0), (23, 1.0)],
    )
    def test_default_bands(self, hour, expected):
        ts = _MIDNIGHT + hour * _HOUR + 59 * 60_000
        assert session_coefficient(ts, PARAMS.session_bands) == expected

    def test_uncovered_hour_uses_default(self):
        assert session_coefficient(_MIDNIGHT, ((8, 16, 1.2),), default=0.5) == 0.5
