"""Edge spike detector — scores a bar against a volume profile. Pure functions.

Eight factors:

    P1  bar sits in a value-area edge band (hard gate, sets direction)
    P2  local Z of volume within the refined peak window
    P3  global Z of volume across the whole lookback
    P4  burst versus the previous bar (immediate, or confirmed by the next bar)
    P5  volume versus the short moving average
    P6  strength of the window peak versus the global mean
    P7  continuation: next bar keeps a share of the volume
    P8  liquidity multiplier (relative volume × trading-session coefficient)

P1–P7 add their weight when they pass; P8 scales the sum.
"""

import logging
from typing import Optional, Sequence

from edgetrade.config import StrategyParams
from edgetrade.strategy.indicators import average_volume, safe_ratio
from edgetrade.strategy.models import Bar, ParameterResult, ScoreBreakdown, VolumeProfile
from edgetrade.strategy.session_filter import session_coefficient

logger = logging.getLogger("edgetrade.strategy.detector")


def detect_edge_spike(
    profile: VolumeProfile,
    current: Bar,
    preceding: Sequence[Bar],
    params: StrategyParams,
    next_bar: Optional[Bar] = None,
    verbosity: int = 0,
) -> ScoreBreakdown:
    """Evaluate *current* (the profile's latest bar) for an edge volume spike.

    Args:
        profile: Profile whose ``latest`` reference is *current*.
        current: The bar being evaluated.
        preceding: Bars before *current*, oldest-first (at least
            ``params.ma_period``).
        params: Strategy thresholds and weights.
        next_bar: The following bar when look-ahead is allowed (backtests).
        verbosity: 0 quiet, 1 summary, 2 per-parameter diagnostics.

    Returns:
        A ``ScoreBreakdown``; direction ``None`` means no trade setup.
    """
    if len(preceding) < params.ma_period:
        if verbosity >= 1:
            logger.info(
                "Insufficient input: %d preceding bars (need %d)",
                len(preceding), params.ma_period,
            )
        return ScoreBreakdown.zero()

    weights = params.weights
    volume = current.volume

    # P1: hard gate
    direction = profile.edge_of(profile.latest.global_index)
    p1 = ParameterResult(
        name="P1",
        passed=direction is not None,
        observed=1.0 if direction is not None else 0.0,
        threshold=1.0,
        weight=weights["P1"],
        note=direction or "outside_edge",
    )
    if direction is None:
        if verbosity >= 2:
            logger.debug("P1 failed: bar %d outside both edges", profile.latest.global_index)
        return ScoreBreakdown.zero(parameters=(p1,))

    z_local = _z_score(volume, profile.window_mean, profile.window_std)
    z_global = _z_score(volume, profile.global_mean, profile.global_std)
    prev_ratio = safe_ratio(volume, preceding[-1].volume)
    next_ratio = safe_ratio(next_bar.volume, volume) if next_bar is not None else None
    ma_ratio = safe_ratio(volume, average_volume(preceding[-params.ma_period:]))
    dist_ratio = safe_ratio(profile.window_peak_volume, profile.global_mean)

    results = [
        p1,
        _threshold_result("P2", z_local, params.local_z_threshold, weights["P2"]),
        _threshold_result("P3", z_global, params.global_z_threshold, weights["P3"]),
        _burst_result(prev_ratio, next_ratio, params, weights["P4"]),
        _threshold_result("P5", ma_ratio, params.ma_ratio, weights["P5"]),
        _threshold_result("P6", dist_ratio, params.dist_strength, weights["P6"]),
    ]
    if next_ratio is None:
        results.append(ParameterResult(
            name="P7", passed=False, observed=0.0,
            threshold=params.continuation_ratio, weight=weights["P7"],
            note="no_next_bar",
        ))
    else:
        results.append(_threshold_result(
            "P7", next_ratio, params.continuation_ratio, weights["P7"],
        ))

    # P8: liquidity multiplier
    relative_volume = safe_ratio(
        volume, average_volume(preceding[-params.liquidity_lookback:]),
    )
    session = session_coefficient(current.timestamp, params.session_bands)
    multiplier = min(1.0, relative_volume) * session
    results.append(ParameterResult(
        name="P8",
        passed=relative_volume >= 1.0,
        observed=multiplier,
        threshold=1.0,
        note=f"session={session}",
    ))

    raw_score = sum(r.weight for r in results if r.passed)
    final_score = raw_score * multiplier

    if verbosity >= 2:
        for r in results:
            logger.debug(
                "%s %s observed=%.3f threshold=%.3f %s",
                r.name, "pass" if r.passed else "fail", r.observed, r.threshold, r.note,
            )
    if verbosity >= 1:
        logger.info(
            "Edge spike %s: raw=%.3f L=%.3f final=%.3f",
            direction, raw_score, multiplier, final_score,
        )

    return ScoreBreakdown(
        raw_score=raw_score,
        final_score=final_score,
        direction=direction,
        liquidity_multiplier=multiplier,
        parameters=tuple(results),
    )


# ── Helpers ──────────────────────────────────────────────────────────────


def _z_score(value: float, mean: float, std: float) -> float:
    if std <= 0:
        return 0.0
    return (value - mean) / std


def _threshold_result(
    name: str, observed: float, threshold: float, weight: float,
) -> ParameterResult:
    return ParameterResult(
        name=name,
        passed=observed > threshold,
        observed=observed,
        threshold=threshold,
        weight=weight,
    )


def _burst_result(
    prev_ratio: float,
    next_ratio: Optional[float],
    params: StrategyParams,
    weight: float,
) -> ParameterResult:
    """P4: immediate burst (mode A) or a smaller burst the next bar sustains (mode B)."""
    if prev_ratio > params.burst_ratio:
        return ParameterResult("P4", True, prev_ratio, params.burst_ratio, weight, note="A")
    if (
        prev_ratio > params.burst_confirm_ratio
        and next_ratio is not None
        and next_ratio > params.burst_continuation_ratio
    ):
        return ParameterResult(
            "P4", True, prev_ratio, params.burst_confirm_ratio, weight, note="B",
        )
    return ParameterResult("P4", False, prev_ratio, params.burst_ratio, weight)
