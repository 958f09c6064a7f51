"""Volume profile builder — pure functions, no I/O.

Turns a window of bars into a ``VolumeProfile``:

1. Locate volume peaks (μ + kσ, local maxima, minimum spacing).
2. Expand around the largest peak until volume drops below a fraction of it.
3. Bucket the refined window's volume by rounded mid price.
4. Derive VPOC, the value area (VAL/VAH) and the two edge bands just
   outside it.
"""

import logging
from typing import Optional, Sequence

from edgetrade.config import StrategyParams
from edgetrade.strategy.indicators import mean_std
from edgetrade.strategy.models import Bar, BarRef, VolumeProfile

logger = logging.getLogger("edgetrade.strategy.profile")


def build_volume_profile(
    bars: Sequence[Bar],
    params: StrategyParams,
    offset: int = 0,
    verbosity: int = 0,
) -> Optional[VolumeProfile]:
    """Build the volume profile of *bars*.

    Args:
        bars: Analysis window, oldest-first.  The last bar is the one being
            evaluated.
        params: Strategy thresholds.
        offset: Global index of ``bars[0]`` in the full series.
        verbosity: 0 quiet, 1 summary, 2 diagnostics.

    Returns:
        The profile, or ``None`` when fewer than ``params.lookback`` bars
        are supplied or no significant volume peak exists.
    """
    if len(bars) < params.lookback:
        if verbosity >= 1:
            logger.info(
                "Not enough bars for a profile: need %d, got %d",
                params.lookback, len(bars),
            )
        return None

    volumes = [b.volume for b in bars]
    global_mean, global_std = mean_std(volumes)

    peaks = find_volume_peaks(
        volumes,
        threshold=global_mean + params.peak_sigma * global_std,
        min_distance=params.peak_min_distance,
    )
    if not peaks:
        if verbosity >= 2:
            logger.debug("No volume peak above μ+%.1fσ", params.peak_sigma)
        return None

    # First peak wins ties
    main_peak = max(peaks, key=lambda i: (volumes[i], -i))
    left, right = expand_window(volumes, main_peak, params.window_threshold)

    buckets = bucket_volume(bars[left:right + 1], params.price_precision)
    vpoc_idx = max(range(len(buckets)), key=lambda j: (buckets[j][1], -j))
    total = sum(v for _, v in buckets)

    low_idx, high_idx = value_area(buckets, vpoc_idx, total * params.value_area_pct)
    val = buckets[low_idx][0]
    vah = buckets[high_idx][0]

    lower_band = _edge_band(buckets, low_idx, -1, total, params)
    upper_band = _edge_band(buckets, high_idx, 1, total, params)
    lower_edge = _bars_in_band(bars, lower_band, offset, params.price_precision)
    upper_edge = _bars_in_band(bars, upper_band, offset, params.price_precision)

    window_volumes = volumes[left:right + 1]
    window_mean, window_std = mean_std(window_volumes)

    latest = len(bars) - 1
    profile = VolumeProfile(
        vah=vah,
        val=val,
        vpoc=buckets[vpoc_idx][0],
        lower_edge=lower_edge,
        upper_edge=upper_edge,
        window_mean=window_mean,
        window_std=window_std,
        global_mean=global_mean,
        global_std=global_std,
        window_peak_volume=max(window_volumes),
        latest=BarRef(offset + latest, latest),
        main_peak=BarRef(offset + main_peak, main_peak),
        window_range=(BarRef(offset + left, left), BarRef(offset + right, right)),
        buckets=tuple(buckets),
    )

    if verbosity >= 1:
        logger.info(
            "Profile VAL=%.2f VPOC=%.2f VAH=%.2f window=[%d, %d] edges: %d lower, %d upper",
            val, profile.vpoc, vah, left, right, len(lower_edge), len(upper_edge),
        )
    return profile


# ── Helpers ──────────────────────────────────────────────────────────────


def find_volume_peaks(
    volumes: Sequence[float],
    threshold: float,
    min_distance: int,
) -> list[int]:
    """Indices of local volume maxima above *threshold*.

    Candidates are scanned left to right in ``[min_distance, n - min_distance)``;
    a candidate closer than *min_distance* to an accepted peak is skipped.
    """
    peaks: list[int] = []
    for i in range(min_distance, len(volumes) - min_distance):
        v = volumes[i]
        if v <= threshold:
            continue
        if v < volumes[i - 1] or v < volumes[i + 1]:
            continue
        if any(abs(p - i) < min_distance for p in peaks):
            continue
        peaks.append(i)
    return peaks


def expand_window(
    volumes: Sequence[float],
    peak: int,
    threshold_ratio: float,
) -> tuple[int, int]:
    """Expand outward from *peak* while volume stays ≥ ``threshold_ratio × peak``.

    The first bar below the threshold on each side is kept as the boundary.
    """
    cutoff = volumes[peak] * threshold_ratio
    left = peak
    while left > 0 and volumes[left] >= cutoff:
        left -= 1
    right = peak
    while right < len(volumes) - 1 and volumes[right] >= cutoff:
        right += 1
    return left, right


def bucket_volume(bars: Sequence[Bar], precision: int = 2) -> list[tuple[float, float]]:
    """Accumulate volume per rounded mid price, sorted by price."""
    totals: dict[float, float] = {}
    for bar in bars:
        price = round(bar.mid_price, precision)
        totals[price] = totals.get(price, 0.0) + bar.volume
    return sorted(totals.items())


def value_area(
    buckets: Sequence[tuple[float, float]],
    vpoc_idx: int,
    target_volume: float,
) -> tuple[int, int]:
    """Grow ``[low, high]`` from the VPOC bucket until it holds *target_volume*.

    Each step takes the neighbour with more volume; ties go up.
    """
    low = high = vpoc_idx
    accumulated = buckets[vpoc_idx][1]
    last = len(buckets) - 1

    while accumulated < target_volume and (low > 0 or high < last):
        below = buckets[low - 1][1] if low > 0 else 0.0
        above = buckets[high + 1][1] if high < last else 0.0
        if low > 0 and (below > above or high == last):
            low -= 1
            accumulated += below
        else:
            high += 1
            accumulated += above
    return low, high


def _edge_band(
    buckets: Sequence[tuple[float, float]],
    boundary_idx: int,
    step: int,
    total: float,
    params: StrategyParams,
) -> Optional[tuple[float, float]]:
    """Price band beyond the value area bounded by the inner/outer volume shares."""
    inner_idx: Optional[int] = None
    outer_idx: Optional[int] = None
    cumulative = 0.0
    i = boundary_idx + step
    while 0 <= i < len(buckets):
        cumulative += buckets[i][1]
        if inner_idx is None and cumulative >= total * params.edge_inner_pct:
            inner_idx = i
        if cumulative >= total * params.edge_outer_pct:
            outer_idx = i
            break
        i += step

    if inner_idx is None or outer_idx is None:
        return None
    low_price = min(buckets[inner_idx][0], buckets[outer_idx][0])
    high_price = max(buckets[inner_idx][0], buckets[outer_idx][0])
    return low_price, high_price


def _bars_in_band(
    bars: Sequence[Bar],
    band: Optional[tuple[float, float]],
    offset: int,
    precision: int,
) -> tuple[BarRef, ...]:
    if band is None:
        return ()
    low_price, high_price = band
    refs = []
    for j, bar in enumerate(bars):
        price = round(bar.mid_price, precision)
        if low_price <= price <= high_price:
            refs.append(BarRef(offset + j, j))
    return tuple(refs)
