"""Historical bar loading and preparation.

Reads OHLCV CSV files into ``Bar`` sequences, aggregates 1m bars to
coarser timeframes, slices by date range and reports data gaps.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

import pandas as pd

from edgetrade.strategy.models import Bar

logger = logging.getLogger("edgetrade.data")

BAR_COLUMNS = ["timestamp", "open", "high", "low", "close", "volume"]

_TIMEFRAME_UNITS_MS = {
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
    "w": 604_800_000,
}

TimeBound = Union[str, int, pd.Timestamp]

_EPOCH = pd.Timestamp(0, tz="UTC")


@dataclass(frozen=True)
class Gap:
    """A hole in the series between two consecutive bars."""

    start: int
    end: int
    missing_bars: int


@dataclass(frozen=True)
class IntegrityReport:
    """Result of a continuity check."""

    total_bars: int
    missing_periods: int
    missing_bars: int
    completeness_pct: float
    gaps: tuple[Gap, ...] = ()

    @property
    def is_complete(self) -> bool:
        return self.missing_periods == 0


# ── Loading ──────────────────────────────────────────────────────────────


def load_bars_csv(path: Union[str, Path]) -> list[Bar]:
    """Load bars from a CSV file with OHLCV columns.

    The time column may be ``timestamp`` (epoch ms) or ``time`` / ``datetime``
    (anything ``pd.to_datetime`` parses).  Rows are sorted by time and
    duplicate timestamps dropped.
    """
    path = Path(path)
    df = pd.read_csv(path)
    bars = bars_from_frame(df)
    logger.info("Loaded %d bars from %s", len(bars), path)
    return bars


def bars_from_frame(df: pd.DataFrame) -> list[Bar]:
    """Convert a DataFrame of OHLCV rows to ``Bar`` objects.

    Raises ``ValueError`` when a required column is missing.
    """
    if df.empty:
        return []

    df = df.copy()
    df.columns = [str(c).strip().lower() for c in df.columns]

    if "timestamp" not in df.columns:
        for alias in ("time", "datetime", "date", "open_time"):
            if alias in df.columns:
                df = df.rename(columns={alias: "timestamp"})
                break

    missing = [c for c in BAR_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Missing bar columns: {', '.join(missing)}")

    df = df[BAR_COLUMNS].dropna().copy()
    if pd.api.types.is_numeric_dtype(df["timestamp"]):
        df["timestamp"] = df["timestamp"].astype("int64")
    else:
        times = pd.to_datetime(df["timestamp"], utc=True)
        df["timestamp"] = (times - _EPOCH) // pd.Timedelta(milliseconds=1)

    df = (
        df.sort_values("timestamp", kind="stable")
        .drop_duplicates(subset="timestamp", keep="first")
        .reset_index(drop=True)
    )

    return [
        Bar(
            timestamp=int(row.timestamp),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )
        for row in df.itertuples(index=False)
    ]


def bars_to_frame(bars: Sequence[Bar]) -> pd.DataFrame:
    """Inverse of ``bars_from_frame`` (epoch-ms ``timestamp`` column)."""
    return pd.DataFrame(
        [(b.timestamp, b.open, b.high, b.low, b.close, b.volume) for b in bars],
        columns=BAR_COLUMNS,
    )


# ── Preparation ──────────────────────────────────────────────────────────


def merge_bars(bars: Sequence[Bar], factor: int = 2) -> list[Bar]:
    """Aggregate every *factor* consecutive bars into one.

    Open of the first, close of the last, extreme high/low, summed volume,
    timestamp of the first.  An incomplete trailing group is dropped.
    """
    if factor < 1:
        raise ValueError(f"factor must be >= 1, got {factor}")
    if factor == 1:
        return list(bars)

    merged: list[Bar] = []
    for i in range(0, len(bars) - factor + 1, factor):
        group = bars[i:i + factor]
        merged.append(Bar(
            timestamp=group[0].timestamp,
            open=group[0].open,
            high=max(b.high for b in group),
            low=min(b.low for b in group),
            close=group[-1].close,
            volume=sum(b.volume for b in group),
        ))
    return merged


def to_epoch_ms(value: TimeBound) -> int:
    """Epoch milliseconds of an ISO string, ``pd.Timestamp`` or int (ms)."""
    if isinstance(value, int):
        return value
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return int((ts - _EPOCH) // pd.Timedelta(milliseconds=1))


def slice_by_time(bars: Sequence[Bar], start: TimeBound, end: TimeBound) -> list[Bar]:
    """Bars with ``start <= timestamp <= end`` (both bounds inclusive)."""
    start_ms = to_epoch_ms(start)
    end_ms = to_epoch_ms(end)
    return [b for b in bars if start_ms <= b.timestamp <= end_ms]


def timeframe_ms(timeframe: str) -> int:
    """Length of a timeframe such as ``"1m"``, ``"2m"``, ``"4h"`` in milliseconds."""
    match = re.fullmatch(r"(\d+)([mhdw])", timeframe.strip())
    if match is None:
        raise ValueError(f"Unsupported timeframe: {timeframe!r}")
    return int(match.group(1)) * _TIMEFRAME_UNITS_MS[match.group(2)]


# ── Diagnostics ──────────────────────────────────────────────────────────


def check_integrity(
    bars: Sequence[Bar],
    timeframe: str,
    max_gaps: int = 10,
) -> IntegrityReport:
    """Report gaps larger than one *timeframe* between consecutive bars.

    Only the first *max_gaps* gaps are listed; the counts cover all of them.
    """
    step = timeframe_ms(timeframe)
    gaps: list[Gap] = []
    missing_periods = 0
    missing_bars = 0
    for prev, cur in zip(bars, bars[1:]):
        diff = cur.timestamp - prev.timestamp
        if diff > step:
            missing_periods += 1
            count = diff // step - 1
            missing_bars += count
            if len(gaps) < max_gaps:
                gaps.append(Gap(prev.timestamp, cur.timestamp, count))

    total = len(bars)
    completeness = total / (total + missing_bars) * 100.0 if total else 0.0
    if missing_periods:
        logger.warning(
            "Data integrity: %d gaps, %d missing bars (%.2f%% complete)",
            missing_periods, missing_bars, completeness,
        )
    else:
        logger.info("Data integrity: %d bars, no gaps", total)

    return IntegrityReport(
        total_bars=total,
        missing_periods=missing_periods,
        missing_bars=missing_bars,
        completeness_pct=completeness,
        gaps=tuple(gaps),
    )


def describe_bars(bars: Sequence[Bar]) -> Optional[dict]:
    """Summary statistics of a bar series; ``None`` when empty."""
    if not bars:
        return None

    df = bars_to_frame(bars)
    first, last = df["close"].iloc[0], df["close"].iloc[-1]
    span_ms = int(df["timestamp"].iloc[-1] - df["timestamp"].iloc[0])
    return {
        "bars": len(df),
        "start": pd.Timestamp(int(df["timestamp"].iloc[0]), unit="ms", tz="UTC").isoformat(),
        "end": pd.Timestamp(int(df["timestamp"].iloc[-1]), unit="ms", tz="UTC").isoformat(),
        "days": span_ms / _TIMEFRAME_UNITS_MS["d"],
        "price": {
            "min": float(df["close"].min()),
            "max": float(df["close"].max()),
            "mean": float(df["close"].mean()),
            "change_pct": float((last - first) / first * 100.0) if first else 0.0,
        },
        "volume": {
            "min": float(df["volume"].min()),
            "max": float(df["volume"].max()),
            "mean": float(df["volume"].mean()),
            "total": float(df["volume"].sum()),
        },
    }
