"""EdgeTrade — backtest and strategy configuration.

Loads .env variables into typed, immutable config objects.
Validates values on construction so a bad run fails before the first bar.
"""

import os
from dataclasses import dataclass, fields
from typing import Optional

from dotenv import load_dotenv

_SLIPPAGE_MODES = ("fixed", "dynamic")
_STOP_MODES = ("fixed", "atr")

# UTC hour bands → liquidity coefficient (late night, Asia, Europe/US)
DEFAULT_SESSION_BANDS: tuple[tuple[int, int, float], ...] = (
    (0, 8, 0.8),
    (8, 16, 1.2),
    (16, 24, 1.0),
)


@dataclass(frozen=True)
class BacktestConfig:
    """Execution and accounting settings for one simulated run."""

    symbol: str = "BTC/USDT"
    timeframe: str = "2m"
    initial_capital: float = 10_000.0
    position_size_usd: float = 1_000.0
    leverage: float = 10.0
    fee_rate: float = 0.0004
    stop_loss_pct: float = 0.010
    take_profit_pct: float = 0.020
    slippage_mode: str = "fixed"  # "fixed" or "dynamic"
    fixed_slippage: float = 0.0005
    atr_period: int = 14
    atr_factor: float = 0.1
    equity_sample_stride: int = 100
    min_bars: int = 720
    use_lookahead: bool = True
    use_trend_filter: bool = True
    short_only: bool = False
    monte_carlo_runs: int = 1000
    monte_carlo_min_trades: int = 10
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if self.slippage_mode not in _SLIPPAGE_MODES:
            raise ValueError(
                f"slippage_mode must be one of {_SLIPPAGE_MODES}, "
                f"got {self.slippage_mode!r}"
            )
        for name in ("initial_capital", "position_size_usd", "leverage"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.fee_rate < 0:
            raise ValueError(f"fee_rate must be non-negative, got {self.fee_rate}")
        if self.equity_sample_stride < 1:
            raise ValueError(
                f"equity_sample_stride must be >= 1, got {self.equity_sample_stride}"
            )
        if self.min_bars < 1:
            raise ValueError(f"min_bars must be >= 1, got {self.min_bars}")


@dataclass(frozen=True)
class StrategyParams:
    """Thresholds and weights of the volume-edge strategy.

    One parameter set replaces the hand-tuned strategy variants: every
    threshold a sweep may vary lives here.
    """

    # Volume profile
    lookback: int = 720
    peak_sigma: float = 1.5
    peak_min_distance: int = 6
    window_threshold: float = 0.3
    value_area_pct: float = 0.70
    edge_inner_pct: float = 0.05
    edge_outer_pct: float = 0.07
    price_precision: int = 2

    # Weights (P1..P7 sum to 1.0; P8 scales the total)
    p1_weight: float = 0.25
    p2_weight: float = 0.20
    p3_weight: float = 0.15
    p4_weight: float = 0.20
    p5_weight: float = 0.10
    p6_weight: float = 0.05
    p7_weight: float = 0.05

    # Thresholds
    local_z_threshold: float = 2.3
    global_z_threshold: float = 2.0
    burst_ratio: float = 2.2
    burst_confirm_ratio: float = 1.5
    burst_continuation_ratio: float = 0.6
    ma_period: int = 5
    ma_ratio: float = 1.9
    dist_strength: float = 1.3
    continuation_ratio: float = 0.6
    liquidity_lookback: int = 30
    session_bands: tuple[tuple[int, int, float], ...] = DEFAULT_SESSION_BANDS

    # Decision
    score_threshold: float = 0.75
    high_confidence_score: float = 0.85
    stop_mode: str = "fixed"  # "fixed" or "atr"
    atr_stop_mult: float = 1.0
    atr_trail_mult: float = 1.5
    partial_fraction: float = 0.5

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if self.stop_mode not in _STOP_MODES:
            raise ValueError(
                f"stop_mode must be one of {_STOP_MODES}, got {self.stop_mode!r}"
            )
        if self.lookback < 2 * self.peak_min_distance + 1:
            raise ValueError(
                f"lookback must be at least {2 * self.peak_min_distance + 1}, "
                f"got {self.lookback}"
            )
        if not 0 < self.value_area_pct < 1:
            raise ValueError(
                f"value_area_pct must be in (0, 1), got {self.value_area_pct}"
            )
        if self.edge_inner_pct > self.edge_outer_pct:
            raise ValueError("edge_inner_pct must not exceed edge_outer_pct")
        if not 0 < self.partial_fraction < 1:
            raise ValueError(
                f"partial_fraction must be in (0, 1), got {self.partial_fraction}"
            )

    @property
    def weights(self) -> dict[str, float]:
        return {
            "P1": self.p1_weight,
            "P2": self.p2_weight,
            "P3": self.p3_weight,
            "P4": self.p4_weight,
            "P5": self.p5_weight,
            "P6": self.p6_weight,
            "P7": self.p7_weight,
        }


@dataclass(frozen=True)
class Segment:
    """A named date range for segmented backtests (ISO-8601 bounds, inclusive)."""

    name: str
    start: str
    end: str


DEFAULT_SEGMENTS: tuple[Segment, ...] = (
    Segment("bull_2024", "2024-01-01T00:00:00Z", "2024-12-31T23:59:00Z"),
    Segment("bear_2025", "2025-01-01T00:00:00Z", "2025-12-31T23:59:00Z"),
)

# Short grid keys accepted alongside full field names
GRID_ALIASES = {
    "zlocal": "local_z_threshold",
    "b_zlocal": "local_z_threshold",
    "zglobal": "global_z_threshold",
    "b_zglobal": "global_z_threshold",
    "growthratio": "burst_ratio",
    "b_growthratio": "burst_ratio",
}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_config(env_path: Optional[str] = None) -> BacktestConfig:
    """Load the backtest configuration from ``BACKTEST_*`` environment variables.

    Raises ``ValueError`` naming the offending field when a value is invalid.
    """
    load_dotenv(dotenv_path=env_path)

    return BacktestConfig(
        symbol=os.environ.get("BACKTEST_SYMBOL", "BTC/USDT"),
        timeframe=os.environ.get("BACKTEST_TIMEFRAME", "2m"),
        initial_capital=float(os.environ.get("BACKTEST_INITIAL_CAPITAL", "10000")),
        position_size_usd=float(os.environ.get("BACKTEST_POSITION_USD", "1000")),
        leverage=float(os.environ.get("BACKTEST_LEVERAGE", "10")),
        fee_rate=float(os.environ.get("BACKTEST_FEE_RATE", "0.0004")),
        stop_loss_pct=float(os.environ.get("BACKTEST_STOP_LOSS_PCT", "0.010")),
        take_profit_pct=float(os.environ.get("BACKTEST_TAKE_PROFIT_PCT", "0.020")),
        slippage_mode=os.environ.get("BACKTEST_SLIPPAGE_MODE", "fixed"),
        fixed_slippage=float(os.environ.get("BACKTEST_FIXED_SLIPPAGE", "0.0005")),
        atr_period=int(os.environ.get("BACKTEST_ATR_PERIOD", "14")),
        atr_factor=float(os.environ.get("BACKTEST_ATR_FACTOR", "0.1")),
        equity_sample_stride=int(os.environ.get("BACKTEST_EQUITY_SAMPLE_STRIDE", "100")),
        min_bars=int(os.environ.get("BACKTEST_MIN_BARS", "720")),
        use_lookahead=_env_bool("BACKTEST_LOOKAHEAD", True),
        use_trend_filter=_env_bool("BACKTEST_TREND_FILTER", True),
        short_only=_env_bool("BACKTEST_SHORT_ONLY", False),
        monte_carlo_runs=int(os.environ.get("BACKTEST_MONTE_CARLO_RUNS", "1000")),
        monte_carlo_min_trades=int(os.environ.get("BACKTEST_MONTE_CARLO_MIN_TRADES", "10")),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
    )


def load_strategy_params(env_path: Optional[str] = None) -> StrategyParams:
    """Load strategy overrides from ``STRATEGY_<FIELD>`` environment variables.

    Any numeric or string field of ``StrategyParams`` may be overridden,
    e.g. ``STRATEGY_SCORE_THRESHOLD=0.8``.
    """
    load_dotenv(dotenv_path=env_path)

    overrides: dict = {}
    for f in fields(StrategyParams):
        raw = os.environ.get(f"STRATEGY_{f.name.upper()}")
        if raw is None or raw == "" or f.name == "session_bands":
            continue
        overrides[f.name] = _coerce(raw, f.default)
    return StrategyParams(**overrides)


def parse_param_grid() -> Optional[dict[str, list]]:
    """Build a sweep grid from ``PARAMGRID_<FIELD>=v1,v2,...`` variables.

    Values take the type of the field they override, so string fields
    such as ``PARAMGRID_STOP_MODE=fixed,atr`` sweep as well.  Returns
    ``None`` when no grid variable is set; raises ``ValueError`` for a
    name that matches no field or ``GRID_ALIASES`` key.
    """
    defaults = {f.name: f.default for f in fields(BacktestConfig) + fields(StrategyParams)}
    grid: dict[str, list] = {}
    for key, raw in os.environ.items():
        if not key.startswith("PARAMGRID_") or not raw.strip():
            continue
        name = key[len("PARAMGRID_"):].lower()
        field_name = GRID_ALIASES.get(name, name)
        if field_name not in defaults or field_name == "session_bands":
            raise ValueError(f"Unknown grid parameter: {key}")
        default = defaults[field_name]
        grid[name] = [_coerce(v.strip(), default) for v in raw.split(",") if v.strip()]
    return grid or None


def _coerce(raw: str, default):
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw
