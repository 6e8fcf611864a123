"""Engine configuration models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class IndicatorConfig(BaseModel):
    """Indicator periods used for every timeframe."""

    rsi_period: int = 14
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    bb_period: int = 20
    bb_mult: float = 2.0
    adx_period: int = 14
    stoch_k: int = 14
    stoch_d: int = 3
    stoch_smooth: int = 3
    cci_period: int = 20
    ema_fast: int = 50
    ema_slow: int = 200


class ScoringConfig(BaseModel):
    """Verdict thresholds (inclusive bounds)."""

    timeframe_long: float = 1.5
    timeframe_short: float = -1.5
    global_long: float = 1.0
    global_short: float = -1.0


class TimeframeConfig(BaseModel):
    """One analysed timeframe: label, candle interval in seconds, weight."""

    model_config = ConfigDict(frozen=True)

    label: str
    interval: int = Field(gt=0)
    weight: int = Field(ge=1)


DEFAULT_ASSET_IDS: list[int] = [0, 1, 5500, 5000, 5002]

DEFAULT_TIMEFRAMES: list[TimeframeConfig] = [
    TimeframeConfig(label="15m", interval=900, weight=1),
    TimeframeConfig(label="1h", interval=3600, weight=2),
    TimeframeConfig(label="1d", interval=86400, weight=3),
]
