"""Technical indicators (pure math, no I/O)."""

from core.indicators.indicators import (
    sma,
    ema,
    stddev,
    rsi,
    macd,
    bollinger,
    stochastic,
    cci,
    adx,
    IndicatorCalculator,
)

__all__ = [
    "sma",
    "ema",
    "stddev",
    "rsi",
    "macd",
    "bollinger",
    "stochastic",
    "cci",
    "adx",
    "IndicatorCalculator",
]
