"""Technical indicators for signal scoring.

Every public function takes plain float sequences (oldest first) and returns
the value for the latest bar only. Below an indicator's minimum input length
the result is ``None``: missing data is never reported as zero or NaN.

Recurrences (EMA seeding, Wilder smoothing) run left to right in pure
Python; windowed reductions use NumPy.
"""

import math
from typing import Sequence

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from core.models.candle import CandleSeries
from core.models.config import IndicatorConfig
from core.models.indicator_set import (
    AdxResult,
    BollingerBands,
    IndicatorSet,
    MacdResult,
    StochasticResult,
)


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


def _hlc(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    if not len(highs) == len(lows) == len(closes):
        raise ValueError(
            f"highs/lows/closes length mismatch: {len(highs)}/{len(lows)}/{len(closes)}"
        )
    return _as_array(highs), _as_array(lows), _as_array(closes)


def _rolling_mean(arr: np.ndarray, period: int) -> np.ndarray:
    if len(arr) < period:
        return np.empty(0, dtype=np.float64)
    return sliding_window_view(arr, period).mean(axis=1)


def _wilder_sum(arr: np.ndarray, period: int) -> np.ndarray:
    """Wilder running sum: first = sum of first ``period``, then prev - prev/period + new."""
    prev = float(arr[:period].sum())
    out = [prev]
    for value in arr[period:]:
        prev = prev - prev / period + float(value)
        out.append(prev)
    return np.array(out, dtype=np.float64)


def _finite_or_none(value: float) -> float | None:
    return value if math.isfinite(value) else None


# =============================================================================
# Moving averages and dispersion
# =============================================================================

def sma(values: Sequence[float], period: int) -> float | None:
    """Arithmetic mean of the last ``period`` values."""
    if period <= 0 or len(values) < period:
        return None
    return float(np.mean(_as_array(values)[-period:]))


def ema(values: Sequence[float], period: int) -> float | None:
    """
    Exponential Moving Average of the whole series.

    Seeded with the SMA of the first ``period`` values, then
    ``ema = value * k + ema * (1 - k)`` with ``k = 2 / (period + 1)``.

    Args:
        values: Sequence of values, oldest first
        period: EMA period

    Returns:
        Final EMA value, or None if fewer than ``period`` values
    """
    if period <= 0 or len(values) < period:
        return None

    arr = _as_array(values)
    k = 2.0 / (period + 1)
    result = float(np.mean(arr[:period]))
    for value in arr[period:]:
        result = float(value) * k + result * (1 - k)
    return result


def stddev(values: Sequence[float], period: int) -> float | None:
    """Population standard deviation of the last ``period`` values."""
    if period <= 0 or len(values) < period:
        return None
    return float(np.std(_as_array(values)[-period:]))


# =============================================================================
# Oscillators
# =============================================================================

def rsi(closes: Sequence[float], period: int = 14) -> float | None:
    """
    Relative Strength Index with Wilder's smoothing.

    Average gain/loss are seeded from the first ``period`` differences and
    then smoothed with factor ``(period - 1) / period``.

    Returns:
        RSI in [0, 100], exactly 100 when the average loss is zero,
        or None if fewer than ``period + 1`` closes
    """
    if period <= 0 or len(closes) < period + 1:
        return None

    diffs = np.diff(_as_array(closes))
    seed = diffs[:period]
    avg_gain = float(seed[seed > 0].sum()) / period
    avg_loss = float(-seed[seed < 0].sum()) / period

    for diff in diffs[period:]:
        diff = float(diff)
        gain = diff if diff > 0 else 0.0
        loss = -diff if diff < 0 else 0.0
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def macd(
    closes: Sequence[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> MacdResult | None:
    """
    Moving Average Convergence/Divergence.

    The fast and slow EMAs are seeded from the SMA of their first ``fast`` /
    ``slow`` closes and then advance together from index ``max(fast, slow)``.
    The MACD line is their difference at each step; the signal line is the
    EMA of that line. ``prev_hist`` is the histogram one step earlier (None
    when that prefix is too short for the signal EMA).

    Returns:
        MacdResult, or None if fewer than ``slow + signal`` closes
    """
    if len(closes) < slow + signal:
        return None

    arr = _as_array(closes)
    k_fast = 2.0 / (fast + 1)
    k_slow = 2.0 / (slow + 1)
    ema_fast = float(np.mean(arr[:fast]))
    ema_slow = float(np.mean(arr[:slow]))

    series: list[float] = []
    for value in arr[max(fast, slow):]:
        value = float(value)
        ema_fast = value * k_fast + ema_fast * (1 - k_fast)
        ema_slow = value * k_slow + ema_slow * (1 - k_slow)
        series.append(ema_fast - ema_slow)

    signal_value = ema(series, signal)
    if signal_value is None:
        return None

    macd_value = series[-1]
    prev_signal = ema(series[:-1], signal)
    prev_hist = series[-2] - prev_signal if prev_signal is not None else None

    return MacdResult(
        macd=macd_value,
        signal=signal_value,
        hist=macd_value - signal_value,
        prev_hist=prev_hist,
    )


def bollinger(
    closes: Sequence[float],
    period: int = 20,
    mult: float = 2.0,
) -> BollingerBands | None:
    """Bollinger Bands: mid = SMA(period), bands = mid +/- mult * stddev(period)."""
    mid = sma(closes, period)
    sd = stddev(closes, period)
    if mid is None or sd is None:
        return None
    return BollingerBands(mid=mid, upper=mid + mult * sd, lower=mid - mult * sd)


def stochastic(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    k_period: int = 14,
    d_period: int = 3,
    smooth_k: int = 3,
) -> StochasticResult | None:
    """
    Slow stochastic oscillator.

    raw %K = (close - lowest low) / (highest high - lowest low) * 100 over
    ``k_period``; %K is the SMA(smooth_k) of raw %K and %D the SMA(d_period)
    of %K. The previous (%K, %D) pair is returned for cross detection.

    Returns:
        StochasticResult, or None if fewer than
        ``k_period + smooth_k + d_period - 2`` bars, or if the latest
        %K/%D is undefined (flat high/low window)
    """
    h, l, c = _hlc(highs, lows, closes)
    if len(c) < k_period + smooth_k + d_period - 2:
        return None

    hh = sliding_window_view(h, k_period).max(axis=1)
    ll = sliding_window_view(l, k_period).min(axis=1)
    rng = hh - ll
    raw_k = np.full(len(rng), np.nan)
    np.divide((c[k_period - 1:] - ll) * 100.0, rng, out=raw_k, where=rng != 0)

    k_line = _rolling_mean(raw_k, smooth_k)
    d_line = _rolling_mean(k_line, d_period)

    k_value = _finite_or_none(float(k_line[-1]))
    d_value = _finite_or_none(float(d_line[-1]))
    if k_value is None or d_value is None:
        return None

    prev_k = _finite_or_none(float(k_line[-2])) if len(k_line) >= 2 else None
    prev_d = _finite_or_none(float(d_line[-2])) if len(d_line) >= 2 else None

    return StochasticResult(k=k_value, d=d_value, prev_k=prev_k, prev_d=prev_d)


def cci(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 20,
) -> float | None:
    """
    Commodity Channel Index on the typical price (h + l + c) / 3.

    Returns:
        CCI value, or None if fewer than ``period`` bars or if the mean
        absolute deviation is zero
    """
    h, l, c = _hlc(highs, lows, closes)
    if period <= 0 or len(c) < period:
        return None

    typical = (h + l + c) / 3.0
    window = typical[-period:]
    mean = window.mean()
    mean_dev = float(np.abs(window - mean).mean())
    if mean_dev == 0:
        return None
    return float((typical[-1] - mean) / (0.015 * mean_dev))


def adx(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> AdxResult | None:
    """
    Average Directional Index with +DI / -DI.

    +DM, -DM and true range are Wilder-summed; DI = 100 * DM / TR and
    DX = 100 * |+DI - -DI| / (+DI + -DI). ADX starts as the mean of the
    first ``period`` DX values and is Wilder-smoothed afterwards.
    A zero true range gives DI 0, and DI+ + DI- == 0 gives DX 0.

    Returns:
        AdxResult, or None if fewer than ``2 * period`` bars
    """
    h, l, c = _hlc(highs, lows, closes)
    if period <= 0 or len(c) < 2 * period:
        return None

    up_move = h[1:] - h[:-1]
    down_move = l[:-1] - l[1:]
    plus_dm = np.where((up_move > down_move) & (up_move > 0), up_move, 0.0)
    minus_dm = np.where((down_move > up_move) & (down_move > 0), down_move, 0.0)
    tr = np.maximum.reduce([
        h[1:] - l[1:],
        np.abs(h[1:] - c[:-1]),
        np.abs(l[1:] - c[:-1]),
    ])

    tr_s = _wilder_sum(tr, period)
    plus_s = _wilder_sum(plus_dm, period)
    minus_s = _wilder_sum(minus_dm, period)

    plus_di = np.zeros_like(tr_s)
    minus_di = np.zeros_like(tr_s)
    np.divide(100.0 * plus_s, tr_s, out=plus_di, where=tr_s > 0)
    np.divide(100.0 * minus_s, tr_s, out=minus_di, where=tr_s > 0)

    di_sum = plus_di + minus_di
    dx = np.zeros_like(di_sum)
    np.divide(100.0 * np.abs(plus_di - minus_di), di_sum, out=dx, where=di_sum > 0)

    adx_value = float(dx[:period].mean())
    for value in dx[period:]:
        adx_value = (adx_value * (period - 1) + float(value)) / period

    return AdxResult(
        adx=adx_value,
        plus_di=float(plus_di[-1]),
        minus_di=float(minus_di[-1]),
    )


# =============================================================================
# IndicatorCalculator class
# =============================================================================

class IndicatorCalculator:
    """Calculator for all indicators used by the signal scorer."""

    def __init__(self, config: IndicatorConfig | None = None):
        self.config = config or IndicatorConfig()

    def calculate(
        self,
        highs: list[float],
        lows: list[float],
        closes: list[float],
    ) -> IndicatorSet:
        """
        Calculate every indicator for the latest bar.

        Args:
            highs: List of high prices
            lows: List of low prices
            closes: List of close prices

        Returns:
            IndicatorSet; indicators whose lookback is not met are None
        """
        cfg = self.config
        return IndicatorSet(
            rsi=rsi(closes, cfg.rsi_period),
            macd=macd(closes, cfg.macd_fast, cfg.macd_slow, cfg.macd_signal),
            bollinger=bollinger(closes, cfg.bb_period, cfg.bb_mult),
            adx=adx(highs, lows, closes, cfg.adx_period),
            stochastic=stochastic(
                highs, lows, closes, cfg.stoch_k, cfg.stoch_d, cfg.stoch_smooth
            ),
            cci=cci(highs, lows, closes, cfg.cci_period),
            ema50=ema(closes, cfg.ema_fast),
            ema200=ema(closes, cfg.ema_slow),
        )

    def calculate_series(self, series: CandleSeries) -> IndicatorSet:
        """Calculate indicators from a CandleSeries."""
        return self.calculate(series.get_highs(), series.get_lows(), series.get_closes())
