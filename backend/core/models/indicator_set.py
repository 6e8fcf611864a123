"""Indicator result models.

Plain frozen dataclasses, float-valued. A field set to ``None`` means the
indicator's lookback was not satisfied; it is never a stand-in for zero.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class MacdResult:
    macd: float
    signal: float
    hist: float
    prev_hist: float | None = None


@dataclass(frozen=True, slots=True)
class BollingerBands:
    mid: float
    upper: float
    lower: float

    def position(self, close: float) -> float | None:
        """Relative position of ``close`` in the band (0 = lower, 1 = upper).

        Returns None for a zero-width band.
        """
        width = self.upper - self.lower
        if width == 0:
            return None
        return (close - self.lower) / width


@dataclass(frozen=True, slots=True)
class AdxResult:
    adx: float
    plus_di: float
    minus_di: float


@dataclass(frozen=True, slots=True)
class StochasticResult:
    k: float
    d: float
    prev_k: float | None = None
    prev_d: float | None = None


@dataclass(frozen=True, slots=True)
class IndicatorSet:
    """All indicators computed for one timeframe."""

    rsi: float | None = None
    macd: MacdResult | None = None
    bollinger: BollingerBands | None = None
    adx: AdxResult | None = None
    stochastic: StochasticResult | None = None
    cci: float | None = None
    ema50: float | None = None
    ema200: float | None = None
