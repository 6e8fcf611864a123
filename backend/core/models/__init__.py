"""Data models shared by the live engine and its tests."""

from core.models.candle import Candle, CandleSeries
from core.models.config import (
    DEFAULT_ASSET_IDS,
    DEFAULT_TIMEFRAMES,
    IndicatorConfig,
    ScoringConfig,
    TimeframeConfig,
)
from core.models.indicator_set import (
    AdxResult,
    BollingerBands,
    IndicatorSet,
    MacdResult,
    StochasticResult,
)
from core.models.signal import (
    Analysis,
    Outcome,
    PriceTick,
    TimeframeResult,
    Verdict,
    generate_analysis_id,
    sign,
)

__all__ = [
    "Candle",
    "CandleSeries",
    "DEFAULT_ASSET_IDS",
    "DEFAULT_TIMEFRAMES",
    "IndicatorConfig",
    "ScoringConfig",
    "TimeframeConfig",
    "AdxResult",
    "BollingerBands",
    "IndicatorSet",
    "MacdResult",
    "StochasticResult",
    "Analysis",
    "Outcome",
    "PriceTick",
    "TimeframeResult",
    "Verdict",
    "generate_analysis_id",
    "sign",
]
