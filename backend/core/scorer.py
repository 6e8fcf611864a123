"""Rule-based signal scorer for a single timeframe.

Each rule looks at one indicator and either abstains (indicator absent or
condition not met) or returns a fixed contribution with a note. The total is
a plain sum, so the rules may be evaluated in any order.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from core.indicators import IndicatorCalculator
from core.models import CandleSeries, IndicatorSet, ScoringConfig, Verdict
from core.models.config import IndicatorConfig

logger = logging.getLogger(__name__)

Contribution = tuple[float, str]
Rule = Callable[[IndicatorSet, float | None], Contribution | None]

RSI_OVERSOLD = 30.0
RSI_OVERBOUGHT = 70.0
BB_LOWER_ZONE = 0.10
BB_UPPER_ZONE = 0.90
ADX_TRENDING = 25.0
STOCH_OVERSOLD = 20.0
STOCH_OVERBOUGHT = 80.0
CCI_LOWER = -100.0
CCI_UPPER = 100.0


def trend_rule(ind: IndicatorSet, close: float | None) -> Contribution | None:
    if ind.ema50 is None or ind.ema200 is None:
        return None
    if ind.ema50 > ind.ema200:
        return 1.0, "Trend UP (EMA50>EMA200)"
    if ind.ema50 < ind.ema200:
        return -1.0, "Trend DOWN (EMA50<EMA200)"
    return None


def rsi_rule(ind: IndicatorSet, close: float | None) -> Contribution | None:
    if ind.rsi is None:
        return None
    if ind.rsi < RSI_OVERSOLD:
        return 1.0, "RSI < 30 (oversold)"
    if ind.rsi > RSI_OVERBOUGHT:
        return -1.0, "RSI > 70 (overbought)"
    return None


def macd_rule(ind: IndicatorSet, close: float | None) -> Contribution | None:
    m = ind.macd
    if m is None:
        return None
    if m.macd > m.signal and (m.prev_hist is None or m.hist > m.prev_hist):
        return 1.0, "MACD bullish & rising hist"
    if m.macd < m.signal and (m.prev_hist is None or m.hist < m.prev_hist):
        return -1.0, "MACD bearish & falling hist"
    return None


def bollinger_rule(ind: IndicatorSet, close: float | None) -> Contribution | None:
    if ind.bollinger is None or close is None:
        return None
    pos = ind.bollinger.position(close)
    if pos is None:
        return None
    if pos <= BB_LOWER_ZONE:
        return 0.5, "Near lower Bollinger"
    if pos >= BB_UPPER_ZONE:
        return -0.5, "Near upper Bollinger"
    return None


def adx_rule(ind: IndicatorSet, close: float | None) -> Contribution | None:
    a = ind.adx
    if a is None or a.adx <= ADX_TRENDING:
        return None
    if a.plus_di > a.minus_di:
        return 0.5, "ADX>25, +DI dominates"
    if a.plus_di < a.minus_di:
        return -0.5, "ADX>25, -DI dominates"
    return None


def stochastic_rule(ind: IndicatorSet, close: float | None) -> Contribution | None:
    s = ind.stochastic
    if s is None or s.prev_k is None or s.prev_d is None:
        return None
    if s.prev_k < s.prev_d and s.k > s.d and s.k < STOCH_OVERSOLD:
        return 0.5, "Stoch bullish cross <20"
    if s.prev_k > s.prev_d and s.k < s.d and s.k > STOCH_OVERBOUGHT:
        return -0.5, "Stoch bearish cross >80"
    return None


def cci_rule(ind: IndicatorSet, close: float | None) -> Contribution | None:
    if ind.cci is None:
        return None
    if ind.cci < CCI_LOWER:
        return 0.5, "CCI < -100"
    if ind.cci > CCI_UPPER:
        return -0.5, "CCI > 100"
    return None


RULES: tuple[Rule, ...] = (
    trend_rule,
    rsi_rule,
    macd_rule,
    bollinger_rule,
    adx_rule,
    stochastic_rule,
    cci_rule,
)


@dataclass(frozen=True, slots=True)
class ScoreResult:
    """Result of scoring one timeframe."""

    score: float  # Rounded to 2 decimals
    verdict: Verdict
    notes: tuple[str, ...] = ()


def timeframe_verdict(score: float, config: ScoringConfig | None = None) -> Verdict:
    """Map a timeframe score to a verdict (inclusive thresholds)."""
    cfg = config or ScoringConfig()
    if score >= cfg.timeframe_long:
        return Verdict.LEAN_LONG
    if score <= cfg.timeframe_short:
        return Verdict.LEAN_SHORT
    return Verdict.NEUTRAL


def score_indicators(
    indicators: IndicatorSet,
    close: float | None,
    config: ScoringConfig | None = None,
    rules: tuple[Rule, ...] = RULES,
) -> ScoreResult:
    """
    Score one timeframe.

    Args:
        indicators: Indicators computed for the timeframe
        close: Latest close of the timeframe (None if no candles)
        config: Verdict thresholds
        rules: Rules to apply (defaults to all rules)

    Returns:
        ScoreResult with the rounded score, verdict and the notes of every
        rule that contributed
    """
    total = 0.0
    notes: list[str] = []

    for rule in rules:
        hit = rule(indicators, close)
        if hit is None:
            continue
        contribution, note = hit
        total += contribution
        notes.append(note)

    return ScoreResult(
        score=round(total, 2),
        verdict=timeframe_verdict(total, config),
        notes=tuple(notes),
    )


class SignalScorer:
    """Computes indicators for a candle series and scores them."""

    def __init__(
        self,
        indicator_config: IndicatorConfig | None = None,
        scoring_config: ScoringConfig | None = None,
    ):
        self.calculator = IndicatorCalculator(indicator_config)
        self.scoring_config = scoring_config or ScoringConfig()

    def score(self, indicators: IndicatorSet, close: float | None) -> ScoreResult:
        return score_indicators(indicators, close, self.scoring_config)

    def score_series(self, series: CandleSeries) -> ScoreResult:
        """Calculate indicators for ``series`` and score the latest bar."""
        indicators = self.calculator.calculate_series(series)
        result = self.score(indicators, series.last_close)
        logger.debug(
            f"Scored {series.instrument_id}/{series.interval}s "
            f"({len(series)} candles): {result.score} {result.verdict.value}"
        )
        return result
