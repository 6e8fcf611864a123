"""Combination of per-timeframe scores into one weighted verdict."""

from datetime import datetime
from typing import Sequence

from core.models import (
    Analysis,
    PriceTick,
    ScoringConfig,
    TimeframeResult,
    Verdict,
)


def weighted_score(results: Sequence[TimeframeResult]) -> float:
    """Sum(score * weight) / Sum(weight); 0.0 when there are no results."""
    total_weight = sum(r.weight for r in results)
    if total_weight == 0:
        return 0.0
    return sum(r.score * r.weight for r in results) / total_weight


def global_verdict(score: float, config: ScoringConfig | None = None) -> Verdict:
    """Map a weighted score to a verdict.

    Thresholds are lower than the per-timeframe ones because averaging
    across timeframes pulls the score toward zero. Both bounds are inclusive.
    """
    cfg = config or ScoringConfig()
    if score >= cfg.global_long:
        return Verdict.LEAN_LONG
    if score <= cfg.global_short:
        return Verdict.LEAN_SHORT
    return Verdict.NEUTRAL


def combine(
    results: Sequence[TimeframeResult],
    config: ScoringConfig | None = None,
) -> tuple[float, Verdict]:
    """Weighted score and global verdict for a set of timeframe results."""
    score = weighted_score(results)
    return score, global_verdict(score, config)


def build_analysis(
    instrument_id: int,
    results: Sequence[TimeframeResult],
    tick: PriceTick | None,
    timestamp: datetime,
    config: ScoringConfig | None = None,
) -> Analysis:
    """
    Freeze per-timeframe results and the live price snapshot into an Analysis.

    Args:
        instrument_id: Instrument being analysed
        results: One TimeframeResult per configured timeframe
        tick: Live price read once at decision time (None if nothing cached)
        timestamp: Decision time (UTC)
        config: Verdict thresholds

    Returns:
        Immutable Analysis
    """
    score, verdict = combine(results, config)
    return Analysis(
        timestamp=timestamp,
        instrument_id=instrument_id,
        pair_name=tick.pair_name if tick else None,
        spot_price_at_analysis=tick.price if tick else None,
        weighted_score=score,
        global_verdict=verdict,
        per_timeframe_results=tuple(results),
    )
