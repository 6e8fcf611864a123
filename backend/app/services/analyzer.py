"""Multi-timeframe analysis of one instrument.

For every configured timeframe the candle history is fetched, indicators are
computed and the latest bar is scored. The per-timeframe results are then
combined with their weights and the live price is read once, so the spot
price frozen into the Analysis is the price seen at decision time.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Sequence

from app.storage.price_cache import LivePriceCache
from core.aggregator import build_analysis
from core.models import Analysis, CandleSeries, ScoringConfig, TimeframeConfig, TimeframeResult
from core.protocol import CandleSource
from core.scorer import SignalScorer

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MultiTimeframeAnalyzer:
    """Builds one Analysis per instrument from several timeframes."""

    def __init__(
        self,
        candle_source: CandleSource,
        price_cache: LivePriceCache,
        timeframes: Sequence[TimeframeConfig],
        scorer: SignalScorer | None = None,
        scoring_config: ScoringConfig | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        if not timeframes:
            raise ValueError("At least one timeframe is required")

        self._source = candle_source
        self._cache = price_cache
        self._timeframes = tuple(timeframes)
        self._scoring_config = scoring_config or ScoringConfig()
        self._scorer = scorer or SignalScorer(scoring_config=self._scoring_config)
        self._clock = clock

    @property
    def timeframes(self) -> tuple[TimeframeConfig, ...]:
        return self._timeframes

    async def analyze_timeframe(self, instrument_id: int, timeframe: TimeframeConfig) -> TimeframeResult:
        """Fetch candles for one timeframe and score the latest bar.

        Raises:
            CandleFetchError: if the candle history is unavailable
        """
        candles = await self._source.get_candles(instrument_id, timeframe.interval)
        series = CandleSeries.from_candles(instrument_id, timeframe.interval, candles)
        result = self._scorer.score_series(series)

        return TimeframeResult(
            label=timeframe.label,
            last_close=series.last_close,
            score=result.score,
            verdict=result.verdict,
            weight=timeframe.weight,
            notes=result.notes,
        )

    async def analyze(self, instrument_id: int) -> Analysis:
        """
        Analyse one instrument across all timeframes.

        Args:
            instrument_id: Instrument to analyse

        Returns:
            Analysis with the weighted score, global verdict and the live
            price snapshot (None when the cache has no tick yet)

        Raises:
            CandleFetchError: if any timeframe's candles are unavailable
        """
        results = [
            await self.analyze_timeframe(instrument_id, timeframe)
            for timeframe in self._timeframes
        ]

        # Single read: spot price and pair name come from the same tick
        tick = await self._cache.get(instrument_id)
        if tick is None:
            logger.warning(f"No live price cached for instrument {instrument_id}")

        analysis = build_analysis(
            instrument_id,
            results,
            tick,
            self._clock(),
            self._scoring_config,
        )

        summary = ", ".join(f"{r.label}={r.score:+.2f}" for r in results)
        logger.info(
            f"[{analysis.pair_name or instrument_id}] {analysis.global_verdict.value} "
            f"score={analysis.weighted_score:.4f} spot={analysis.spot_price_at_analysis} ({summary})"
        )
        return analysis
