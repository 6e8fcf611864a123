"""Periodic analysis of every configured instrument.

A pass analyses instruments one after another. A failure for one
instrument is logged and the pass moves on to the next. Each analysis is
appended to the analysis log and, only once that write succeeded, handed to
the outcome verifier.
"""

import asyncio
import logging
import time
from typing import Sequence

from app.services.analyzer import MultiTimeframeAnalyzer
from app.services.outcome_verifier import OutcomeVerifier
from app.storage.jsonl_sink import AnalysisLog
from core.errors import CandleFetchError
from core.models import Analysis

logger = logging.getLogger(__name__)


def seconds_until_next_hour(now: float | None = None) -> float:
    """Seconds from ``now`` (Unix time) to the next top of the hour."""
    current = time.time() if now is None else now
    remaining = 3600 - (current % 3600)
    return remaining if remaining > 0 else 3600.0


class AnalysisScheduler:
    """Runs analysis passes over a fixed instrument list."""

    def __init__(
        self,
        analyzer: MultiTimeframeAnalyzer,
        verifier: OutcomeVerifier,
        log: AnalysisLog,
        instrument_ids: Sequence[int],
        run_interval: float = 3600,
        first_run_max_delay: float = 15,
    ):
        self._analyzer = analyzer
        self._verifier = verifier
        self._log = log
        self._instrument_ids = tuple(instrument_ids)
        self._run_interval = run_interval
        self._first_run_max_delay = first_run_max_delay

        self._running = False
        self._task: asyncio.Task | None = None
        self._latest: dict[int, Analysis] = {}
        self._run_count = 0

    @property
    def instrument_ids(self) -> tuple[int, ...]:
        return self._instrument_ids

    @property
    def latest(self) -> dict[int, Analysis]:
        """Most recent analysis per instrument."""
        return dict(self._latest)

    @property
    def run_count(self) -> int:
        return self._run_count

    @property
    def is_running(self) -> bool:
        return self._running

    def first_delay(self, now: float | None = None) -> float:
        return min(seconds_until_next_hour(now), self._first_run_max_delay)

    async def run_instrument(self, instrument_id: int) -> Analysis | None:
        """Analyse and record one instrument. Never raises."""
        try:
            analysis = await self._analyzer.analyze(instrument_id)
        except CandleFetchError as e:
            logger.error(f"Skipping instrument {instrument_id}: {e}")
            return None
        except Exception as e:
            logger.exception(f"Analysis failed for instrument {instrument_id}: {e}")
            return None

        self._latest[instrument_id] = analysis

        if await self._log.record_analysis(analysis):
            self._verifier.schedule(analysis)
        else:
            logger.warning(f"Analysis {analysis.id} not persisted; outcome check skipped")

        return analysis

    async def run_once(self) -> list[Analysis]:
        """One pass over every instrument, in order."""
        self._run_count += 1
        logger.info(f"Analysis pass #{self._run_count} for {len(self._instrument_ids)} instruments")

        analyses = []
        for instrument_id in self._instrument_ids:
            analysis = await self.run_instrument(instrument_id)
            if analysis is not None:
                analyses.append(analysis)

        logger.info(
            f"Analysis pass #{self._run_count} done: "
            f"{len(analyses)}/{len(self._instrument_ids)} instruments analysed"
        )
        return analyses

    async def start(self) -> None:
        """Start the background loop."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _run(self) -> None:
        delay = self.first_delay()
        logger.info(f"First analysis pass in {delay:.0f}s, then every {self._run_interval:.0f}s")
        await asyncio.sleep(delay)

        while self._running:
            await self.run_once()
            await asyncio.sleep(self._run_interval)
