"""Deferred verification of analyses against the live price.

Every recorded analysis gets one check, due ``check_delay`` seconds after
its timestamp. At fire time the live price is read from the cache,
compared with the spot price frozen into the analysis and the
resulting Outcome is appended to the outcome log.

Checks are keyed by analysis id: scheduling the same analysis twice, or a
check firing twice, records at most one outcome. Verified ids are kept for
``check_delay + recovery_grace`` plus a margin; analyses older than that are
not accepted by ``schedule()`` and are left to ``recover()``. Pending checks live only in
memory; after a restart ``recover()`` re-creates them from the persisted
logs.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

from app.storage.jsonl_sink import AnalysisLog
from app.storage.price_cache import LivePriceCache
from core.models import Analysis, Outcome
from core.outcome import evaluate_outcome

logger = logging.getLogger(__name__)

# Added to check_delay + recovery_grace to get the verified-id retention window
RETENTION_MARGIN = timedelta(minutes=10)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def indeterminate_outcome(analysis: Analysis, checked_at: datetime) -> Outcome:
    """Outcome recorded when the check itself could not be evaluated."""
    return Outcome(
        analysis_id=analysis.id,
        check_timestamp=checked_at,
        instrument_id=analysis.instrument_id,
        pair_name=analysis.pair_name,
        spot_at_analysis=analysis.spot_price_at_analysis,
        predicted_sign=analysis.predicted_sign,
    )


class OutcomeVerifier:
    """Schedules and runs one outcome check per analysis."""

    def __init__(
        self,
        price_cache: LivePriceCache,
        log: AnalysisLog,
        check_delay: float = 3600,
        recovery_grace: float = 15,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._cache = price_cache
        self._log = log
        self._check_delay = timedelta(seconds=check_delay)
        self._recovery_grace = recovery_grace
        self._retention = self._check_delay + timedelta(seconds=recovery_grace) + RETENTION_MARGIN
        self._clock = clock

        # analysis id -> pending check task
        self._tasks: dict[str, asyncio.Task] = {}
        # analysis id -> time its outcome was produced (or found persisted)
        self._done: dict[str, datetime] = {}

    @property
    def check_delay(self) -> timedelta:
        return self._check_delay

    @property
    def pending_ids(self) -> list[str]:
        return list(self._tasks)

    def is_pending(self, analysis_id: str) -> bool:
        return analysis_id in self._tasks

    def due_at(self, analysis: Analysis) -> datetime:
        return analysis.timestamp + self._check_delay

    def schedule(self, analysis: Analysis) -> bool:
        """Schedule the check for ``analysis``.

        Must be called from within the running event loop.

        Returns:
            False if a check for this analysis id already exists or ran,
            or if the analysis is older than the retention window
        """
        now = self._clock()
        self._prune_done(now)

        if analysis.timestamp < now - self._retention:
            logger.warning(f"Analysis {analysis.id} is too old to schedule a check")
            return False
        if analysis.id in self._tasks or analysis.id in self._done:
            logger.debug(f"Outcome check for {analysis.id} already scheduled")
            return False

        delay = max((self.due_at(analysis) - now).total_seconds(), 0.0)
        self._spawn(analysis, delay)
        return True

    def recover(self, analyses: Iterable[Analysis], outcomes: Iterable[Outcome]) -> int:
        """Re-create checks for recorded analyses that have no recorded outcome.

        Checks that became due while the process was down fire after the
        recovery grace period, giving the price feed time to fill the cache.

        Returns:
            Number of checks scheduled
        """
        for outcome in outcomes:
            self._done[outcome.analysis_id] = outcome.check_timestamp

        now = self._clock()
        recovered = 0
        for analysis in analyses:
            if analysis.id in self._done or analysis.id in self._tasks:
                continue
            remaining = (self.due_at(analysis) - now).total_seconds()
            self._spawn(analysis, max(remaining, self._recovery_grace))
            recovered += 1

        if recovered:
            logger.info(f"Recovered {recovered} pending outcome checks")
        return recovered

    def _prune_done(self, now: datetime) -> None:
        cutoff = now - self._retention
        expired = [aid for aid, marked in self._done.items() if marked < cutoff]
        for aid in expired:
            del self._done[aid]

    def _spawn(self, analysis: Analysis, delay: float) -> None:
        task = asyncio.create_task(
            self._check_after(analysis, delay),
            name=f"outcome-check-{analysis.id[:8]}",
        )
        self._tasks[analysis.id] = task
        task.add_done_callback(lambda _t, aid=analysis.id: self._tasks.pop(aid, None))
        logger.debug(f"Outcome check for {analysis.id} due in {delay:.0f}s")

    async def _check_after(self, analysis: Analysis, delay: float) -> None:
        await asyncio.sleep(delay)
        await self.check(analysis)

    async def check(self, analysis: Analysis) -> Outcome | None:
        """Evaluate and record the outcome of ``analysis`` now.

        Returns:
            The recorded outcome, or None if one was already produced
        """
        if analysis.id in self._done:
            return None
        checked_at = self._clock()
        self._done[analysis.id] = checked_at

        try:
            tick = await self._cache.get(analysis.instrument_id)
            outcome = evaluate_outcome(analysis, tick, checked_at)
        except Exception as e:
            logger.error(f"Outcome evaluation failed for {analysis.id}: {e}")
            outcome = indeterminate_outcome(analysis, checked_at)

        await self._log.record_outcome(outcome)

        logger.info(
            f"[{outcome.pair_name or outcome.instrument_id}] outcome {analysis.id[:8]}: "
            f"spot {outcome.spot_at_analysis} -> {outcome.spot_at_check_time} "
            f"delta={outcome.delta} correct={outcome.was_correct}"
        )
        return outcome

    async def stop(self) -> None:
        """Cancel every pending check (process shutdown)."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
