"""Tests for the analysis scheduler."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.services.scheduler import AnalysisScheduler, seconds_until_next_hour
from core.errors import CandleFetchError
from core.models import Analysis, Verdict

T0 = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_analysis(instrument_id: int) -> Analysis:
    return Analysis(
        timestamp=T0,
        instrument_id=instrument_id,
        weighted_score=1.0,
        global_verdict=Verdict.LEAN_LONG,
    )


def make_scheduler(analyze_side_effect, record_ok: bool = True, instruments=(0, 1, 2)):
    analyzer = MagicMock()
    analyzer.analyze = AsyncMock(side_effect=analyze_side_effect)
    verifier = MagicMock()
    log = MagicMock()
    log.record_analysis = AsyncMock(return_value=record_ok)
    scheduler = AnalysisScheduler(analyzer, verifier, log, instruments)
    return scheduler, analyzer, verifier, log


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_all_instruments_analysed_in_order(self):
        scheduler, analyzer, verifier, log = make_scheduler(make_analysis)

        analyses = await scheduler.run_once()

        assert [a.instrument_id for a in analyses] == [0, 1, 2]
        assert [c.args[0] for c in analyzer.analyze.await_args_list] == [0, 1, 2]
        assert log.record_analysis.await_count == 3
        assert verifier.schedule.call_count == 3
        assert scheduler.run_count == 1

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_pass(self):
        def analyze(instrument_id):
            if instrument_id == 1:
                raise CandleFetchError(1, 900, "HTTP 500")
            return make_analysis(instrument_id)

        scheduler, _, verifier, _ = make_scheduler(analyze)

        analyses = await scheduler.run_once()

        assert [a.instrument_id for a in analyses] == [0, 2]
        assert verifier.schedule.call_count == 2
        assert sorted(scheduler.latest) == [0, 2]

    @pytest.mark.asyncio
    async def test_unexpected_error_is_isolated(self):
        def analyze(instrument_id):
            if instrument_id == 0:
                raise RuntimeError("boom")
            return make_analysis(instrument_id)

        scheduler, _, _, _ = make_scheduler(analyze)
        analyses = await scheduler.run_once()

        assert [a.instrument_id for a in analyses] == [1, 2]

    @pytest.mark.asyncio
    async def test_no_check_when_persist_fails(self):
        scheduler, _, verifier, log = make_scheduler(make_analysis, record_ok=False)

        analyses = await scheduler.run_once()

        assert len(analyses) == 3
        assert log.record_analysis.await_count == 3
        verifier.schedule.assert_not_called()

    @pytest.mark.asyncio
    async def test_latest_keeps_newest_analysis(self):
        scheduler, analyzer, _, _ = make_scheduler(make_analysis, instruments=(7,))
        await scheduler.run_once()

        newer = make_analysis(7).model_copy(update={"weighted_score": -2.0})
        analyzer.analyze.side_effect = None
        analyzer.analyze.return_value = newer
        await scheduler.run_once()

        assert scheduler.latest[7].weighted_score == -2.0
        assert scheduler.run_count == 2


class TestTiming:
    def test_seconds_until_next_hour(self):
        assert seconds_until_next_hour(3600 * 10 + 600) == 3000
        assert seconds_until_next_hour(3600 * 10) == 3600

    def test_first_delay_is_capped(self):
        scheduler, _, _, _ = make_scheduler(make_analysis)
        assert scheduler.first_delay(now=3600 * 10 + 600) == 15
        assert scheduler.first_delay(now=3600 * 11 - 5) == 5

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        scheduler, _, _, _ = make_scheduler(make_analysis)
        await scheduler.start()
        assert scheduler.is_running
        await scheduler.stop()
        assert not scheduler.is_running
