"""Tests for outcome evaluation and the deferred outcome verifier."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.config import Settings
from app.engine_config import EngineConfig
from app.main import build_engine, recover_pending_checks, shutdown_engine
from app.services.outcome_verifier import OutcomeVerifier
from app.storage.price_cache import LivePriceCache
from core.models import Analysis, PriceTick, Verdict
from core.outcome import evaluate_outcome


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

T0 = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_analysis(
    score: float = 1.2,
    spot: float | None = 100.0,
    instrument_id: int = 0,
    timestamp: datetime = T0,
    pair_name: str | None = "BTC_USDT",
) -> Analysis:
    """Build an Analysis with sensible defaults."""
    return Analysis(
        timestamp=timestamp,
        instrument_id=instrument_id,
        pair_name=pair_name,
        spot_price_at_analysis=spot,
        weighted_score=score,
        global_verdict=Verdict.LEAN_LONG if score >= 1 else Verdict.NEUTRAL,
    )


def make_tick(price: float, instrument_id: int = 0, pair_name: str = "BTC_USDT") -> PriceTick:
    return PriceTick(instrument_id=instrument_id, price=price, timestamp=0, pair_name=pair_name)


def make_log() -> MagicMock:
    log = MagicMock()
    log.record_outcome = AsyncMock(return_value=True)
    return log


async def wait_until_idle(verifier: OutcomeVerifier, timeout: float = 2.0) -> None:
    async def _drain():
        while verifier.pending_ids:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_drain(), timeout)


# ---------------------------------------------------------------------------
# evaluate_outcome
# ---------------------------------------------------------------------------

class TestEvaluateOutcome:
    def test_long_prediction_price_up(self):
        outcome = evaluate_outcome(make_analysis(1.2), make_tick(101.0), T0)
        assert outcome.predicted_sign == 1
        assert outcome.delta == 1.0
        assert outcome.was_correct is True

    def test_long_prediction_price_down(self):
        outcome = evaluate_outcome(make_analysis(1.2), make_tick(99.0), T0)
        assert outcome.was_correct is False

    def test_short_prediction_price_down(self):
        outcome = evaluate_outcome(make_analysis(-0.4), make_tick(99.0), T0)
        assert outcome.predicted_sign == -1
        assert outcome.was_correct is True

    def test_unchanged_price_is_not_up(self):
        assert evaluate_outcome(make_analysis(1.2), make_tick(100.0), T0).was_correct is False
        assert evaluate_outcome(make_analysis(-1.2), make_tick(100.0), T0).was_correct is True

    def test_zero_score_is_indeterminate(self):
        outcome = evaluate_outcome(make_analysis(0.0), make_tick(105.0), T0)
        assert outcome.predicted_sign == 0
        assert outcome.delta == 5.0
        assert outcome.was_correct is None

    def test_missing_spot_at_analysis(self):
        outcome = evaluate_outcome(make_analysis(1.2, spot=None), make_tick(105.0), T0)
        assert outcome.delta is None
        assert outcome.was_correct is None
        assert outcome.spot_at_check_time == 105.0

    def test_missing_spot_at_check(self):
        outcome = evaluate_outcome(make_analysis(1.2), None, T0)
        assert outcome.spot_at_check_time is None
        assert outcome.was_correct is None

    def test_delta_rounded_to_six_places(self):
        outcome = evaluate_outcome(make_analysis(1.2), make_tick(100.12345678), T0)
        assert outcome.delta == 0.123457

    def test_pair_name_falls_back_to_tick(self):
        analysis = make_analysis(1.2, pair_name=None)
        outcome = evaluate_outcome(analysis, make_tick(101.0, pair_name="ETH_USDT"), T0)
        assert outcome.pair_name == "ETH_USDT"
        assert outcome.analysis_id == analysis.id


# ---------------------------------------------------------------------------
# OutcomeVerifier
# ---------------------------------------------------------------------------

class TestOutcomeVerifier:
    @pytest.mark.asyncio
    async def test_check_fires_and_records_once(self):
        cache = LivePriceCache()
        await cache.update(make_tick(110.0))
        log = make_log()
        verifier = OutcomeVerifier(cache, log, check_delay=0, clock=lambda: T0)

        analysis = make_analysis(1.2)
        assert verifier.schedule(analysis) is True
        assert verifier.schedule(analysis) is False
        await wait_until_idle(verifier)

        log.record_outcome.assert_awaited_once()
        outcome = log.record_outcome.await_args.args[0]
        assert outcome.analysis_id == analysis.id
        assert outcome.spot_at_check_time == 110.0
        assert outcome.was_correct is True

        # Already verified: scheduling again does nothing
        assert verifier.schedule(analysis) is False

    @pytest.mark.asyncio
    async def test_check_is_at_most_once(self):
        verifier = OutcomeVerifier(LivePriceCache(), make_log(), clock=lambda: T0)
        analysis = make_analysis()

        assert await verifier.check(analysis) is not None
        assert await verifier.check(analysis) is None

    @pytest.mark.asyncio
    async def test_check_waits_for_delay(self):
        log = make_log()
        verifier = OutcomeVerifier(LivePriceCache(), log, check_delay=3600, clock=lambda: T0)
        analysis = make_analysis()

        verifier.schedule(analysis)
        await asyncio.sleep(0.01)

        assert verifier.is_pending(analysis.id)
        assert verifier.due_at(analysis) == T0 + timedelta(hours=1)
        log.record_outcome.assert_not_awaited()
        await verifier.stop()
        assert verifier.pending_ids == []

    @pytest.mark.asyncio
    async def test_evaluation_failure_records_indeterminate(self):
        cache = MagicMock()
        cache.get = AsyncMock(side_effect=RuntimeError("boom"))
        log = make_log()
        verifier = OutcomeVerifier(cache, log, clock=lambda: T0)

        outcome = await verifier.check(make_analysis())

        assert outcome.was_correct is None
        assert outcome.spot_at_check_time is None
        assert outcome.predicted_sign == 1
        log.record_outcome.assert_awaited_once_with(outcome)

    @pytest.mark.asyncio
    async def test_recover_skips_recorded_outcomes(self):
        log = make_log()
        verifier = OutcomeVerifier(
            LivePriceCache(), log, check_delay=3600, recovery_grace=60, clock=lambda: T0
        )
        done = make_analysis(instrument_id=0)
        pending = make_analysis(instrument_id=1)
        recorded = evaluate_outcome(done, make_tick(101.0), T0)

        assert verifier.recover([done, pending], [recorded]) == 1
        assert verifier.pending_ids == [pending.id]
        assert verifier.schedule(done) is False

        await verifier.stop()

    @pytest.mark.asyncio
    async def test_recover_fires_overdue_after_grace(self):
        cache = LivePriceCache()
        await cache.update(make_tick(90.0))
        log = make_log()
        later = T0 + timedelta(hours=5)
        verifier = OutcomeVerifier(
            cache, log, check_delay=3600, recovery_grace=0, clock=lambda: later
        )

        assert verifier.recover([make_analysis(1.2)], []) == 1
        await wait_until_idle(verifier)

        outcome = log.record_outcome.await_args.args[0]
        assert outcome.check_timestamp == later
        assert outcome.was_correct is False

    @pytest.mark.asyncio
    async def test_check_reads_cache_under_lock(self):
        cache = LivePriceCache()
        await cache.update(make_tick(120.0))
        verifier = OutcomeVerifier(cache, make_log(), clock=lambda: T0)

        with patch.object(cache, "get_immediate", side_effect=AssertionError("lock bypassed")):
            outcome = await verifier.check(make_analysis())

        assert outcome.spot_at_check_time == 120.0


class TestVerifiedIdRetention:
    @pytest.mark.asyncio
    async def test_old_verified_ids_are_pruned(self):
        now = [T0]
        verifier = OutcomeVerifier(
            LivePriceCache(), make_log(), check_delay=3600, recovery_grace=15, clock=lambda: now[0]
        )
        old = make_analysis(instrument_id=0)
        await verifier.check(old)
        assert old.id in verifier._done

        now[0] = T0 + timedelta(hours=3)
        fresh = make_analysis(instrument_id=1, timestamp=now[0])
        assert verifier.schedule(fresh) is True

        assert old.id not in verifier._done
        await verifier.stop()

    @pytest.mark.asyncio
    async def test_recent_verified_ids_are_kept(self):
        now = [T0]
        verifier = OutcomeVerifier(
            LivePriceCache(), make_log(), check_delay=3600, recovery_grace=15, clock=lambda: now[0]
        )
        analysis = make_analysis()
        await verifier.check(analysis)

        now[0] = T0 + timedelta(minutes=30)
        assert verifier.schedule(analysis) is False
        assert analysis.id in verifier._done

    @pytest.mark.asyncio
    async def test_schedule_rejects_analysis_past_retention(self):
        log = make_log()
        verifier = OutcomeVerifier(
            LivePriceCache(), log, check_delay=3600, recovery_grace=15,
            clock=lambda: T0 + timedelta(days=1),
        )

        assert verifier.schedule(make_analysis()) is False
        assert verifier.pending_ids == []
        log.record_outcome.assert_not_awaited()


class TestRestartRecovery:
    """Analyses persisted by one process are verified by the next one."""

    @pytest.mark.asyncio
    async def test_persisted_analysis_is_verified_after_restart(self, tmp_path):
        settings = Settings(
            _env_file=None,
            data_dir=tmp_path,
            check_delay_seconds=3600,
            recovery_grace_seconds=0,
        )
        analysis = make_analysis(1.2, spot=100.0)

        # First process: the analysis is written, then the process stops
        first = build_engine(settings, EngineConfig())
        assert await first.log.record_analysis(analysis)
        await shutdown_engine(first)

        # Second process: the check is overdue and fires straight away
        second = build_engine(settings, EngineConfig())
        await second.price_cache.update(make_tick(105.0))
        assert await recover_pending_checks(second) == 1
        await wait_until_idle(second.verifier)

        outcomes = await second.log.load_outcomes()
        assert len(outcomes) == 1
        assert outcomes[0].analysis_id == analysis.id
        assert outcomes[0].spot_at_check_time == 105.0
        assert outcomes[0].was_correct is True

        # Nothing left to recover once the outcome is on disk
        assert await recover_pending_checks(second) == 0
        await shutdown_engine(second)

        third = build_engine(settings, EngineConfig())
        assert await recover_pending_checks(third) == 0
        await shutdown_engine(third)
