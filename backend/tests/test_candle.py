"""Tests for candle models."""

import pytest
from pydantic import ValidationError

from core.models import Candle, CandleSeries


def make_candle(time: float, close: float) -> Candle:
    return Candle(time=time, open=close, high=close + 1, low=close - 1, close=close)


class TestCandle:
    def test_numeric_strings_are_accepted(self):
        candle = Candle.model_validate(
            {"time": "1718000000", "open": "1.5", "high": "2", "low": "1", "close": "1.75"}
        )
        assert candle.close == 1.75

    def test_non_finite_price_is_rejected(self):
        with pytest.raises(ValidationError):
            Candle(time=1, open=1, high=float("nan"), low=1, close=1)


class TestCandleSeries:
    """Ordering rules for candle history."""

    def test_same_timestamp_replaces_and_older_is_dropped(self):
        candles = [
            make_candle(60, 1.0),
            make_candle(120, 2.0),
            make_candle(120, 3.0),   # replaces the 120 candle
            make_candle(60, 9.0),    # out of order, dropped
            make_candle(180, 4.0),
        ]
        series = CandleSeries.from_candles(0, 60, candles)

        assert series.get_closes() == [1.0, 3.0, 4.0]
        assert [c.time for c in series.candles] == [60, 120, 180]
        assert len(series) == 3
        assert series.last_close == 4.0

    def test_highs_and_lows_follow_closes(self):
        series = CandleSeries.from_candles(0, 60, [make_candle(60, 1.0), make_candle(120, 2.0)])

        assert series.get_highs() == [2.0, 3.0]
        assert series.get_lows() == [0.0, 1.0]

    def test_empty_series(self):
        series = CandleSeries(instrument_id=0, interval=60)

        assert series.last_close is None
        assert series.get_closes() == []
        assert len(series) == 0
