"""Candle (OHLC) data models."""

from pydantic import BaseModel, ConfigDict, Field


class Candle(BaseModel):
    """One OHLC candle. ``time`` is the candle open time in Unix seconds."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    time: float
    open: float
    high: float
    low: float
    close: float


class CandleSeries(BaseModel):
    """Ordered candles for one instrument/timeframe, oldest first."""

    instrument_id: int
    interval: int
    candles: list[Candle] = Field(default_factory=list)

    @classmethod
    def from_candles(
        cls,
        instrument_id: int,
        interval: int,
        candles: list[Candle],
    ) -> "CandleSeries":
        series = cls(instrument_id=instrument_id, interval=interval)
        for candle in candles:
            series.add(candle)
        return series

    def add(self, candle: Candle) -> None:
        """Append a candle, keeping timestamps strictly increasing."""
        if self.candles and candle.time <= self.candles[-1].time:
            # Same timestamp replaces the last candle; older ones are dropped
            if candle.time == self.candles[-1].time:
                self.candles[-1] = candle
            return

        self.candles.append(candle)

    @property
    def last_close(self) -> float | None:
        return self.candles[-1].close if self.candles else None

    def get_closes(self) -> list[float]:
        """Get list of close prices."""
        return [c.close for c in self.candles]

    def get_highs(self) -> list[float]:
        """Get list of high prices."""
        return [c.high for c in self.candles]

    def get_lows(self) -> list[float]:
        """Get list of low prices."""
        return [c.low for c in self.candles]

    def __len__(self) -> int:
        return len(self.candles)
