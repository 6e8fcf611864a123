"""Engine exceptions."""


class EngineError(Exception):
    """Base class for engine errors."""


class CandleFetchError(EngineError):
    """Candle history could not be fetched or parsed for one instrument."""

    def __init__(self, instrument_id: int, interval: int, reason: str):
        self.instrument_id = instrument_id
        self.interval = interval
        self.reason = reason
        super().__init__(
            f"Candle fetch failed for instrument {instrument_id} "
            f"interval {interval}s: {reason}"
        )
