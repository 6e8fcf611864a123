"""Analysis, outcome and tick models."""

import hashlib
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Verdict(str, Enum):
    """Directional conclusion for a timeframe or a whole analysis."""

    LEAN_LONG = "LEAN LONG"
    LEAN_SHORT = "LEAN SHORT"
    NEUTRAL = "NEUTRAL"


def generate_analysis_id(instrument_id: int, timestamp: datetime) -> str:
    """Generate a deterministic analysis ID.

    The same (instrument, run time) always maps to the same ID, which is what
    ties a persisted analysis to its deferred outcome check across restarts.
    """
    ts_str = timestamp.strftime("%Y%m%d%H%M%S%f")
    key = f"{instrument_id}:{ts_str}"
    return hashlib.sha256(key.encode()).hexdigest()[:32]


def sign(value: float) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


class PriceTick(BaseModel):
    """Latest live price for one instrument.

    ``timestamp`` is in milliseconds, as delivered by the feed.
    """

    model_config = ConfigDict(frozen=True)

    instrument_id: int
    price: float
    timestamp: int
    pair_name: str | None = None


class TimeframeResult(BaseModel):
    """Score of one timeframe inside an analysis."""

    model_config = ConfigDict(frozen=True)

    label: str
    last_close: float | None
    score: float
    verdict: Verdict
    weight: int
    notes: tuple[str, ...] = ()


class Analysis(BaseModel):
    """A weighted multi-timeframe verdict for one instrument at one time."""

    model_config = ConfigDict(frozen=True)

    id: str = ""  # Set in model_post_init
    timestamp: datetime
    instrument_id: int
    pair_name: str | None = None
    spot_price_at_analysis: float | None = None
    weighted_score: float
    global_verdict: Verdict
    per_timeframe_results: tuple[TimeframeResult, ...] = Field(default_factory=tuple)

    def model_post_init(self, __context) -> None:
        """Generate deterministic ID after model initialization."""
        if not self.id:
            object.__setattr__(
                self,
                "id",
                generate_analysis_id(self.instrument_id, self.timestamp),
            )

    @property
    def predicted_sign(self) -> int:
        return sign(self.weighted_score)


class Outcome(BaseModel):
    """Verification of an analysis against the price seen after the delay.

    ``was_correct`` is None when the result is indeterminate (missing spot
    price on either side, or a zero predicted sign).
    """

    model_config = ConfigDict(frozen=True)

    analysis_id: str
    check_timestamp: datetime
    instrument_id: int
    pair_name: str | None = None
    spot_at_analysis: float | None = None
    spot_at_check_time: float | None = None
    delta: float | None = None
    predicted_sign: int
    was_correct: bool | None = None
