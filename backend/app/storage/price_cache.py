"""Live price cache.

Holds the latest PriceTick per instrument id, fed by the websocket price
feed and read by the analyzer (spot at analysis time) and the outcome
verifier (spot at check time).

The cache is an owned component: create one per process and pass it to
the feed, the analyzer and the verifier. Only the most recently applied
tick per instrument is kept (last write wins, by application order).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from core.models import PriceTick

logger = logging.getLogger(__name__)


class LivePriceCache:
    """In-memory instrument id -> latest PriceTick map."""

    def __init__(self):
        self._prices: dict[int, PriceTick] = {}
        # Protects _prices; each tick replaces one entry atomically
        self._lock = asyncio.Lock()
        self._update_count = 0

    async def update(self, tick: PriceTick) -> None:
        """Replace the cached tick for ``tick.instrument_id``."""
        async with self._lock:
            self._prices[tick.instrument_id] = tick
            self._update_count += 1

    async def apply(self, ticks: Iterable[PriceTick]) -> int:
        """Apply ticks in order. Returns the number applied."""
        applied = 0
        async with self._lock:
            for tick in ticks:
                self._prices[tick.instrument_id] = tick
                applied += 1
            self._update_count += applied
        return applied

    async def get(self, instrument_id: int) -> PriceTick | None:
        """Get the latest tick for an instrument, or None if never seen."""
        async with self._lock:
            return self._prices.get(instrument_id)

    async def get_price(self, instrument_id: int) -> float | None:
        """Get just the price value for an instrument."""
        tick = await self.get(instrument_id)
        return tick.price if tick else None

    async def snapshot(self) -> dict[int, PriceTick]:
        """Copy of every cached tick."""
        async with self._lock:
            return dict(self._prices)

    def get_immediate(self, instrument_id: int) -> PriceTick | None:
        """Get the latest tick without awaiting the lock.

        dict.get() is atomic under the GIL and ticks are immutable, so this
        returns a consistent tick for one instrument.
        """
        return self._prices.get(instrument_id)

    async def clear(self) -> None:
        async with self._lock:
            self._prices.clear()

    @property
    def update_count(self) -> int:
        """Total number of ticks applied since creation."""
        return self._update_count

    def __len__(self) -> int:
        return len(self._prices)

