"""Protocols for the collaborators the engine depends on."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.models import Candle


@runtime_checkable
class CandleSource(Protocol):
    """Source of historical candles.

    Implementations raise ``core.errors.CandleFetchError`` on any failure so
    that one instrument's failure can be isolated from the others.
    """

    async def get_candles(self, instrument_id: int, interval: int) -> list[Candle]:
        """Return candles for ``instrument_id`` at ``interval`` seconds, oldest first."""
        ...
