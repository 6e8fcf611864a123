"""REST API routes.

Components are created in the application lifespan and read from
``request.app.state``: ``price_cache``, ``price_feed``, ``scheduler`` and
``verifier``.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from core.models import Analysis, PriceTick

logger = logging.getLogger(__name__)

router = APIRouter()


# Response models
class PendingOutcomes(BaseModel):
    """Outcome checks waiting to fire."""

    count: int
    analysis_ids: list[str]


class FeedStatus(BaseModel):
    """Live price feed status."""

    state: str
    url: str
    reconnect_delay: float
    connect_attempts: int
    cached_instruments: int
    updates: int


def _component(request: Request, name: str):
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return component


@router.get("/prices", response_model=list[PriceTick])
async def get_prices(request: Request):
    """Get the latest live price of every instrument seen on the feed."""
    cache = _component(request, "price_cache")
    snapshot = await cache.snapshot()
    return [snapshot[key] for key in sorted(snapshot)]


@router.get("/prices/{instrument_id}", response_model=PriceTick)
async def get_price(request: Request, instrument_id: int):
    """Get the latest live price of one instrument."""
    cache = _component(request, "price_cache")
    tick = await cache.get(instrument_id)
    if tick is None:
        raise HTTPException(status_code=404, detail=f"No price for instrument {instrument_id}")
    return tick


@router.get("/analyses", response_model=list[Analysis])
async def get_analyses(
    request: Request,
    instrument_id: Optional[int] = Query(None, description="Filter by instrument id"),
):
    """Get the latest analysis per instrument."""
    scheduler = _component(request, "scheduler")
    latest = scheduler.latest

    if instrument_id is not None:
        analysis = latest.get(instrument_id)
        return [analysis] if analysis else []

    return [latest[key] for key in sorted(latest)]


@router.get("/outcomes/pending", response_model=PendingOutcomes)
async def get_pending_outcomes(request: Request):
    """Get the analysis ids whose outcome check has not fired yet."""
    verifier = _component(request, "verifier")
    pending = verifier.pending_ids
    return PendingOutcomes(count=len(pending), analysis_ids=pending)


@router.get("/feed", response_model=FeedStatus)
async def get_feed_status(request: Request):
    """Get the live price feed connection status."""
    feed = _component(request, "price_feed")
    cache = _component(request, "price_cache")
    return FeedStatus(
        state=feed.state.value,
        url=feed.url,
        reconnect_delay=feed.reconnect_delay,
        connect_attempts=feed.connect_attempts,
        cached_instruments=len(cache),
        updates=cache.update_count,
    )
