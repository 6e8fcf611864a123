"""REST client for historical candle data."""

import asyncio
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from core.errors import CandleFetchError
from core.models import Candle

logger = logging.getLogger(__name__)


class RateLimiter:
    """Simple rate limiter for API calls."""

    def __init__(self, calls_per_minute: int = 600):
        self.calls_per_minute = calls_per_minute
        self.interval = 60.0 / calls_per_minute
        self.last_call = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait if necessary to respect rate limit."""
        async with self._lock:
            loop = asyncio.get_running_loop()
            wait_time = self.last_call + self.interval - loop.time()
            if wait_time > 0:
                await asyncio.sleep(wait_time)
            self.last_call = loop.time()


class CandleRestClient:
    """Candle history client (``GET /history?pair={id}&interval={seconds}``)."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        calls_per_minute: int = 600,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.rate_limiter = RateLimiter(calls_per_minute)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self, method: str, endpoint: str, params: dict[str, Any] | None = None
    ) -> Any:
        """Make an API request with rate limiting."""
        await self.rate_limiter.acquire()
        client = await self._get_client()
        response = await client.request(method, endpoint, params=params)
        response.raise_for_status()
        return response.json()

    async def get_candles(self, instrument_id: int, interval: int) -> list[Candle]:
        """
        Fetch candle history for one instrument.

        Args:
            instrument_id: Instrument (pair) id
            interval: Candle interval in seconds (e.g. 900, 3600, 86400)

        Returns:
            List of Candle objects, in the order returned by the API

        Raises:
            CandleFetchError: Non-success status, transport error or
                malformed payload
        """
        params = {"pair": instrument_id, "interval": interval}

        try:
            data = await self._request("GET", "/history", params)
        except httpx.HTTPStatusError as e:
            raise CandleFetchError(
                instrument_id, interval, f"HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise CandleFetchError(
                instrument_id, interval, f"{type(e).__name__}: {e}"
            ) from e
        except ValueError as e:
            raise CandleFetchError(instrument_id, interval, f"invalid JSON: {e}") from e

        if not isinstance(data, list):
            raise CandleFetchError(
                instrument_id, interval, f"expected a list, got {type(data).__name__}"
            )

        try:
            candles = [Candle.model_validate(row) for row in data]
        except ValidationError as e:
            raise CandleFetchError(
                instrument_id, interval, f"malformed candle: {e.error_count()} error(s)"
            ) from e

        logger.debug(f"Fetched {len(candles)} candles for {instrument_id} @ {interval}s")
        return candles
