"""Tests for the candle REST client."""

import httpx
import pytest

from app.clients.candle_rest import CandleRestClient
from core.errors import CandleFetchError, EngineError

ROWS = [
    {"time": 1718000000, "open": "100", "high": "102", "low": "99", "close": "101"},
    {"time": 1718000900, "open": 101, "high": 103, "low": 100, "close": 102.5},
]


def make_client(handler) -> CandleRestClient:
    return CandleRestClient(
        base_url="https://chart.example.test",
        calls_per_minute=60_000,
        transport=httpx.MockTransport(handler),
    )


class TestCandleRestClient:
    @pytest.mark.asyncio
    async def test_get_candles(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=ROWS)

        client = make_client(handler)
        candles = await client.get_candles(5500, 3600)
        await client.close()

        assert len(candles) == 2
        assert candles[0].close == 101.0
        assert candles[1].high == 103.0
        assert seen[0].url.path == "/history"
        assert seen[0].url.params["pair"] == "5500"
        assert seen[0].url.params["interval"] == "3600"

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        client = make_client(lambda request: httpx.Response(503, text="down"))

        with pytest.raises(CandleFetchError, match="HTTP 503") as exc_info:
            await client.get_candles(0, 900)

        assert exc_info.value.instrument_id == 0
        assert exc_info.value.interval == 900
        assert isinstance(exc_info.value, EngineError)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(CandleFetchError, match="ConnectError"):
            await client.get_candles(0, 900)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = make_client(lambda request: httpx.Response(200, content=b"<html>"))
        with pytest.raises(CandleFetchError, match="invalid JSON"):
            await client.get_candles(0, 900)

    @pytest.mark.asyncio
    async def test_non_list_payload(self):
        client = make_client(lambda request: httpx.Response(200, json={"error": "unknown pair"}))
        with pytest.raises(CandleFetchError, match="expected a list"):
            await client.get_candles(0, 900)

    @pytest.mark.asyncio
    async def test_malformed_row(self):
        rows = [{"time": 1, "open": 1, "high": 1, "low": 1}]
        client = make_client(lambda request: httpx.Response(200, json=rows))
        with pytest.raises(CandleFetchError, match="malformed candle"):
            await client.get_candles(0, 900)

    @pytest.mark.asyncio
    async def test_non_finite_price_is_rejected(self):
        rows = [{"time": 1, "open": 1, "high": "inf", "low": 1, "close": 1}]
        client = make_client(lambda request: httpx.Response(200, json=rows))
        with pytest.raises(CandleFetchError):
            await client.get_candles(0, 900)

    @pytest.mark.asyncio
    async def test_empty_history(self):
        client = make_client(lambda request: httpx.Response(200, json=[]))
        assert await client.get_candles(0, 900) == []
