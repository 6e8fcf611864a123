"""Websocket client for the live price feed using picows.

Each message is a JSON object mapping a stream key to a payload:

    {"btc_usdt": {"id": 0, "instruments": [{"currentPrice": "64250.5",
                  "timestamp": 1718000000000, "tradingPair": "btc_usdt"}]}}

Only the instrument id and the current price / timestamp / trading pair of
the first instrument entry are used. Malformed entries are skipped.

The connection reconnects after a fixed delay, forever.
"""

import asyncio
import logging
import math
import time
from enum import Enum
from typing import Any, Awaitable, Callable

import orjson
from picows import ws_connect, WSFrame, WSTransport, WSListener, WSMsgType, WSCloseCode

from app.storage.price_cache import LivePriceCache
from core.models import PriceTick

logger = logging.getLogger(__name__)

# Type alias for tick callback
TicksCallback = Callable[[list[PriceTick]], Awaitable[None]]


class FeedState(str, Enum):
    """Connection state of the price feed."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


def _to_number(value: Any) -> float | None:
    """Parse a finite number from an int/float/str, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _parse_entry(stream_key: str, payload: Any, now_ms: int) -> PriceTick | None:
    """Parse one stream entry, or None if it lacks an id or a finite price."""
    if not isinstance(payload, dict):
        return None

    instruments = payload.get("instruments")
    if not isinstance(instruments, list) or not instruments:
        return None
    item = instruments[0]
    if not isinstance(item, dict):
        return None

    instrument_id = _to_number(payload.get("id"))
    price = _to_number(item.get("currentPrice"))
    if instrument_id is None or price is None or not instrument_id.is_integer():
        return None

    timestamp = _to_number(item.get("timestamp"))
    trading_pair = item.get("tradingPair")

    return PriceTick(
        instrument_id=int(instrument_id),
        price=price,
        timestamp=int(timestamp) if timestamp is not None else now_ms,
        pair_name=trading_pair.upper() if isinstance(trading_pair, str) else str(stream_key),
    )


def parse_price_message(message: str | bytes, now_ms: int | None = None) -> list[PriceTick]:
    """
    Parse a feed message into price ticks (best effort, never raises).

    Args:
        message: Raw websocket text payload
        now_ms: Timestamp used when an entry has none (defaults to now)

    Returns:
        Ticks for every well-formed entry, in message order
    """
    try:
        data = orjson.loads(message)
    except orjson.JSONDecodeError as e:
        logger.warning(f"Failed to parse price message: {e}")
        return []

    if not isinstance(data, dict):
        logger.debug(f"Ignoring non-object price message: {type(data).__name__}")
        return []

    if now_ms is None:
        now_ms = int(time.time() * 1000)

    ticks: list[PriceTick] = []
    skipped = 0
    for stream_key, payload in data.items():
        tick = _parse_entry(stream_key, payload, now_ms)
        if tick is None:
            skipped += 1
            continue
        ticks.append(tick)

    if skipped:
        logger.debug(f"Skipped {skipped} malformed price entries")

    return ticks


class PriceFeedListener(WSListener):
    """picows listener for the price feed stream."""

    def __init__(
        self,
        on_ticks: TicksCallback,
        on_connected: Callable[[], None],
        on_disconnected: Callable[[], None],
        loop: asyncio.AbstractEventLoop,
    ):
        self._on_ticks = on_ticks
        self._on_connected = on_connected
        self._on_disconnected = on_disconnected
        self._transport: WSTransport | None = None
        # Store loop at init time; callbacks are scheduled onto it
        self._loop = loop

    def on_ws_connected(self, transport: WSTransport):
        """Called when WebSocket connection is established."""
        self._transport = transport
        logger.info("picows: price feed connected")
        self._on_connected()

    def on_ws_disconnected(self, transport: WSTransport):
        """Called when WebSocket is disconnected."""
        logger.warning("picows: price feed disconnected")
        self._transport = None
        self._on_disconnected()

    def on_ws_frame(self, transport: WSTransport, frame: WSFrame):
        """Called when a new frame is received."""
        if frame.msg_type == WSMsgType.TEXT:
            self._handle_message(frame.get_payload_as_utf8_text())
        elif frame.msg_type == WSMsgType.PING:
            transport.send_pong(frame.get_payload_as_bytes())
        elif frame.msg_type == WSMsgType.CLOSE:
            logger.warning(f"Price feed closed by server: {frame.get_close_code()}")
            transport.send_close(frame.get_close_code())
            transport.disconnect()

    def _handle_message(self, message: str) -> None:
        """Parse a message and hand its ticks to the callback."""
        ticks = parse_price_message(message)
        if ticks and self._loop:
            asyncio.run_coroutine_threadsafe(self._safe_callback(ticks), self._loop)

    async def _safe_callback(self, ticks: list[PriceTick]) -> None:
        """Safely execute async callback."""
        try:
            await self._on_ticks(ticks)
        except Exception as e:
            logger.error(f"Price tick callback error: {e}")

    def disconnect(self) -> None:
        """Disconnect the WebSocket."""
        if self._transport:
            self._transport.send_close(WSCloseCode.OK)
            self._transport.disconnect()


class PriceFeedWebSocket:
    """Price feed connection that keeps a LivePriceCache current.

    Two states: CONNECTED and DISCONNECTED. Any disconnect or error moves
    to DISCONNECTED and one reconnect attempt follows after
    ``reconnect_delay`` seconds. The delay never grows and there is no
    retry limit.
    """

    def __init__(
        self,
        cache: LivePriceCache,
        url: str,
        reconnect_delay: float = 3.0,
    ):
        self.url = url
        self._cache = cache
        self._reconnect_delay = reconnect_delay
        self._running = False
        self._task: asyncio.Task | None = None
        self._listener: PriceFeedListener | None = None
        self._connected = asyncio.Event()
        self._disconnected = asyncio.Event()
        self._state = FeedState.DISCONNECTED
        self._connect_attempts = 0

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def reconnect_delay(self) -> float:
        return self._reconnect_delay

    @property
    def connect_attempts(self) -> int:
        return self._connect_attempts

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the WebSocket connection and message processing."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the WebSocket connection."""
        self._running = False
        if self._listener:
            self._listener.disconnect()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._state = FeedState.DISCONNECTED

    def _on_connected(self) -> None:
        """Called when connection is established."""
        self._state = FeedState.CONNECTED
        self._connected.set()
        self._disconnected.clear()

    def _on_disconnected(self) -> None:
        """Called when connection is lost."""
        self._state = FeedState.DISCONNECTED
        self._connected.clear()
        self._disconnected.set()

    async def _on_ticks(self, ticks: list[PriceTick]) -> None:
        await self._cache.apply(ticks)

    async def _run(self) -> None:
        """Main WebSocket loop with fixed-delay reconnection."""
        while self._running:
            try:
                await self._connect_and_process()
            except Exception as e:
                logger.error(f"Price feed error: {type(e).__name__}: {e}")

            self._on_disconnected()

            if self._running:
                logger.info(f"Reconnecting price feed in {self._reconnect_delay} seconds...")
                await asyncio.sleep(self._reconnect_delay)

    async def _connect_and_process(self) -> None:
        """Connect to WebSocket and wait for disconnection."""
        self._disconnected.clear()
        self._connect_attempts += 1

        # Capture event loop here (in async context) to pass to listener
        loop = asyncio.get_running_loop()

        def listener_factory():
            self._listener = PriceFeedListener(
                on_ticks=self._on_ticks,
                on_connected=self._on_connected,
                on_disconnected=self._on_disconnected,
                loop=loop,
            )
            return self._listener

        logger.info(f"Connecting price feed to {self.url}")
        await ws_connect(
            listener_factory,
            self.url,
            enable_auto_ping=True,
            auto_ping_idle_timeout=30,
            auto_ping_reply_timeout=10,
        )

        # Wait until disconnected
        await self._disconnected.wait()
