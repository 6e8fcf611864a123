"""Market data clients."""

from app.clients.candle_rest import CandleRestClient, RateLimiter
from app.clients.price_feed_ws import FeedState, PriceFeedWebSocket, parse_price_message

__all__ = [
    "CandleRestClient",
    "RateLimiter",
    "FeedState",
    "PriceFeedWebSocket",
    "parse_price_message",
]
