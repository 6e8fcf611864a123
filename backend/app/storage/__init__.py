"""Data storage layer."""

from app.storage.jsonl_sink import AnalysisLog, JsonlSink
from app.storage.price_cache import LivePriceCache

__all__ = [
    "AnalysisLog",
    "JsonlSink",
    "LivePriceCache",
]
