"""Service layer exports."""

from .insight_queue import InsightQueueService
from .market_context import MarketContextSearch, MarketSearchResult

__all__ = [
    "InsightQueueService",
    "MarketContextSearch",
    "MarketSearchResult",
]
