"""Services for the call ingestion layer"""

from .cache_service import CacheService, cache_aside, generate_cache_key
from .metrics import QueryMetrics, timed
from .tool_responses import ToolResponseBuilder
from .background import BackgroundTaskRunner

__all__ = [
    "CacheService",
    "cache_aside",
    "generate_cache_key",
    "QueryMetrics",
    "timed",
    "ToolResponseBuilder",
    "BackgroundTaskRunner",
]
