"""Core module for configuration, settings, and shared utilities"""

from .config import settings, get_settings, Settings
from .logging import setup_logging, get_logger
from .exceptions import (
    IngestException,
    ValidationError,
    WebhookValidationError,
    RateLimitError,
    StoreError,
    RpcUnavailableError,
    AggregationLimitError,
    NotificationError
)

__all__ = [
    # Config
    "settings",
    "get_settings",
    "Settings",
    # Logging
    "setup_logging",
    "get_logger",
    # Exceptions
    "IngestException",
    "ValidationError",
    "WebhookValidationError",
    "RateLimitError",
    "StoreError",
    "RpcUnavailableError",
    "AggregationLimitError",
    "NotificationError"
]
