"""API middleware modules"""

from .rate_limit import RateLimiter, client_key
from .webhook_security import SIGNATURE_HEADER, VapiWebhookValidator

__all__ = [
    "RateLimiter",
    "client_key",
    "SIGNATURE_HEADER",
    "VapiWebhookValidator",
]
