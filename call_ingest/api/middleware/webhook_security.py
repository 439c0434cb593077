"""
Webhook Security Middleware
Validates voice platform webhook signatures
"""

import hmac
import hashlib
from typing import Optional

from call_ingest.core.config import Settings
from call_ingest.core.logging import get_logger
from call_ingest.core.exceptions import WebhookValidationError

logger = get_logger(__name__)

SIGNATURE_HEADER = "x-vapi-signature"
SIGNATURE_PREFIXES = ("sha256=", "hmac-sha256=")


class VapiWebhookValidator:
    """
    Validates HMAC-SHA256 signatures of the raw request body

    With no secret configured every request is accepted.
    """

    def __init__(self, secret: Optional[str] = None, skip: bool = False):
        self.secret = secret
        self.skip = skip

    @classmethod
    def from_settings(cls, settings: Settings) -> "VapiWebhookValidator":
        # Skip validation in development mode
        skip = settings.debug and settings.environment == "development"
        return cls(secret=settings.vapi_server_secret, skip=skip)

    @property
    def enabled(self) -> bool:
        return bool(self.secret) and not self.skip

    def compute_signature(self, payload: bytes) -> str:
        """Compute expected signature as lowercase hex"""
        return hmac.new(
            self.secret.encode("utf-8"),
            payload,
            hashlib.sha256
        ).hexdigest()

    def verify(self, payload: bytes, signature: Optional[str]) -> bool:
        """
        Check a signature header value against the payload

        Returns:
            True if valid, raises WebhookValidationError if invalid
        """
        if not self.enabled:
            return True

        if not signature:
            logger.warning("Missing webhook signature header")
            raise WebhookValidationError(f"Missing {SIGNATURE_HEADER} header")

        candidate = signature.strip()
        for prefix in SIGNATURE_PREFIXES:
            if candidate.lower().startswith(prefix):
                candidate = candidate[len(prefix):]
                break

        if not hmac.compare_digest(candidate.lower(), self.compute_signature(payload)):
            logger.warning("Invalid webhook signature")
            raise WebhookValidationError("Invalid webhook signature")

        return True
